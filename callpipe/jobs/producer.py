"""Turn a validated notification into a queued recording job.

The RQ job id is the recording sid, so the same recording is only ever
queued once. A duplicate enqueue is a success (``duplicated=True``): the
upstream notification may itself be retried.
"""
from collections import namedtuple

from flask import current_app
from redis.exceptions import RedisError
from rq import Retry

from ..errors import ValidationError
from ..extensions import rq
from .payload import RecordingJob

JOB_NAME = "twilio_recording_completed"
DEDUP_PREFIX = "callpipe:dedup:"

ACCEPTED = "accepted"
DUPLICATE = "duplicate"
BACKEND_UNAVAILABLE = "backend_unavailable"
VALIDATION_FAILED = "validation_failed"

EnqueueResult = namedtuple("EnqueueResult", ["ok", "job_id", "duplicated", "outcome", "error"])


def backoff_intervals(max_attempts, base_seconds):
    """Exponential delays between redeliveries: base, 2*base, 4*base..."""
    return [base_seconds * (2 ** i) for i in range(max(0, max_attempts - 1))]


def enqueue_recording_job(payload, queue=None, settings=None):
    """Enqueue ``payload`` (dict or RecordingJob). Never raises for the
    expected failure modes; inspect ``EnqueueResult.outcome`` instead."""
    try:
        job = RecordingJob.from_payload(payload)
    except ValidationError as e:
        current_app.logger.warning("recording job rejected: %s", e)
        return EnqueueResult(False, None, False, VALIDATION_FAILED, str(e))

    queue = queue if queue is not None else rq.queue
    settings = settings if settings is not None else rq.settings
    if queue is None:
        current_app.logger.warning("queue not configured; cannot enqueue %s", job.recording_sid)
        return EnqueueResult(False, None, False, BACKEND_UNAVAILABLE, "queue not configured")

    job_id = job.dedup_key
    max_attempts = int(settings.get("max_attempts", 5))
    intervals = backoff_intervals(max_attempts, int(settings.get("backoff_seconds", 2)))
    conn = queue.connection
    dedup_key = DEDUP_PREFIX + job_id
    try:
        claimed = conn.set(dedup_key, "1", nx=True, ex=int(settings.get("dedup_ttl", 86400)))
        if not claimed:
            current_app.logger.info("recording job %s already enqueued", job_id)
            return EnqueueResult(True, job_id, True, DUPLICATE, None)
        try:
            # the claim can expire while the job (or a scheduled retry) is still kept
            if queue.fetch_job(job_id) is not None:
                current_app.logger.info("recording job %s still held by the queue", job_id)
                return EnqueueResult(True, job_id, True, DUPLICATE, None)
            queue.enqueue(
                "callpipe.jobs.process_recording.process_recording",
                job.to_payload(),
                job_id=job_id,
                description=f"{JOB_NAME} {job_id}",
                retry=Retry(max=len(intervals), interval=intervals) if intervals else None,
                job_timeout=settings.get("job_timeout", 900),
                result_ttl=settings.get("result_ttl", 86400),
                failure_ttl=settings.get("failure_ttl", 7 * 86400),
                meta={"max_attempts": max_attempts},
            )
        except RedisError:
            # release the claim so a retried notification can enqueue
            conn.delete(dedup_key)
            raise
    except RedisError as e:
        current_app.logger.error("failed to enqueue recording job %s: %s", job_id, e)
        return EnqueueResult(False, job_id, False, BACKEND_UNAVAILABLE, str(e))

    current_app.logger.info("recording job %s enqueued (attempts=%s)", job_id, max_attempts)
    return EnqueueResult(True, job_id, False, ACCEPTED, None)
