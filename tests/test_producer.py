from rq import Retry

from conftest import DownRedis, FakeQueue
from callpipe.jobs.producer import (
    ACCEPTED, BACKEND_UNAVAILABLE, DUPLICATE, VALIDATION_FAILED, backoff_intervals, enqueue_recording_job,
)

SETTINGS = {"max_attempts": 5, "backoff_seconds": 2, "job_timeout": 600,
            "result_ttl": 60, "failure_ttl": 3600, "dedup_ttl": 86400}


def test_enqueue_uses_recording_sid_as_job_id(app, payload):
    queue = FakeQueue()
    result = enqueue_recording_job(payload, queue=queue, settings=SETTINGS)

    assert result.ok and not result.duplicated
    assert result.outcome == ACCEPTED
    assert result.job_id == "RE1"
    assert len(queue.jobs) == 1
    job = queue.jobs[0]
    assert job["func"] == "callpipe.jobs.process_recording.process_recording"
    assert job["args"][0]["recordingSid"] == "RE1"
    kwargs = job["kwargs"]
    assert kwargs["job_id"] == "RE1"
    assert isinstance(kwargs["retry"], Retry)
    assert kwargs["retry"].max == 4
    assert kwargs["retry"].intervals == [2, 4, 8, 16]
    assert kwargs["meta"] == {"max_attempts": 5}
    assert kwargs["job_timeout"] == 600


def test_duplicate_enqueue_is_success_without_second_entry(app, payload):
    queue = FakeQueue()
    first = enqueue_recording_job(payload, queue=queue, settings=SETTINGS)
    second = enqueue_recording_job(dict(payload, callSid="CA-retry"), queue=queue, settings=SETTINGS)

    assert first.outcome == ACCEPTED
    assert second.ok is True
    assert second.duplicated is True
    assert second.outcome == DUPLICATE
    assert second.job_id == "RE1"
    assert len(queue.jobs) == 1


def test_backend_unavailable_is_a_result(app, payload):
    result = enqueue_recording_job(payload, queue=FakeQueue(connection=DownRedis()), settings=SETTINGS)
    assert result.ok is False
    assert result.outcome == BACKEND_UNAVAILABLE
    assert "refused" in result.error


def test_unconfigured_queue_is_backend_unavailable(app, payload):
    result = enqueue_recording_job(payload)
    assert result.outcome == BACKEND_UNAVAILABLE


def test_invalid_payload_never_reaches_queue(app, payload):
    queue = FakeQueue()
    payload.pop("recordingSid")
    result = enqueue_recording_job(payload, queue=queue, settings=SETTINGS)
    assert result.ok is False
    assert result.outcome == VALIDATION_FAILED
    assert queue.jobs == []


def test_backoff_intervals():
    assert backoff_intervals(5, 2) == [2, 4, 8, 16]
    assert backoff_intervals(1, 2) == []


def test_existing_job_is_duplicate_after_claim_expired(app, payload):
    queue = FakeQueue()
    enqueue_recording_job(payload, queue=queue, settings=SETTINGS)
    # claim TTL elapsed, job still stored (finished/failed or awaiting retry)
    queue.connection.store.clear()

    again = enqueue_recording_job(payload, queue=queue, settings=SETTINGS)

    assert again.ok is True
    assert again.duplicated is True
    assert again.outcome == DUPLICATE
    assert len(queue.jobs) == 1
