"""Recording pipeline: download -> transcribe -> analyze -> persist.

Each step is tracked as a PipelineStep under the run for this delivery. A
completed step is skipped on redelivery, so a job that crashed after the
transcription resumes at the analysis. A step whose side effect already
exists (file on disk, transcript row, insight row) is completed without
redoing the work.
"""
import os

from flask import current_app
from rq import get_current_job

from ..errors import ConfigurationError, PipelineError, ValidationError, error_to_string
from ..extensions import db
from ..models.base import utcnow
from ..models.pipeline import RunStatus, StepName
from ..services.insights import InsightExtractor
from ..services.media import MediaFetcher
from ..services.store import Store
from ..services.tracking import Tracker
from ..services.transcription import TranscriptionClient, format_detected_language, normalize_language
from .payload import RecordingJob


class RecordingPipeline:
    def __init__(self, store, tracker, fetcher, transcriber, extractor, credentials=None, logger=None):
        self.store = store
        self.tracker = tracker
        self.fetcher = fetcher
        self.transcriber = transcriber
        self.extractor = extractor
        # (account_sid, auth_token) defaults; the job's accountSid wins
        self.credentials = credentials or (None, None)
        self.logger = logger or current_app.logger

    def execute(self, payload, job_id=None, attempt=1):
        job = RecordingJob.from_payload(payload)
        run_id = self.tracker.start_run(job.recording_sid, job_id, attempt)
        log = {"job_id": job_id, "run_id": run_id, "call_sid": job.call_sid,
               "recording_sid": job.recording_sid, "attempt": attempt}
        self.logger.info("[pipeline] run started %s", log)

        call_id = recording_id = None
        try:
            call_id, recording_id = self.store.upsert_call_and_recording(job)
            ctx = {"job": job, "run_id": run_id, "call_id": call_id, "recording_id": recording_id}

            self._run_step(ctx, StepName.DOWNLOAD, self._download)
            recording = self.store.get_recording_by_sid(job.recording_sid)
            if recording is None or not recording.local_path:
                raise PipelineError("download_recording did not produce a local path")
            ctx["local_path"] = recording.local_path

            self._run_step(ctx, StepName.TRANSCRIBE, self._transcribe)
            ctx["transcript"] = self.store.get_transcript_by_recording_id(recording_id)
            if ctx["transcript"] is None:
                raise PipelineError("transcribe_whisper did not produce a transcript")

            self._run_step(ctx, StepName.ANALYZE, self._analyze)
            ctx["insight"] = self.store.get_insight_by_recording_id(recording_id)
            if ctx["insight"] is None:
                raise PipelineError("analyze_llm did not produce an insight")

            self._run_step(ctx, StepName.PERSIST, self._persist)
            # the upsert above reopened the aggregates even when persist_db was skipped
            self.store.mark_completed(call_id, recording_id)

            self.tracker.finish_run(run_id, RunStatus.COMPLETED)
        except Exception as e:
            msg = error_to_string(e)
            try:
                self.store.mark_failed(call_id, recording_id, msg)
                self.tracker.finish_run(run_id, RunStatus.FAILED)
            except Exception:
                self.logger.exception("[pipeline] failed to record failure state for run %s", run_id)
            self.logger.error("[pipeline] run failed %s error=%s", log, msg)
            raise

        self.logger.info("[pipeline] run completed %s call_id=%s recording_id=%s", log, call_id, recording_id)
        return {"ok": True, "run_id": run_id, "call_id": call_id, "recording_id": recording_id}

    def _run_step(self, ctx, step, work):
        handle = self.tracker.start_step(ctx["run_id"], step)
        if handle.already_completed:
            self.logger.info("[pipeline] step %s already completed for run %s, skipping", step.value, ctx["run_id"])
            return None
        try:
            meta = work(ctx)
        except Exception as e:
            try:
                self.tracker.fail_step(handle.step_id, e)
            except Exception:
                self.logger.exception("[pipeline] failed to persist %s error state", step.value)
            raise
        self.tracker.complete_step(handle.step_id, meta)
        self.logger.info("[pipeline] step %s completed for run %s %s", step.value, ctx["run_id"], meta)
        return meta

    # -- steps ----------------------------------------------------------------

    def _download(self, ctx):
        job = ctx["job"]
        recording = self.store.get_recording_by_sid(job.recording_sid)
        if recording is not None and recording.has_download() and os.path.exists(recording.local_path):
            return {"skipped": True, "reason": "already_downloaded", "local_path": recording.local_path}

        if not job.recording_url:
            raise ConfigurationError("recordingUrl is required to download media")
        account_sid = job.account_sid or self.credentials[0]
        auth_token = self.credentials[1]
        if not account_sid:
            raise ConfigurationError("TWILIO_ACCOUNT_SID (or job accountSid) is required to download media")
        if not auth_token:
            raise ConfigurationError("TWILIO_AUTH_TOKEN is required to download media")

        dl = self.fetcher.download(job.recording_url, (account_sid, auth_token), job.recording_sid)
        self.store.mark_recording_downloaded(ctx["recording_id"], dl.local_path, utcnow())
        return {"skipped": False, "local_path": dl.local_path, "bytes_written": dl.bytes_written, "format": dl.format}

    def _transcribe(self, ctx):
        existing = self.store.get_transcript_by_recording_id(ctx["recording_id"])
        if existing is not None:
            return {"skipped": True, "reason": "already_transcribed", "transcript_id": existing.id}

        tr = self.transcriber.transcribe(ctx["local_path"])
        language = normalize_language(tr.detected_language)
        detected = format_detected_language(tr.detected_language)
        english = tr.english_text or ""

        transcript_id = self.store.insert_transcript(
            call_id=ctx["call_id"],
            recording_id=ctx["recording_id"],
            content=tr.text or "",
            language=language,
            detected_language=detected,
            content_en=english,
            raw_json=tr.raw_provider_payload,
            raw_json_en=tr.raw_translation_payload,
        )
        self.store.update_call_language(ctx["call_id"], language=language, detected_language=detected)
        return {
            "skipped": False,
            "transcript_id": transcript_id,
            "chars": len(tr.text or ""),
            "language": language,
            "detected_language": detected,
            "english_chars": len(english),
        }

    def _analyze(self, ctx):
        existing = self.store.get_insight_by_recording_id(ctx["recording_id"])
        if existing is not None:
            return {"skipped": True, "reason": "already_analyzed", "insight_id": existing.id}

        transcript = ctx["transcript"]
        data = self.extractor.extract(transcript.insight_source_text(), transcript.language)
        insight_id = self.store.insert_insight(ctx["recording_id"], data)
        return {"skipped": False, "insight_id": insight_id, "summary_chars": len(data.get("summary") or "")}

    def _persist(self, ctx):
        transcript = ctx["transcript"]
        insight = ctx["insight"]
        self.store.update_call_post_processing(
            ctx["call_id"],
            transcript_text=transcript.insight_source_text(),
            summary=insight.summary,
            language=transcript.language,
            detected_language=transcript.detected_language,
        )
        self.store.mark_completed(ctx["call_id"], ctx["recording_id"])
        return {"skipped": False}


def build_pipeline(app=None, session=None, **overrides):
    """Wire a pipeline from app config. Keyword overrides replace parts."""
    app = app or current_app
    cfg = app.config
    session = session or db.session
    timeout = cfg.get("HTTP_TIMEOUT", 60)
    parts = {
        "store": Store(session),
        "tracker": Tracker(session),
        "fetcher": MediaFetcher(cfg.get("RECORDINGS_DIR", "./recordings"), timeout=timeout, logger=app.logger),
        "transcriber": TranscriptionClient(
            api_key=cfg.get("OPENAI_API_KEY"),
            base_url=cfg.get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            model=cfg.get("OPENAI_TRANSCRIBE_MODEL", "whisper-1"),
            timeout=timeout,
        ),
        "extractor": InsightExtractor(),
        "credentials": (cfg.get("TWILIO_ACCOUNT_SID"), cfg.get("TWILIO_AUTH_TOKEN")),
        "logger": app.logger,
    }
    parts.update(overrides)
    return RecordingPipeline(**parts)


def delivery_info(job):
    """(job_id, attempt) for the RQ job being executed, if any."""
    if job is None:
        return None, 1
    max_attempts = (job.meta or {}).get("max_attempts")
    retries_left = getattr(job, "retries_left", None)
    if max_attempts and retries_left is not None:
        return job.id, max(1, int(max_attempts) - int(retries_left))
    return job.id, 1


def _run_process_recording(payload):
    job = get_current_job()
    job_id, attempt = delivery_info(job)
    try:
        RecordingJob.from_payload(payload)
    except ValidationError as e:
        # fatal: never redelivered
        current_app.logger.error("[pipeline] dropping invalid job %s: %s", job_id, e)
        if job is not None:
            job.meta["fatal"] = str(e)
            job.save_meta()
        return {"ok": False, "error": "validation_failed"}
    return build_pipeline().execute(payload, job_id=job_id, attempt=attempt)


def process_recording(payload):
    """RQ entrypoint: runs the pipeline inside a Flask app context so the
    worker gets config, logging and the SQLAlchemy session.
    """
    # lazy import to avoid circular imports at module import time
    from callpipe import create_app
    app = create_app()
    with app.app_context():
        return _run_process_recording(payload)
