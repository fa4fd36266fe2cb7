"""Durable state for the call/recording aggregates, transcripts and insights.

Every write is an insert-or-update keyed by a unique column
(``calls.external_id``, ``recordings.recording_sid``,
``transcripts.recording_id``, ``insights.recording_id``) so concurrent
workers and redeliveries never create duplicate rows. Reads go through the
same unique keys.
"""
from datetime import datetime
from functools import wraps

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PersistenceError
from ..models.base import utcnow
from ..models.call import Call, CALL_COMPLETED, CALL_FAILED, CALL_PROCESSING
from ..models.insight import Insight
from ..models.recording import Recording, RECORDING_FAILED, RECORDING_PROCESSED, RECORDING_READY
from ..models.transcript import Transcript

PREVIEW_CHARS = 280


def dialect_insert(session, model):
    """Return an ``insert()`` construct that supports ON CONFLICT."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceError(f"unsupported database dialect for upserts: {name}")
    return insert(model)


def persistence(fn):
    """Roll back and re-raise database failures as PersistenceError."""
    @wraps(fn)
    def wrapped(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except PersistenceError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"{fn.__name__} failed: {e}") from e
    return wrapped


def _parse_iso(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class Store:
    def __init__(self, session):
        self.session = session

    def _one(self, stmt):
        return self.session.execute(stmt.execution_options(populate_existing=True)).scalars().first()

    # -- aggregates -------------------------------------------------------

    @persistence
    def upsert_call_and_recording(self, job):
        """Create or refresh the Call and Recording for a job.

        Returns ``(call_id, recording_id)``. The Call goes back to
        ``processing`` with its error cleared; the Recording to ``ready``.
        """
        now = utcnow()
        started_at = _parse_iso(job.received_at) or now
        from_number = job.from_number or "unknown"
        duration = job.duration_sec or 0

        stmt = dialect_insert(self.session, Call).values(
            external_id=job.call_sid,
            started_at=started_at,
            from_number=from_number,
            to_number=job.to_number,
            direction=job.direction,
            duration_sec=duration,
            language="English",
            summary="",
            status=CALL_PROCESSING,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Call.external_id],
            set_={
                "status": CALL_PROCESSING,
                "error": None,
                "updated_at": now,
                "from_number": from_number,
                "to_number": job.to_number,
                "duration_sec": duration,
            },
        )
        self.session.execute(stmt)
        call = self._one(select(Call).filter_by(external_id=job.call_sid))

        stmt = dialect_insert(self.session, Recording).values(
            call_id=call.id,
            provider="twilio",
            recording_sid=job.recording_sid,
            duration_sec=job.duration_sec,
            status=RECORDING_READY,
            url=job.recording_url,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Recording.recording_sid],
            set_={"call_id": call.id, "status": RECORDING_READY, "url": job.recording_url},
        )
        self.session.execute(stmt)
        recording = self._one(select(Recording).filter_by(recording_sid=job.recording_sid))
        self.session.commit()
        return call.id, recording.id

    @persistence
    def get_call(self, call_id):
        return self._one(select(Call).filter_by(id=call_id))

    @persistence
    def get_recording_by_sid(self, recording_sid):
        return self._one(select(Recording).filter_by(recording_sid=recording_sid))

    @persistence
    def mark_recording_downloaded(self, recording_id, local_path, downloaded_at=None):
        if not local_path:
            raise PersistenceError("local_path is required to mark a recording downloaded")
        self.session.execute(
            update(Recording)
            .where(Recording.id == recording_id)
            .values(local_path=local_path, downloaded_at=downloaded_at or utcnow(), status=RECORDING_READY)
        )
        self.session.commit()

    @persistence
    def update_call_language(self, call_id, language=None, detected_language=None):
        self.session.execute(
            update(Call)
            .where(Call.id == call_id)
            .values(language=language or "English", detected_language=detected_language, updated_at=utcnow())
        )
        self.session.commit()

    @persistence
    def update_call_post_processing(self, call_id, transcript_text=None, summary=None,
                                    language=None, detected_language=None):
        preview = None
        if isinstance(transcript_text, str) and transcript_text.strip():
            preview = transcript_text.strip()[:PREVIEW_CHARS]
        self.session.execute(
            update(Call)
            .where(Call.id == call_id)
            .values(
                transcript_preview=preview,
                summary=summary or "",
                language=language or "English",
                detected_language=detected_language,
                updated_at=utcnow(),
            )
        )
        self.session.commit()

    @persistence
    def mark_completed(self, call_id, recording_id):
        now = utcnow()
        self.session.execute(update(Call).where(Call.id == call_id).values(status=CALL_COMPLETED, error=None, updated_at=now))
        self.session.execute(update(Recording).where(Recording.id == recording_id).values(status=RECORDING_PROCESSED))
        self.session.commit()

    @persistence
    def mark_failed(self, call_id, recording_id, error):
        now = utcnow()
        if call_id is not None:
            self.session.execute(update(Call).where(Call.id == call_id).values(status=CALL_FAILED, error=error, updated_at=now))
        if recording_id is not None:
            self.session.execute(update(Recording).where(Recording.id == recording_id).values(status=RECORDING_FAILED))
        self.session.commit()

    # -- transcripts / insights -------------------------------------------

    @persistence
    def get_transcript_by_recording_id(self, recording_id):
        return self._one(select(Transcript).filter_by(recording_id=recording_id))

    @persistence
    def insert_transcript(self, call_id, recording_id, content, language, detected_language=None,
                          content_en=None, raw_json=None, raw_json_en=None):
        """Insert the transcript unless one exists; return the row id either way."""
        stmt = dialect_insert(self.session, Transcript).values(
            call_id=call_id,
            recording_id=recording_id,
            content=content,
            language=language,
            detected_language=detected_language,
            content_en=content_en,
            raw_json=raw_json,
            raw_json_en=raw_json_en,
            created_at=utcnow(),
        ).on_conflict_do_nothing()
        self.session.execute(stmt)
        row = self._one(select(Transcript).filter_by(recording_id=recording_id))
        self.session.commit()
        if row is None:
            raise PersistenceError(f"transcript for recording {recording_id} conflicts with another call")
        return row.id

    @persistence
    def get_insight_by_recording_id(self, recording_id):
        return self._one(select(Insight).filter_by(recording_id=recording_id))

    @persistence
    def insert_insight(self, recording_id, data):
        stmt = dialect_insert(self.session, Insight).values(
            recording_id=recording_id, data=data, created_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=[Insight.recording_id])
        self.session.execute(stmt)
        row = self._one(select(Insight).filter_by(recording_id=recording_id))
        self.session.commit()
        return row.id

    # -- dashboard read ---------------------------------------------------

    @persistence
    def list_completed_calls(self, limit=6, offset=0):
        stmt = (
            select(Call)
            .filter_by(status=CALL_COMPLETED)
            .order_by(Call.started_at.desc(), Call.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.execute(stmt).scalars())
