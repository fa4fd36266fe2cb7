from ..extensions import db
from .base import utcnow

RECORDING_PENDING = "pending"
RECORDING_READY = "ready"
RECORDING_PROCESSED = "processed"
RECORDING_FAILED = "failed"


class Recording(db.Model):
    __tablename__ = "recordings"

    id = db.Column(db.Integer, primary_key=True)
    call_id = db.Column(db.Integer, db.ForeignKey("calls.id"), nullable=False)
    provider = db.Column(db.String(20), nullable=False, default="twilio")
    recording_sid = db.Column(db.String(64), nullable=False)
    duration_sec = db.Column(db.Integer)
    # pending -> ready -> processed | failed
    status = db.Column(db.String(20), nullable=False, default=RECORDING_PENDING)
    url = db.Column(db.String(512))
    # set together by Store.mark_recording_downloaded
    local_path = db.Column(db.String(512))
    downloaded_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("call_id", name="uq_recordings_call_id"),
        db.UniqueConstraint("recording_sid", name="uq_recordings_recording_sid"),
    )

    def has_download(self):
        return bool(self.local_path and self.downloaded_at)

    def __repr__(self) -> str:
        return f"<Recording id={self.id} sid={self.recording_sid!r} status={self.status}>"
