from ..extensions import db
from .base import TimestampMixin

CALL_PROCESSING = "processing"
CALL_COMPLETED = "completed"
CALL_FAILED = "failed"


class Call(db.Model, TimestampMixin):
    __tablename__ = "calls"

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(64), nullable=False)  # provider call sid
    started_at = db.Column(db.DateTime(timezone=True), nullable=False)
    from_number = db.Column(db.String(40), nullable=False, default="unknown")
    to_number = db.Column(db.String(40))
    direction = db.Column(db.String(20))
    duration_sec = db.Column(db.Integer, nullable=False, default=0)

    # English/Greek
    language = db.Column(db.String(20), nullable=False, default="English")
    detected_language = db.Column(db.String(40))
    summary = db.Column(db.Text, nullable=False, default="")
    transcript_preview = db.Column(db.Text)

    # processing -> completed | failed
    status = db.Column(db.String(20), nullable=False, default=CALL_PROCESSING, index=True)
    error = db.Column(db.Text)

    __table_args__ = (
        db.UniqueConstraint("external_id", name="uq_calls_external_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "external_id": self.external_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "from_number": self.from_number,
            "to_number": self.to_number,
            "direction": self.direction,
            "duration_sec": self.duration_sec,
            "language": self.language,
            "detected_language": self.detected_language,
            "summary": self.summary,
            "transcript_preview": self.transcript_preview,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return f"<Call id={self.id} external_id={self.external_id!r} status={self.status}>"
