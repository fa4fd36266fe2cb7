from ..extensions import db
from .base import utcnow


class Transcript(db.Model):
    __tablename__ = "transcripts"
    id = db.Column(db.Integer, primary_key=True)
    call_id = db.Column(db.Integer, db.ForeignKey("calls.id"), nullable=False)
    recording_id = db.Column(db.Integer, db.ForeignKey("recordings.id"), nullable=False)
    language = db.Column(db.String(20), nullable=False, default="English")
    detected_language = db.Column(db.String(40))
    content = db.Column(db.Text, nullable=False)
    # English translation of the same audio
    content_en = db.Column(db.Text)
    # raw provider responses, kept for reprocessing
    raw_json = db.Column(db.JSON)
    raw_json_en = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("call_id", name="uq_transcripts_call_id"),
        db.UniqueConstraint("recording_id", name="uq_transcripts_recording_id"),
    )

    def insight_source_text(self):
        """English translation when it carries text, else the original."""
        if self.content_en and self.content_en.strip():
            return self.content_en
        return self.content or ""
