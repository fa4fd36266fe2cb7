from ..extensions import db
from .base import utcnow


class Insight(db.Model):
    __tablename__ = "insights"
    id = db.Column(db.Integer, primary_key=True)
    recording_id = db.Column(db.Integer, db.ForeignKey("recordings.id"), nullable=False)
    data = db.Column(db.JSON, nullable=False)  # {"intent", "summary", "action_items", "confidence", "language"}
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("recording_id", name="uq_insights_recording_id"),
    )

    @property
    def summary(self):
        data = self.data or {}
        summary = data.get("summary")
        return summary if isinstance(summary, str) else ""
