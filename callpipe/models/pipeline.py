import enum
from ..errors import IllegalStepTransition
from ..extensions import db
from .base import utcnow


class RunStatus(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, enum.Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target):
        return target in _STEP_TRANSITIONS[self]


_STEP_TRANSITIONS = {
    StepStatus.STARTED: {StepStatus.COMPLETED, StepStatus.FAILED},
    StepStatus.FAILED: {StepStatus.STARTED},
    StepStatus.COMPLETED: set(),
}


class StepName(str, enum.Enum):
    DOWNLOAD = "download_recording"
    TRANSCRIBE = "transcribe_whisper"
    ANALYZE = "analyze_llm"
    PERSIST = "persist_db"


# execution order of a run
STEP_ORDER = (StepName.DOWNLOAD, StepName.TRANSCRIBE, StepName.ANALYZE, StepName.PERSIST)


def _enum_values(cls):
    return [m.value for m in cls]


class PipelineRun(db.Model):
    __tablename__ = "pipeline_runs"

    id = db.Column(db.Integer, primary_key=True)
    recording_sid = db.Column(db.String(64), nullable=False, index=True)
    job_id = db.Column(db.String(128))  # RQ job id, equal to recording_sid for webhook jobs
    status = db.Column(db.Enum(RunStatus, native_enum=False, length=20, values_callable=_enum_values),
                       nullable=False, default=RunStatus.STARTED)
    attempt = db.Column(db.Integer, nullable=False, default=1)
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = db.Column(db.DateTime(timezone=True))

    steps = db.relationship("PipelineStep", backref="run", lazy="select", order_by="PipelineStep.id")

    __table_args__ = (
        db.UniqueConstraint("recording_sid", "job_id", name="uq_pipeline_runs_recording_job"),
    )

    def __repr__(self) -> str:
        return f"<PipelineRun id={self.id} sid={self.recording_sid!r} job={self.job_id!r} status={self.status}>"


class PipelineStep(db.Model):
    __tablename__ = "pipeline_steps"

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.Integer, db.ForeignKey("pipeline_runs.id"), nullable=False)
    step = db.Column(db.String(40), nullable=False)
    status = db.Column(db.Enum(StepStatus, native_enum=False, length=20, values_callable=_enum_values),
                       nullable=False, default=StepStatus.STARTED)
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = db.Column(db.DateTime(timezone=True))
    meta = db.Column(db.JSON)
    error = db.Column(db.Text)

    __table_args__ = (
        db.UniqueConstraint("run_id", "step", name="uq_pipeline_steps_run_step"),
    )

    def transition(self, target):
        """Move to ``target`` or raise IllegalStepTransition."""
        current = StepStatus(self.status)
        target = StepStatus(target)
        if not current.can_transition_to(target):
            raise IllegalStepTransition(current.value, target.value)
        self.status = target
        return self

    def __repr__(self) -> str:
        return f"<PipelineStep id={self.id} run={self.run_id} step={self.step} status={self.status}>"
