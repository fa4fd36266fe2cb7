"""Run/step bookkeeping for the recording pipeline.

A run is keyed by (recording_sid, job_id): redelivery of the same RQ job
re-enters the same run and bumps its attempt counter. A step is keyed by
(run_id, step): a completed step is reported back as such and never
restarted, a failed one goes back to ``started``.
"""
from collections import namedtuple

from sqlalchemy import select, update

from ..errors import PersistenceError, error_to_string
from ..models.base import utcnow
from ..models.pipeline import PipelineRun, PipelineStep, RunStatus, StepStatus
from .store import dialect_insert, persistence

StepHandle = namedtuple("StepHandle", ["step_id", "already_completed"])


class Tracker:
    def __init__(self, session):
        self.session = session

    def _one(self, stmt):
        return self.session.execute(stmt.execution_options(populate_existing=True)).scalars().first()

    @persistence
    def start_run(self, recording_sid, job_id, attempt=1):
        """Return the run id for this delivery, creating the run if needed."""
        now = utcnow()
        if job_id is None:
            # ad-hoc invocation outside the queue: always a fresh run
            run = PipelineRun(recording_sid=recording_sid, job_id=None, status=RunStatus.STARTED,
                              attempt=attempt, started_at=now)
            self.session.add(run)
            self.session.commit()
            return run.id

        stmt = dialect_insert(self.session, PipelineRun).values(
            recording_sid=recording_sid,
            job_id=job_id,
            status=RunStatus.STARTED.value,
            attempt=attempt,
            started_at=now,
        ).on_conflict_do_nothing(index_elements=[PipelineRun.recording_sid, PipelineRun.job_id])
        self.session.execute(stmt)
        run = self._one(select(PipelineRun).filter_by(recording_sid=recording_sid, job_id=job_id))
        if run is None:
            raise PersistenceError(f"pipeline run for {recording_sid}/{job_id} vanished after insert")
        if attempt > (run.attempt or 1):
            # redelivery: same run, new attempt
            run.attempt = attempt
            run.status = RunStatus.STARTED
            run.finished_at = None
        self.session.commit()
        return run.id

    @persistence
    def finish_run(self, run_id, status):
        status = RunStatus(status)
        if status is RunStatus.STARTED:
            raise ValueError("a run is finished as completed or failed")
        self.session.execute(
            update(PipelineRun).where(PipelineRun.id == run_id).values(status=status, finished_at=utcnow())
        )
        self.session.commit()

    @persistence
    def get_run(self, run_id):
        return self._one(select(PipelineRun).filter_by(id=run_id))

    @persistence
    def get_step(self, run_id, step):
        return self._one(select(PipelineStep).filter_by(run_id=run_id, step=str(getattr(step, "value", step))))

    @persistence
    def start_step(self, run_id, step):
        """Open or reuse the step row. Returns a StepHandle."""
        name = str(getattr(step, "value", step))
        now = utcnow()
        stmt = dialect_insert(self.session, PipelineStep).values(
            run_id=run_id,
            step=name,
            status=StepStatus.STARTED.value,
            started_at=now,
        ).on_conflict_do_nothing(index_elements=[PipelineStep.run_id, PipelineStep.step])
        created = self.session.execute(stmt).rowcount == 1
        row = self._one(select(PipelineStep).filter_by(run_id=run_id, step=name))

        if not created:
            current = StepStatus(row.status)
            if current is StepStatus.COMPLETED:
                self.session.commit()
                return StepHandle(row.id, True)
            if current is StepStatus.FAILED:
                row.transition(StepStatus.STARTED)
            # a step left in ``started`` by a crashed worker is resumed as is
            row.started_at = now
            row.finished_at = None
            row.error = None
            row.meta = None
        self.session.commit()
        return StepHandle(row.id, False)

    @persistence
    def complete_step(self, step_id, meta=None):
        row = self._one(select(PipelineStep).filter_by(id=step_id))
        row.transition(StepStatus.COMPLETED)
        row.finished_at = utcnow()
        row.meta = meta
        row.error = None
        self.session.commit()

    @persistence
    def fail_step(self, step_id, error, meta=None):
        row = self._one(select(PipelineStep).filter_by(id=step_id))
        row.transition(StepStatus.FAILED)
        row.finished_at = utcnow()
        row.meta = meta
        row.error = error if isinstance(error, str) else error_to_string(error)
        self.session.commit()
