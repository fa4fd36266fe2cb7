import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from callpipe.errors import IllegalStepTransition
from callpipe.extensions import db
from callpipe.models import PipelineRun, PipelineStep, RunStatus, StepName, StepStatus
from callpipe.services.tracking import Tracker


@pytest.fixture
def tracker(app):
    return Tracker(db.session)


def test_one_run_per_recording_and_job(tracker):
    first = tracker.start_run("RE1", "RE1", attempt=1)
    again = tracker.start_run("RE1", "RE1", attempt=1)
    redelivered = tracker.start_run("RE1", "RE1", attempt=3)
    assert first == again == redelivered
    assert PipelineRun.query.filter_by(recording_sid="RE1").count() == 1
    assert tracker.get_run(first).attempt == 3


def test_redelivery_reopens_failed_run(tracker):
    run_id = tracker.start_run("RE1", "RE1", attempt=1)
    tracker.finish_run(run_id, RunStatus.FAILED)
    tracker.start_run("RE1", "RE1", attempt=2)
    run = tracker.get_run(run_id)
    assert run.status is RunStatus.STARTED
    assert run.finished_at is None


def test_older_attempt_does_not_lower_counter(tracker):
    run_id = tracker.start_run("RE1", "RE1", attempt=4)
    tracker.start_run("RE1", "RE1", attempt=2)
    assert tracker.get_run(run_id).attempt == 4


def test_runs_without_job_id_are_separate(tracker):
    a = tracker.start_run("RE1", None)
    b = tracker.start_run("RE1", None)
    assert a != b


def test_step_lifecycle(tracker):
    run_id = tracker.start_run("RE1", "RE1")
    handle = tracker.start_step(run_id, StepName.DOWNLOAD)
    assert handle.already_completed is False
    tracker.complete_step(handle.step_id, {"bytes_written": 10})

    again = tracker.start_step(run_id, StepName.DOWNLOAD)
    assert again == (handle.step_id, True)
    step = tracker.get_step(run_id, StepName.DOWNLOAD)
    assert step.status is StepStatus.COMPLETED
    assert step.meta == {"bytes_written": 10}
    assert PipelineStep.query.filter_by(run_id=run_id).count() == 1


def test_failed_step_restarts_with_cleared_error(tracker):
    run_id = tracker.start_run("RE1", "RE1")
    handle = tracker.start_step(run_id, StepName.TRANSCRIBE)
    tracker.fail_step(handle.step_id, RuntimeError("provider down"), meta={"partial": True})
    step = tracker.get_step(run_id, StepName.TRANSCRIBE)
    assert step.status is StepStatus.FAILED
    assert "provider down" in step.error
    assert step.finished_at is not None

    retry = tracker.start_step(run_id, StepName.TRANSCRIBE)
    assert retry.already_completed is False
    step = tracker.get_step(run_id, StepName.TRANSCRIBE)
    assert step.status is StepStatus.STARTED
    assert step.error is None
    assert step.meta is None
    assert step.finished_at is None


def test_completed_step_cannot_fail_or_complete_again(tracker):
    run_id = tracker.start_run("RE1", "RE1")
    handle = tracker.start_step(run_id, StepName.ANALYZE)
    tracker.complete_step(handle.step_id)
    with pytest.raises(IllegalStepTransition):
        tracker.complete_step(handle.step_id)
    with pytest.raises(IllegalStepTransition):
        tracker.fail_step(handle.step_id, "late failure")


def test_failed_step_cannot_complete_without_restart(tracker):
    run_id = tracker.start_run("RE1", "RE1")
    handle = tracker.start_step(run_id, StepName.PERSIST)
    tracker.fail_step(handle.step_id, "boom")
    with pytest.raises(IllegalStepTransition):
        tracker.complete_step(handle.step_id)


@pytest.mark.parametrize("current,target,allowed", [
    (StepStatus.STARTED, StepStatus.COMPLETED, True),
    (StepStatus.STARTED, StepStatus.FAILED, True),
    (StepStatus.FAILED, StepStatus.STARTED, True),
    (StepStatus.FAILED, StepStatus.COMPLETED, False),
    (StepStatus.COMPLETED, StepStatus.STARTED, False),
    (StepStatus.COMPLETED, StepStatus.FAILED, False),
])
def test_step_state_machine(current, target, allowed):
    assert current.can_transition_to(target) is allowed
    step = PipelineStep(run_id=1, step="x", status=current)
    if allowed:
        assert step.transition(target).status is target
    else:
        with pytest.raises(IllegalStepTransition):
            step.transition(target)


def test_finish_run_rejects_started(tracker):
    run_id = tracker.start_run("RE1", "RE1")
    with pytest.raises(ValueError):
        tracker.finish_run(run_id, RunStatus.STARTED)


def test_concurrent_redelivery_creates_one_run(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'runs.db'}",
                           connect_args={"check_same_thread": False, "timeout": 30})
    db.metadata.create_all(engine)
    barrier = threading.Barrier(2)
    run_ids, errors = [], []

    def deliver(attempt):
        with Session(engine) as session:
            barrier.wait()
            try:
                run_ids.append(Tracker(session).start_run("RE1", "RE1", attempt=attempt))
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

    workers = [threading.Thread(target=deliver, args=(n,)) for n in (1, 2)]
    for t in workers:
        t.start()
    for t in workers:
        t.join()

    assert errors == []
    assert len(run_ids) == 2 and run_ids[0] == run_ids[1]
    with Session(engine) as session:
        assert session.scalar(select(func.count()).select_from(PipelineRun)) == 1
    engine.dispose()
