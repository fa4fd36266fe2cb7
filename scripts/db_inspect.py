"""Print the most recent pipeline runs with their steps.

Usage:
  python scripts/db_inspect.py [--limit 10] [--recording-sid RE...]
"""
import argparse
import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from callpipe import create_app
from callpipe.models import PipelineRun, STEP_ORDER


def inspect(limit=10, recording_sid=None):
    q = PipelineRun.query
    if recording_sid:
        q = q.filter_by(recording_sid=recording_sid)
    for run in q.order_by(PipelineRun.started_at.desc()).limit(limit).all():
        print(f"\n=== run {run.id} sid={run.recording_sid} job={run.job_id} "
              f"status={run.status.value} attempt={run.attempt} ===")
        steps = sorted(run.steps, key=lambda s: STEP_ORDER.index(s.step))
        for s in steps:
            line = f"  {s.step:<20} {s.status.value:<10} meta={s.meta}"
            if s.error:
                line += f" error={s.error[:200]}"
            print(line)


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument("--limit", type=int, default=10)
    parser.add_argument("--recording-sid")
    args = parser.parse_args()
    app = create_app()
    with app.app_context():
        inspect(args.limit, args.recording_sid)
    print('\nDone.')
