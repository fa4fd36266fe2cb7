"""Run a pool of RQ workers for recording jobs inside the Flask app context.

Usage:
  source .venv/bin/activate
  export OBJC_DISABLE_INITIALIZE_FORK_SAFETY=YES   # macOS fork safety if needed
  python scripts/run_rq_worker.py [--workers N] [--burst]

Each worker process handles one job at a time for its whole pipeline, so
``--workers`` (default WORKER_CONCURRENCY) bounds the jobs in flight.
Jobs that exhaust their retries stay in RQ's failed job registry.
"""

import argparse
import os
import sys

# Ensure project root is on sys.path when running from scripts/ or other cwd
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
  sys.path.insert(0, ROOT)

from callpipe import create_app
import redis
from rq import Queue
from rq.worker_pool import WorkerPool


def main(argv=None):
  parser = argparse.ArgumentParser(description="Run recording pipeline workers")
  parser.add_argument("--workers", type=int, default=None)
  parser.add_argument("--burst", action="store_true", help="exit once the queue is empty")
  parser.add_argument("--log-level", default="INFO")
  args = parser.parse_args(argv)

  app = create_app()
  redis_url = app.config.get('REDIS_URL') or os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
  conn = redis.from_url(redis_url)
  num_workers = args.workers or app.config.get('WORKER_CONCURRENCY', 5)
  with app.app_context():
    q = Queue(app.config.get('QUEUE_NAME', 'recording_jobs'), connection=conn)
    pool = WorkerPool([q], connection=conn, num_workers=num_workers)
    app.logger.info('RQ worker pool starting (pid %s, workers %s, queue %s)', os.getpid(), num_workers, q.name)
    try:
      pool.start(burst=args.burst, logging_level=args.log_level)
    finally:
      app.logger.info('RQ worker pool exiting (pid %s)', os.getpid())


if __name__ == '__main__':
  main()
