from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from redis import Redis
from rq import Queue


class RecordingQueue:
    """Holds the Redis connection and the RQ queue recording jobs go to.

    Unlike a best-effort wrapper this never falls back to running the job
    inline: if Redis is unreachable the producer reports the backend as
    unavailable and the caller answers with a retryable status.
    """

    def __init__(self):
        self.redis = None
        self.queue = None
        self.settings = {}

    def init_app(self, app):
        self.settings = {
            "max_attempts": app.config.get("JOB_MAX_ATTEMPTS", 5),
            "backoff_seconds": app.config.get("JOB_BACKOFF_SECONDS", 2),
            "job_timeout": app.config.get("JOB_TIMEOUT", 900),
            "result_ttl": app.config.get("JOB_RESULT_TTL", 86400),
            "failure_ttl": app.config.get("JOB_FAILURE_TTL", 7 * 86400),
            "dedup_ttl": app.config.get("JOB_DEDUP_TTL", 86400),
        }
        redis_url = app.config.get("REDIS_URL")
        if not redis_url:
            app.logger.warning("REDIS_URL not configured; recording jobs cannot be enqueued")
            self.redis = None
            self.queue = None
            return
        # from_url does not connect; connection errors surface on first use
        self.redis = Redis.from_url(redis_url)
        self.queue = Queue(app.config.get("QUEUE_NAME", "recording_jobs"), connection=self.redis)

    def use(self, queue):
        """Swap in another queue object (tests, scripts)."""
        self.queue = queue
        self.redis = getattr(queue, "connection", None)


db = SQLAlchemy()
migrate = Migrate()
rq = RecordingQueue()
