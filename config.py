import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///callpipe.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # queue
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    QUEUE_NAME = os.getenv("QUEUE_NAME", "recording_jobs")
    JOB_MAX_ATTEMPTS = int(os.getenv("JOB_MAX_ATTEMPTS", "5"))
    JOB_BACKOFF_SECONDS = int(os.getenv("JOB_BACKOFF_SECONDS", "2"))
    JOB_TIMEOUT = int(os.getenv("JOB_TIMEOUT", "900"))
    JOB_RESULT_TTL = int(os.getenv("JOB_RESULT_TTL", "86400"))
    JOB_FAILURE_TTL = int(os.getenv("JOB_FAILURE_TTL", str(7 * 86400)))
    JOB_DEDUP_TTL = int(os.getenv("JOB_DEDUP_TTL", "86400"))
    WORKER_CONCURRENCY = int(os.getenv("WORKER_CONCURRENCY", "5"))

    # media
    RECORDINGS_DIR = os.getenv("RECORDINGS_DIR", "./recordings")
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    PUBLIC_WEBHOOK_URL = os.getenv("PUBLIC_WEBHOOK_URL")

    # transcription provider (OpenAI compatible)
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_TRANSCRIBE_MODEL = os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")

    HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "60"))
