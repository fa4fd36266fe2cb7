import os
import sys

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from callpipe import create_app
from callpipe.extensions import db
from callpipe.services.media import DownloadResult
from callpipe.services.transcription import TranscriptionResult


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "REDIS_URL": None,
        "RECORDINGS_DIR": str(tmp_path / "recordings"),
        "TWILIO_ACCOUNT_SID": "ACtest",
        "TWILIO_AUTH_TOKEN": "secret",
        "OPENAI_API_KEY": "sk-test",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def payload():
    return {
        "accountSid": "ACtest",
        "callSid": "CA1",
        "recordingSid": "RE1",
        "recordingStatus": "completed",
        "receivedAt": "2026-10-19T09:30:00Z",
        "publicWebhookUrl": "https://hooks.example.com/webhooks/twilio/recording",
        "recordingUrl": "https://host/media/RE1",
        "durationSec": 45,
        "fromNumber": "+15551234567",
        "toNumber": "+15557654321",
    }


# -- HTTP fakes ---------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code=200, chunks=(), text="", json_body=None):
        self.status_code = status_code
        self.chunks = list(chunks)
        self.text = text
        self.json_body = json_body
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def iter_content(self, chunk_size=1):
        yield from self.chunks

    def json(self):
        if self.json_body is None:
            raise ValueError("no json")
        return self.json_body


class FakeSession:
    """Maps url -> FakeResponse (or exception); unknown urls answer 404."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def _answer(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        resp = self.routes.get(url)
        if isinstance(resp, Exception):
            raise resp
        return resp or FakeResponse(404, text="Not Found")

    def get(self, url, **kwargs):
        return self._answer("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._answer("POST", url, kwargs)


# -- queue fakes --------------------------------------------------------------

class FakeRedis:
    def __init__(self):
        self.store = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def delete(self, key):
        self.store.pop(key, None)


class DownRedis:
    def set(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    def delete(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")


class FakeQueue:
    name = "recording_jobs"

    def __init__(self, connection=None):
        self.connection = connection if connection is not None else FakeRedis()
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append({"func": func, "args": args, "kwargs": kwargs})
        return kwargs.get("job_id")

    def fetch_job(self, job_id):
        for job in self.jobs:
            if job["kwargs"].get("job_id") == job_id:
                return job
        return None


# -- pipeline collaborators -----------------------------------------------------

class FakeFetcher:
    def __init__(self, root):
        self.root = root
        self.calls = []

    def download(self, recording_url, credentials, recording_sid):
        self.calls.append((recording_url, credentials, recording_sid))
        path = os.path.join(str(self.root), credentials[0], f"{recording_sid}.mp3")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(b"ID3fake-audio")
        return DownloadResult(path, 13, "mp3")


class FakeTranscriber:
    def __init__(self, text="Hello, I would like to book a table for two.", language="english",
                 english_text=None, error=None):
        self.text = text
        self.language = language
        self.english_text = text if english_text is None else english_text
        self.error = error
        self.calls = []

    def transcribe(self, local_path):
        self.calls.append(local_path)
        if self.error is not None:
            raise self.error
        return TranscriptionResult(
            text=self.text,
            detected_language=self.language,
            english_text=self.english_text,
            raw_provider_payload={"text": self.text, "language": self.language},
            raw_translation_payload={"text": self.english_text},
        )
