"""Speech-to-text boundary.

Calls an OpenAI compatible audio API directly with ``requests``: one
transcription request (``verbose_json`` so the detected language comes back)
and one translation-to-English request against the same file. Failures are
raised as ProviderError and never retried here; redelivery is the queue's
job.
"""
import mimetypes
import os
from collections import namedtuple

import requests

from ..errors import ProviderError

TranscriptionResult = namedtuple(
    "TranscriptionResult",
    ["text", "detected_language", "english_text", "raw_provider_payload", "raw_translation_payload"],
)

DEFAULT_LANGUAGE = "English"


def normalize_language(lang):
    """Map a provider language code or name onto English/Greek."""
    value = (lang or "").strip().lower()
    if value.startswith("en"):
        return "English"
    if value.startswith("el") or value.startswith("gr") or "greek" in value:
        return "Greek"
    return DEFAULT_LANGUAGE


def format_detected_language(lang):
    """Display form: short codes upper-cased, names capitalised."""
    raw = (lang or "").strip()
    if not raw:
        return "unknown"
    if len(raw) <= 3:
        return raw.upper()
    return raw[0].upper() + raw[1:].lower()


class TranscriptionClient:
    def __init__(self, api_key, base_url="https://api.openai.com/v1", model="whisper-1",
                 timeout=60, session=None):
        self.api_key = api_key
        self.base_url = (base_url or "").rstrip("/")
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post_audio(self, endpoint, local_path, data):
        if not self.api_key:
            raise ProviderError("OPENAI_API_KEY is required to transcribe")
        url = f"{self.base_url}/audio/{endpoint}"
        content_type = mimetypes.guess_type(local_path)[0] or "application/octet-stream"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            with open(local_path, "rb") as fh:
                files = {"file": (os.path.basename(local_path), fh, content_type)}
                r = self.session.post(url, headers=headers, data=data, files=files, timeout=self.timeout)
        except OSError as e:
            raise ProviderError(f"cannot read audio {local_path}: {e}") from e
        except requests.RequestException as e:
            raise ProviderError(f"{endpoint} request failed: {e}") from e

        if r.status_code < 200 or r.status_code >= 300:
            raise ProviderError(
                f"{endpoint} failed ({r.status_code}): {(r.text or '')[:300]}",
                status=r.status_code,
            )
        try:
            body = r.json()
        except ValueError as e:
            raise ProviderError(f"{endpoint} returned a non-JSON body", status=r.status_code) from e
        if not isinstance(body, dict):
            raise ProviderError(f"{endpoint} returned an unexpected payload", status=r.status_code, payload=body)
        return body

    def transcribe(self, local_path):
        raw = self._post_audio(
            "transcriptions", local_path, {"model": self.model, "response_format": "verbose_json"}
        )
        text = raw.get("text") if isinstance(raw.get("text"), str) else ""
        language = raw.get("language") if isinstance(raw.get("language"), str) else "unknown"

        translation = self._post_audio("translations", local_path, {"model": self.model})
        english = translation.get("text") if isinstance(translation.get("text"), str) else ""

        return TranscriptionResult(
            text=text,
            detected_language=language,
            english_text=english,
            raw_provider_payload=raw,
            raw_translation_payload=translation,
        )
