"""Error taxonomy shared by the producer, the pipeline steps and the store.

Only ``ValidationError`` is treated as fatal by the queue entrypoint. Every
other error is re-raised so RQ's retry policy decides on redelivery.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(PipelineError):
    """Malformed job payload or missing identity fields."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or []


class ConfigurationError(PipelineError):
    """A required setting (credentials, recording url) is missing."""


class AuthenticationError(PipelineError):
    def __init__(self, message, status=401):
        super().__init__(message)
        self.status = status


class DownloadError(PipelineError):
    """One media candidate could not be fetched."""

    def __init__(self, message, status=None, url=None):
        super().__init__(message)
        self.status = status
        self.url = url


class DownloadExhausted(PipelineError):
    """Every media candidate failed; ``last_error`` holds the final cause."""

    def __init__(self, message, last_error=None):
        super().__init__(message)
        self.last_error = last_error


class ProviderError(PipelineError):
    """Transcription or translation backend failure."""

    def __init__(self, message, status=None, payload=None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class PersistenceError(PipelineError):
    """Store unavailable or a write violated a constraint."""


class IllegalStepTransition(PipelineError):
    def __init__(self, current, target):
        super().__init__(f"illegal step transition {current} -> {target}")
        self.current = current
        self.target = target


def error_to_string(err):
    """Human readable form stored on Step/Call rows."""
    msg = str(err)
    name = type(err).__name__
    if not msg:
        return name
    last = getattr(err, "last_error", None)
    if last is not None:
        return f"{name}: {msg} (last error: {type(last).__name__}: {last})"
    return f"{name}: {msg}"
