"""Typed job record handed from the producer to the pipeline.

Queue payloads use the provider's camelCase field names; the model exposes
snake_case attributes and rejects payloads missing identity fields before
they reach the pipeline.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..errors import ValidationError


class RecordingJob(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    account_sid: str = ""
    call_sid: str = Field(min_length=1)
    recording_sid: str = Field(min_length=1)
    recording_status: str = "completed"
    received_at: Optional[str] = None
    raw_body: Optional[Union[str, Dict[str, Any]]] = None
    public_webhook_url: Optional[str] = None
    recording_url: Optional[str] = None
    duration_sec: Optional[int] = Field(default=None, ge=0)
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    direction: Optional[str] = None

    @field_validator("call_sid", "recording_sid", mode="before")
    @classmethod
    def _strip_identity(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("recording_url", "from_number", "to_number", "direction", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("received_at")
    @classmethod
    def _iso_timestamp(cls, v):
        if v is None:
            return v
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError("receivedAt must be an ISO-8601 timestamp") from e
        return v

    @property
    def dedup_key(self):
        return self.recording_sid

    @classmethod
    def from_payload(cls, payload):
        """Validate a raw dict; raise callpipe's ValidationError on failure."""
        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, dict):
            raise ValidationError(f"job payload must be an object, got {type(payload).__name__}")
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ValidationError(f"invalid job payload: {', '.join(fields)}", errors=e.errors()) from e

    def to_payload(self):
        return self.model_dump(by_alias=True, exclude_none=True)
