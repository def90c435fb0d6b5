"""Response envelope shared by every endpoint.

Success responses fill ``data``; failures fill ``error`` with a code from
the error code table. ``meta.session_id`` echoes the session a request
addressed, when it addressed one.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    api_version: str = "1.0"
    session_id: str | None = None
    processing_time_ms: int
    timestamp: datetime
    warnings: list[str] = Field(default_factory=list)


class ErrorLocation(BaseModel):
    """Where in the session an error points: a field, clip, layer or track."""

    session_id: str | None = None
    field: str | None = None
    clip_id: str | None = None
    layer_id: str | None = None
    track: str | None = None


class SuggestedAction(BaseModel):
    action: str
    endpoint: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class ErrorInfo(BaseModel):
    code: str
    message: str
    location: ErrorLocation | None = None
    retryable: bool = False
    suggested_fix: str | None = None
    suggested_actions: list[SuggestedAction] = Field(default_factory=list)
    # Structured payload, e.g. the full violation list of a rejected save
    details: dict[str, Any] | None = None


class EnvelopeResponse(BaseModel):
    request_id: str
    data: Any | None = None
    error: ErrorInfo | None = None
    meta: ResponseMeta
