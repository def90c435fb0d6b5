from timeline_core.schemas.envelope import EnvelopeResponse, ErrorInfo, ResponseMeta
from timeline_core.schemas.session import SessionPayload, StoredSession
from timeline_core.schemas.timeline import (
    AudioLayer,
    AutoTrimResult,
    Clip,
    ClipCandidate,
    ClipDescriptor,
    OverlapViolation,
    TimelineSnapshot,
)

__all__ = [
    "Clip",
    "ClipCandidate",
    "ClipDescriptor",
    "AudioLayer",
    "TimelineSnapshot",
    "OverlapViolation",
    "AutoTrimResult",
    "SessionPayload",
    "StoredSession",
    "EnvelopeResponse",
    "ErrorInfo",
    "ResponseMeta",
]
