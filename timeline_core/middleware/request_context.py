"""Per-request bookkeeping and envelope builders.

Routes open a ``RequestContext`` first thing, append warnings to it while
working, and close with ``envelope_success``. Exception handlers build
their own context and answer through ``envelope_error`` or
``envelope_error_from_exception``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from uuid import uuid4

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from timeline_core.constants.error_codes import get_error_spec
from timeline_core.exceptions import TimelineError
from timeline_core.schemas.envelope import EnvelopeResponse, ErrorInfo, ResponseMeta


@dataclass
class RequestContext:
    request_id: str
    start_time: float
    session_id: str | None = None
    warnings: list[str] = field(default_factory=list)


def create_request_context(session_id: str | None = None) -> RequestContext:
    return RequestContext(
        request_id=str(uuid4()),
        start_time=perf_counter(),
        session_id=session_id,
    )


def build_meta(context: RequestContext, api_version: str = "1.0") -> ResponseMeta:
    return ResponseMeta(
        api_version=api_version,
        session_id=context.session_id,
        processing_time_ms=int((perf_counter() - context.start_time) * 1000),
        timestamp=datetime.now(timezone.utc),
        warnings=context.warnings,
    )


def envelope_success(context: RequestContext, data: object) -> EnvelopeResponse:
    return EnvelopeResponse(request_id=context.request_id, data=data, meta=build_meta(context))


def _error_response(context: RequestContext, error: ErrorInfo, status_code: int) -> JSONResponse:
    envelope = EnvelopeResponse(request_id=context.request_id, error=error, meta=build_meta(context))
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope.model_dump(exclude_none=True)),
    )


def envelope_error(
    context: RequestContext,
    *,
    code: str,
    message: str,
    status_code: int,
) -> JSONResponse:
    """Error envelope for failures that are not a TimelineError (HTTP, validation)."""
    spec = get_error_spec(code)
    error = ErrorInfo(
        code=code,
        message=message,
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )
    return _error_response(context, error, status_code)


def envelope_error_from_exception(context: RequestContext, exc: TimelineError) -> JSONResponse:
    """Convert a TimelineError to an envelope error response."""
    error = exc.to_error_info()
    if context.session_id and error.location is not None and error.location.session_id is None:
        error.location.session_id = context.session_id
    return _error_response(context, error, exc.status_code)
