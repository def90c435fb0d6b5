"""Error codes dictionary for the timeline editing API.

Single source of truth for every error code, its retryability and the
suggested recovery action. Used by the exception classes and the HTTP
exception handlers to build machine-readable error responses.
"""

from typing import Any, TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_action: str
    suggested_endpoint: str
    suggested_fix: str
    parameters: dict[str, Any]


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource errors (retryable after refresh)
    # ==========================================================================
    "CLIP_NOT_FOUND": {
        "retryable": True,
        "suggested_action": "refresh_ids",
        "suggested_endpoint": "GET /api/sessions/{session_id}",
    },
    "LAYER_NOT_FOUND": {
        "retryable": True,
        "suggested_action": "refresh_ids",
        "suggested_endpoint": "GET /api/sessions/{session_id}",
    },
    "MEDIA_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Register the media source before adding it to the timeline",
    },
    "SESSION_NOT_FOUND": {
        "retryable": False,
    },
    # ==========================================================================
    # Validation errors (not retryable, fix input)
    # ==========================================================================
    "MISSING_REQUIRED_FIELD": {
        "retryable": False,
    },
    "INVALID_FIELD_VALUE": {
        "retryable": False,
    },
    "INVALID_DURATION": {
        "retryable": False,
        "suggested_fix": "Keep the visible duration (duration - trimStart - trimEnd) above 0.1s",
    },
    "CLIPBOARD_EMPTY": {
        "retryable": False,
    },
    "LAST_LAYER": {
        "retryable": False,
        "suggested_fix": "Add another audio layer before removing this one",
    },
    "OPERATION_NOT_SUPPORTED": {
        "retryable": False,
    },
    # ==========================================================================
    # Conflict errors
    # ==========================================================================
    "CLIP_OVERLAP": {
        "retryable": False,
        "suggested_fix": "Move the clip to a free gap or a different depth first",
    },
    "HISTORY_BUSY": {
        "retryable": True,
        "suggested_action": "wait_and_retry",
        "parameters": {"delay_ms": 100},
    },
    # ==========================================================================
    # Persistence errors
    # ==========================================================================
    "OVERLAPPING_CLIPS": {
        "retryable": False,
        "suggested_action": "reload_session",
        "suggested_endpoint": "GET /api/sessions/{session_id}",
    },
    "STORAGE_ERROR": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 2000, "max_retries": 2},
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "COMMAND_FAILED": {
        "retryable": False,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
        "suggested_action": "retry_with_backoff",
        "parameters": {"delay_ms": 2000, "max_retries": 2},
    },
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "BAD_REQUEST": {
        "retryable": False,
    },
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "NOT_FOUND": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested actions
    """
    return ERROR_CODES.get(code, {"retryable": False})
