"""Custom exceptions for the timeline core.

Every failure is local and raised before any mutation of the canonical
clip state. Each exception carries a machine-readable error code that the
HTTP layer turns into an envelope error response.
"""

from typing import Any

from timeline_core.constants.error_codes import get_error_spec
from timeline_core.schemas.envelope import ErrorInfo, ErrorLocation, SuggestedAction


class TimelineError(Exception):
    """Base exception for all timeline errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        location: ErrorLocation | None = None,
        suggested_fix: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.location = location
        self.suggested_fix = suggested_fix
        self.details = details
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)

        suggested_actions: list[SuggestedAction] = []
        if "suggested_action" in spec:
            suggested_actions.append(
                SuggestedAction(
                    action=spec["suggested_action"],
                    endpoint=spec.get("suggested_endpoint"),
                    parameters=spec.get("parameters", {}),
                )
            )

        return ErrorInfo(
            code=self.code,
            message=self.message,
            location=self.location,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
            suggested_actions=suggested_actions,
            details=self.details,
        )


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class ResourceNotFoundError(TimelineError):
    """Base class for resource not found errors."""

    status_code = 404


class ClipNotFoundError(ResourceNotFoundError):
    """Clip not found."""

    code = "CLIP_NOT_FOUND"
    message = "Clip not found"

    def __init__(self, clip_id: str | None = None, layer_id: str | None = None):
        message = f"Clip not found: {clip_id}" if clip_id else self.message
        if clip_id and layer_id:
            message += f" (layer {layer_id})"
        location = ErrorLocation(clip_id=clip_id, layer_id=layer_id) if clip_id else None
        super().__init__(message, location=location)


class LayerNotFoundError(ResourceNotFoundError):
    """Audio layer not found."""

    code = "LAYER_NOT_FOUND"
    message = "Layer not found"

    def __init__(self, layer_id: str | None = None):
        message = f"Layer not found: {layer_id}" if layer_id else self.message
        location = ErrorLocation(layer_id=layer_id) if layer_id else None
        super().__init__(message, location=location)


class MediaNotFoundError(ResourceNotFoundError):
    """Media source not known to the catalog."""

    code = "MEDIA_NOT_FOUND"
    message = "Media not found"

    def __init__(self, source_id: str | None = None):
        message = f"Media not found: {source_id}" if source_id else self.message
        super().__init__(message)


class SessionNotFoundError(ResourceNotFoundError):
    """No stored session for the given id."""

    code = "SESSION_NOT_FOUND"
    message = "Session not found"

    def __init__(self, session_id: str | None = None):
        message = f"Session not found: {session_id}" if session_id else self.message
        location = ErrorLocation(session_id=session_id) if session_id else None
        super().__init__(message, location=location)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(TimelineError):
    """Base class for validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400


class MissingRequiredFieldError(ValidationError):
    """Required field is missing."""

    code = "MISSING_REQUIRED_FIELD"
    message = "Required field is missing"

    def __init__(self, field: str | None = None, operation: str | None = None):
        message = f"Required field is missing: {field}" if field else self.message
        if operation:
            message += f" (operation {operation})"
        location = ErrorLocation(field=field) if field else None
        super().__init__(message, location=location)


class InvalidFieldValueError(ValidationError):
    """Field value is invalid."""

    code = "INVALID_FIELD_VALUE"
    message = "Invalid field value"

    def __init__(
        self, message: str | None = None, *, field: str | None = None, value: Any = None
    ):
        msg = message or self.message
        if message is None and field and value is not None:
            msg = f"Invalid value for field '{field}': {value}"
        location = ErrorLocation(field=field) if field else None
        super().__init__(msg, location=location)


class InvalidDurationError(ValidationError):
    """Resulting visible duration is at or below the allowed floor."""

    code = "INVALID_DURATION"
    message = "Visible duration is too short"

    def __init__(
        self,
        visible_duration: float | None = None,
        *,
        minimum: float | None = None,
        clip_id: str | None = None,
    ):
        message = self.message
        if visible_duration is not None and minimum is not None:
            message = (
                f"Visible duration {visible_duration:.3f}s must be greater than {minimum}s"
            )
        location = ErrorLocation(clip_id=clip_id) if clip_id else None
        super().__init__(message, location=location)


class ClipboardEmptyError(ValidationError):
    """Nothing to paste."""

    code = "CLIPBOARD_EMPTY"
    message = "Clipboard is empty"


class LastLayerError(ValidationError):
    """The last remaining audio layer cannot be removed."""

    code = "LAST_LAYER"
    message = "Cannot remove the last audio layer"

    def __init__(self, layer_id: str | None = None):
        location = ErrorLocation(layer_id=layer_id) if layer_id else None
        super().__init__(self.message, location=location)


class OperationNotSupportedError(ValidationError):
    """Operation is not supported."""

    code = "OPERATION_NOT_SUPPORTED"
    message = "Operation is not supported"

    def __init__(self, operation: str | None = None):
        message = f"Operation not supported: {operation}" if operation else self.message
        super().__init__(message)


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(TimelineError):
    """Base class for conflict errors."""

    code = "CONFLICT"
    status_code = 409


class ClipOverlapError(ConflictError):
    """Clips would overlap at the same depth."""

    code = "CLIP_OVERLAP"
    message = "Clips would overlap"

    def __init__(
        self,
        message: str | None = None,
        *,
        clip_id: str | None = None,
        layer_id: str | None = None,
        conflicting_clip_id: str | None = None,
    ):
        msg = message or self.message
        if message is None and conflicting_clip_id:
            msg = f"Clip would overlap with: {conflicting_clip_id}"
        location = ErrorLocation(clip_id=clip_id, layer_id=layer_id) if clip_id else None
        super().__init__(msg, location=location)


class HistoryBusyError(ConflictError):
    """A history transition is already in progress."""

    code = "HISTORY_BUSY"
    message = "Another history operation is in progress"


# =============================================================================
# Persistence Errors (400/500)
# =============================================================================


class OverlappingClipsError(ValidationError):
    """Externally supplied state violates the no-overlap invariant."""

    code = "OVERLAPPING_CLIPS"
    message = "Track contains overlapping clips"

    def __init__(self, track: str, violations: list[dict[str, Any]]):
        self.track = track
        self.violations = violations
        message = f"Track {track} contains {len(violations)} overlapping clip pair(s)"
        super().__init__(
            message,
            location=ErrorLocation(track=track),
            details={"track": track, "violations": violations},
        )


class StorageError(TimelineError):
    """Session storage failure."""

    code = "STORAGE_ERROR"
    status_code = 500
    message = "Storage error"


# =============================================================================
# Command Errors (500)
# =============================================================================


class CommandExecutionError(TimelineError):
    """A command failed while executing or undoing."""

    code = "COMMAND_FAILED"
    status_code = 500
    message = "Command execution failed"

    def __init__(self, message: str | None = None, *, command_type: str | None = None):
        self.command_type = command_type
        msg = message or self.message
        if command_type:
            msg = f"{msg} ({command_type})"
        super().__init__(msg)
