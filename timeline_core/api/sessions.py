"""Session API: load/save sessions and apply undoable edits to them.

Domain errors propagate as TimelineError and are turned into envelope
error responses by the app-level handler.
"""

import logging

from fastapi import APIRouter
from pydantic import ValidationError as PydanticValidationError

from timeline_core.api.deps import Registry
from timeline_core.exceptions import (
    InvalidFieldValueError,
    MissingRequiredFieldError,
    OperationNotSupportedError,
)
from timeline_core.middleware.request_context import create_request_context, envelope_success
from timeline_core.schemas.envelope import EnvelopeResponse
from timeline_core.schemas.operations import (
    HistoryActionResult,
    HistoryStatus,
    OperationRequest,
    OperationResult,
    SessionSaveRequest,
    ValidateRequest,
    ValidateResponse,
)
from timeline_core.schemas.session import StoredSession
from timeline_core.schemas.timeline import ClipDescriptor
from timeline_core.services.editor import TimelineEditor
from timeline_core.services.session_store import to_snapshot
from timeline_core.services.track_validator import validate_track

logger = logging.getLogger(__name__)

router = APIRouter()


def _history_status(editor: TimelineEditor) -> HistoryStatus:
    history = editor.history
    return HistoryStatus(
        can_undo=history.can_undo(),
        can_redo=history.can_redo(),
        undo_description=history.undo_description,
        redo_description=history.redo_description,
        undo_depth=history.undo_depth,
        redo_depth=history.redo_depth,
        total_executed=history.total_executed,
        is_dirty=editor.timeline.is_dirty,
    )


def _session_data(editor: TimelineEditor) -> dict:
    snapshot = editor.snapshot()
    return {
        "session_video": [c.to_payload() for c in snapshot.video_clips],
        "session_audio": [layer.to_payload() for layer in snapshot.audio_layers],
        "history": _history_status(editor).model_dump(),
    }


def _require(request: OperationRequest, field: str) -> None:
    if getattr(request, field) is None:
        raise MissingRequiredFieldError(field, request.operation)


def apply_operation(editor: TimelineEditor, request: OperationRequest) -> OperationResult:
    """Run one operation request against an editor."""
    op = request.operation
    clip = layer = None
    clips = []
    count = None

    if op == "add":
        _require(request, "source_id")
        descriptor = ClipDescriptor(
            track=request.track,
            source_id=request.source_id,
            url=request.url,
            timestamp=request.timestamp,
            duration=request.duration,
            trim_start=request.trim_start,
            trim_end=request.trim_end,
            depth=request.depth,
            layer_id=request.layer_id,
        )
        clip = editor.add(descriptor)
        message = f"Added {request.track} clip {clip.id}"
    elif op == "move":
        _require(request, "clip_id")
        _require(request, "timestamp")
        clip = editor.move(
            request.clip_id, request.timestamp, request.depth, auto_trim=request.auto_trim
        )
        message = f"Moved clip {clip.id} to {clip.timestamp:.3f}s"
    elif op == "trim":
        _require(request, "clip_id")
        clip = editor.trim(
            request.clip_id,
            trim_start=request.trim_start,
            trim_end=request.trim_end,
            timestamp=request.timestamp,
        )
        message = f"Trimmed clip {clip.id}"
    elif op == "remove":
        _require(request, "clip_id")
        editor.remove(request.clip_id)
        message = f"Removed clip {request.clip_id}"
    elif op == "toggle_layer_mute":
        _require(request, "layer_id")
        layer = editor.toggle_layer_mute(request.layer_id)
        message = f"Layer {layer.name} {'muted' if layer.muted else 'unmuted'}"
    elif op == "toggle_clip_mute":
        _require(request, "clip_id")
        clip = editor.toggle_clip_mute(request.clip_id)
        message = f"Clip {clip.id} {'muted' if clip.muted else 'unmuted'}"
    elif op == "add_layer":
        layer = editor.add_layer(request.name)
        message = f"Added layer {layer.name}"
    elif op == "remove_layer":
        _require(request, "layer_id")
        editor.remove_layer(request.layer_id)
        message = f"Removed layer {request.layer_id}"
    elif op == "rename_layer":
        _require(request, "layer_id")
        _require(request, "name")
        layer = editor.rename_layer(request.layer_id, request.name)
        message = f"Renamed layer {layer.id} to {layer.name}"
    elif op == "copy":
        copied = editor.copy_selection(
            request.video_ids, [(r.clip_id, r.layer_id) for r in request.audio_refs]
        )
        count = len(copied)
        message = f"Copied {count} clip(s)"
    elif op == "paste":
        _require(request, "playhead")
        clips = editor.paste(request.playhead)
        count = len(clips)
        message = f"Pasted {count} clip(s)"
    elif op == "delete_selection":
        count = editor.delete_selection(
            request.video_ids, [(r.clip_id, r.layer_id) for r in request.audio_refs]
        )
        message = f"Deleted {count} clip(s)"
    else:
        raise OperationNotSupportedError(op)

    return OperationResult(
        operation=op,
        message=message,
        clip=clip.to_payload() if clip else None,
        layer=layer.to_payload() if layer else None,
        clips=[c.to_payload() for c in clips],
        count=count,
        history=_history_status(editor),
    )


@router.get("/sessions/{session_id}", response_model=EnvelopeResponse)
async def get_session(session_id: str, registry: Registry) -> EnvelopeResponse:
    context = create_request_context(session_id)
    editor = registry.get(session_id)
    return envelope_success(context, _session_data(editor))


@router.put("/sessions/{session_id}", response_model=EnvelopeResponse)
async def put_session(
    session_id: str, body: SessionSaveRequest, registry: Registry
) -> EnvelopeResponse:
    """Replace and persist a whole session.

    Legacy flat audio is migrated before validation. Any overlap rejects
    the request and leaves both the stored and the live session unchanged.
    """
    context = create_request_context(session_id)
    try:
        snapshot, migrated = to_snapshot(
            StoredSession(session_video=body.session_video, session_audio=body.session_audio)
        )
    except PydanticValidationError as e:
        raise InvalidFieldValueError(
            f"Malformed session_audio: {e.error_count()} validation error(s)",
            field="session_audio",
        ) from e
    if migrated:
        context.warnings.append("Legacy audio format migrated to layers")
    registry.store.save(session_id, snapshot)
    editor = registry.replace(session_id, snapshot)
    logger.info(f"Session {session_id} replaced")
    return envelope_success(context, _session_data(editor))


@router.post("/sessions/{session_id}/save", response_model=EnvelopeResponse)
async def save_session(session_id: str, registry: Registry) -> EnvelopeResponse:
    context = create_request_context(session_id)
    editor = registry.save(session_id)
    return envelope_success(context, _session_data(editor))


@router.post("/sessions/{session_id}/operations", response_model=EnvelopeResponse)
async def apply_session_operation(
    session_id: str, body: OperationRequest, registry: Registry
) -> EnvelopeResponse:
    context = create_request_context(session_id)
    editor = registry.get(session_id)
    result = apply_operation(editor, body)
    logger.info(f"Session {session_id}: {result.message}")
    return envelope_success(context, result.model_dump())


@router.post("/sessions/{session_id}/undo", response_model=EnvelopeResponse)
async def undo(session_id: str, registry: Registry) -> EnvelopeResponse:
    context = create_request_context(session_id)
    editor = registry.get(session_id)
    applied = editor.undo()
    if not applied:
        context.warnings.append("Nothing to undo")
    result = HistoryActionResult(applied=applied, history=_history_status(editor))
    return envelope_success(context, result.model_dump())


@router.post("/sessions/{session_id}/redo", response_model=EnvelopeResponse)
async def redo(session_id: str, registry: Registry) -> EnvelopeResponse:
    context = create_request_context(session_id)
    editor = registry.get(session_id)
    applied = editor.redo()
    if not applied:
        context.warnings.append("Nothing to redo")
    result = HistoryActionResult(applied=applied, history=_history_status(editor))
    return envelope_success(context, result.model_dump())


@router.get("/sessions/{session_id}/history", response_model=EnvelopeResponse)
async def get_history(session_id: str, registry: Registry) -> EnvelopeResponse:
    context = create_request_context(session_id)
    editor = registry.get(session_id)
    return envelope_success(context, _history_status(editor).model_dump())


@router.post("/sessions/{session_id}/validate", response_model=EnvelopeResponse)
async def validate_clips(session_id: str, body: ValidateRequest) -> EnvelopeResponse:
    context = create_request_context(session_id)
    result = ValidateResponse.from_violations(validate_track(body.clips))
    return envelope_success(context, result.model_dump())
