from typing import Any, Literal

from pydantic import BaseModel, Field

from timeline_core.schemas.timeline import Clip, OverlapViolation, TrackKind

OperationName = Literal[
    "add",
    "move",
    "trim",
    "remove",
    "toggle_layer_mute",
    "toggle_clip_mute",
    "add_layer",
    "remove_layer",
    "rename_layer",
    "copy",
    "paste",
    "delete_selection",
]


class AudioRef(BaseModel):
    clip_id: str
    layer_id: str | None = None


class OperationRequest(BaseModel):
    """One edit against a session; which fields apply depends on ``operation``."""

    operation: OperationName
    track: TrackKind = "video"
    clip_id: str | None = None
    source_id: str | None = None
    layer_id: str | None = None
    name: str | None = None
    url: str | None = None
    timestamp: float | None = None
    duration: float | None = Field(default=None, gt=0)
    trim_start: float | None = None
    trim_end: float | None = None
    depth: int | None = Field(default=None, ge=0)
    auto_trim: bool = True
    video_ids: list[str] = Field(default_factory=list)
    audio_refs: list[AudioRef] = Field(default_factory=list)
    playhead: float | None = None


class HistoryStatus(BaseModel):
    can_undo: bool
    can_redo: bool
    undo_description: str | None = None
    redo_description: str | None = None
    undo_depth: int
    redo_depth: int
    total_executed: int
    is_dirty: bool


class OperationResult(BaseModel):
    operation: str
    message: str
    clip: dict[str, Any] | None = None
    layer: dict[str, Any] | None = None
    clips: list[dict[str, Any]] = Field(default_factory=list)
    count: int | None = None
    history: HistoryStatus


class HistoryActionResult(BaseModel):
    applied: bool
    history: HistoryStatus


class SessionSaveRequest(BaseModel):
    """Full session replacement; audio may be layered or the legacy flat list."""

    session_video: list[Clip] = Field(default_factory=list)
    session_audio: list[dict[str, Any]] = Field(default_factory=list)


class ValidateRequest(BaseModel):
    clips: list[Clip]


class ValidateResponse(BaseModel):
    valid: bool
    violations: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_violations(cls, violations: list[OverlapViolation]) -> "ValidateResponse":
        return cls(
            valid=not violations,
            violations=[v.model_dump(by_alias=True) for v in violations],
        )


class MediaRegisterRequest(BaseModel):
    source_id: str
    kind: TrackKind
    duration: float | None = Field(default=None, gt=0)
    url: str | None = None
    linked_audio_source_id: str | None = None
    linked_audio_duration: float | None = Field(default=None, gt=0)
    linked_audio_url: str | None = None
