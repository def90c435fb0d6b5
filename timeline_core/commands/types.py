"""Command kinds and their payload variants.

Each kind carries exactly one payload type. Payloads hold everything needed
to apply and reverse the edit, captured when the command is built, so
execute and undo never read back values the live timeline may have drifted
to in the meantime.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from timeline_core.schemas.timeline import AudioLayer, Clip, TimelineSnapshot


class CommandKind(str, Enum):
    VIDEO_ADD = "video.add"
    VIDEO_REMOVE = "video.remove"
    VIDEO_MOVE = "video.move"
    VIDEO_TRIM = "video.trim"
    AUDIO_ADD = "audio.add"
    AUDIO_REMOVE = "audio.remove"
    AUDIO_MOVE = "audio.move"
    AUDIO_TRIM = "audio.trim"
    AUDIO_CLIP_TOGGLE_MUTE = "audio.clip.toggle_mute"
    LAYER_TOGGLE_MUTE = "layer.toggle_mute"
    LAYER_ADD = "layer.add"
    LAYER_REMOVE = "layer.remove"
    LAYER_RENAME = "layer.rename"
    BATCH_DELETE = "batch.delete"
    BATCH_PASTE = "batch.paste"
    BATCH_SNAPSHOT = "batch.snapshot"
    COMPOSITE = "composite"


# =============================================================================
# Clip payloads
# =============================================================================


@dataclass
class ClipInsert:
    """A clip to insert; ``layer_id`` is None for the video track."""

    clip: Clip
    layer_id: str | None = None
    # Layer created alongside the clip when the target layer did not exist
    new_layer: AudioLayer | None = None


@dataclass
class ClipRemoval:
    clip: Clip
    index: int
    layer_id: str | None = None


@dataclass
class Placement:
    timestamp: float
    depth: int | None


@dataclass
class TrimChange:
    clip_id: str
    original_trim_end: float | None
    new_trim_end: float


@dataclass
class ClipMove:
    clip_id: str
    original: Placement
    updated: Placement
    layer_id: str | None = None
    # Neighbour shortened by an overwrite drag
    auto_trim: TrimChange | None = None


@dataclass
class TrimValues:
    trim_start: float | None
    trim_end: float | None
    timestamp: float


@dataclass
class ClipTrim:
    clip_id: str
    original: TrimValues
    updated: TrimValues
    layer_id: str | None = None


@dataclass
class ClipMute:
    clip_id: str
    layer_id: str
    original_muted: bool | None
    new_muted: bool


# =============================================================================
# Layer payloads
# =============================================================================


@dataclass
class LayerMute:
    layer_id: str
    original_muted: bool
    new_muted: bool


@dataclass
class LayerAdd:
    layer: AudioLayer
    index: int


@dataclass
class LayerRemoval:
    layer: AudioLayer
    index: int


@dataclass
class LayerRename:
    layer_id: str
    original_name: str
    new_name: str


# =============================================================================
# Batch payloads
# =============================================================================


@dataclass
class BatchDelete:
    """Removed clips with their original list positions, ascending per track."""

    video: list[ClipRemoval] = field(default_factory=list)
    audio: list[ClipRemoval] = field(default_factory=list)


@dataclass
class BatchPaste:
    video: list[Clip] = field(default_factory=list)
    audio: list[ClipInsert] = field(default_factory=list)
    new_layer: AudioLayer | None = None


@dataclass
class SnapshotSwap:
    before: TimelineSnapshot
    after: TimelineSnapshot


@dataclass
class Composite:
    children: list[Any] = field(default_factory=list)


Payload = (
    ClipInsert
    | ClipRemoval
    | ClipMove
    | ClipTrim
    | ClipMute
    | LayerMute
    | LayerAdd
    | LayerRemoval
    | LayerRename
    | BatchDelete
    | BatchPaste
    | SnapshotSwap
    | Composite
)
