from timeline_core.commands.command import Command
from timeline_core.commands.types import (
    BatchDelete,
    BatchPaste,
    ClipInsert,
    ClipMove,
    ClipMute,
    ClipRemoval,
    ClipTrim,
    CommandKind,
    Composite,
    LayerAdd,
    LayerMute,
    LayerRemoval,
    LayerRename,
    Placement,
    SnapshotSwap,
    TrimChange,
    TrimValues,
)

__all__ = [
    "BatchDelete",
    "BatchPaste",
    "ClipInsert",
    "ClipMove",
    "ClipMute",
    "ClipRemoval",
    "ClipTrim",
    "Command",
    "CommandKind",
    "Composite",
    "LayerAdd",
    "LayerMute",
    "LayerRemoval",
    "LayerRename",
    "Placement",
    "SnapshotSwap",
    "TrimChange",
    "TrimValues",
]
