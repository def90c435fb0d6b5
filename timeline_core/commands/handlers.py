"""Execute/undo table for every command kind.

Handlers look up everything they touch before the first write, so a
missing clip or layer raises with the timeline untouched. Inserted clips
and layers are always copies of the payload, never aliases, so later live
edits cannot leak back into a command's redo data.
"""

import logging
from collections.abc import Callable
from typing import Any, NamedTuple

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
    TrimValues,
)
from timeline_core.exceptions import (
    ClipNotFoundError,
    InvalidFieldValueError,
    LastLayerError,
    LayerNotFoundError,
)
from timeline_core.schemas.timeline import AudioLayer, Clip
from timeline_core.services.timeline import Timeline

logger = logging.getLogger(__name__)


class Handler(NamedTuple):
    execute: Callable[[Timeline, Any], None]
    undo: Callable[[Timeline, Any], None]


def _index_of(clips: list[Clip], clip_id: str, layer_id: str | None = None) -> int:
    for i, clip in enumerate(clips):
        if clip.id == clip_id:
            return i
    raise ClipNotFoundError(clip_id, layer_id)


def _layer_index(layers: list[AudioLayer], layer_id: str) -> int:
    for i, layer in enumerate(layers):
        if layer.id == layer_id:
            return i
    raise LayerNotFoundError(layer_id)


def _find(clips: list[Clip], clip_id: str, layer_id: str | None = None) -> Clip:
    return clips[_index_of(clips, clip_id, layer_id)]


# =============================================================================
# Single clip
# =============================================================================


def _insert(timeline: Timeline, p: ClipInsert) -> None:
    if p.layer_id is None:
        timeline.video_clips.append(p.clip.model_copy(deep=True))
        return

    if p.new_layer is not None and not timeline.has_layer(p.new_layer.id):
        layer = p.new_layer.model_copy(deep=True)
        layer.clips.append(p.clip.model_copy(deep=True))
        timeline.audio_layers.append(layer)
        return

    timeline.find_layer(p.layer_id).clips.append(p.clip.model_copy(deep=True))


def _uninsert(timeline: Timeline, p: ClipInsert) -> None:
    clips = timeline.track_clips(p.layer_id)
    index = _index_of(clips, p.clip.id, p.layer_id)
    clips.pop(index)
    if p.new_layer is not None:
        layer_index = _layer_index(timeline.audio_layers, p.new_layer.id)
        if not timeline.audio_layers[layer_index].clips:
            timeline.audio_layers.pop(layer_index)


def _remove(timeline: Timeline, p: ClipRemoval) -> None:
    clips = timeline.track_clips(p.layer_id)
    clips.pop(_index_of(clips, p.clip.id, p.layer_id))


def _unremove(timeline: Timeline, p: ClipRemoval) -> None:
    clips = timeline.track_clips(p.layer_id)
    clips.insert(min(p.index, len(clips)), p.clip.model_copy(deep=True))


def _place(timeline: Timeline, p: ClipMove, placement: Placement, trim_end_attr: str) -> None:
    clips = timeline.track_clips(p.layer_id)
    clip = _find(clips, p.clip_id, p.layer_id)
    trimmed = _find(clips, p.auto_trim.clip_id, p.layer_id) if p.auto_trim else None

    clip.timestamp = placement.timestamp
    clip.depth = placement.depth
    if trimmed is not None:
        trimmed.trim_end = getattr(p.auto_trim, trim_end_attr)


def _move(timeline: Timeline, p: ClipMove) -> None:
    _place(timeline, p, p.updated, "new_trim_end")


def _unmove(timeline: Timeline, p: ClipMove) -> None:
    _place(timeline, p, p.original, "original_trim_end")


def _apply_trim(timeline: Timeline, p: ClipTrim, values: TrimValues) -> None:
    clip = _find(timeline.track_clips(p.layer_id), p.clip_id, p.layer_id)
    clip.trim_start = values.trim_start
    clip.trim_end = values.trim_end
    clip.timestamp = values.timestamp


def _trim(timeline: Timeline, p: ClipTrim) -> None:
    _apply_trim(timeline, p, p.updated)


def _untrim(timeline: Timeline, p: ClipTrim) -> None:
    _apply_trim(timeline, p, p.original)


def _mute_clip(timeline: Timeline, p: ClipMute) -> None:
    _, clip = timeline.find_audio_clip(p.clip_id, p.layer_id)
    clip.muted = p.new_muted


def _unmute_clip(timeline: Timeline, p: ClipMute) -> None:
    _, clip = timeline.find_audio_clip(p.clip_id, p.layer_id)
    clip.muted = p.original_muted


# =============================================================================
# Layers
# =============================================================================


def _mute_layer(timeline: Timeline, p: LayerMute) -> None:
    timeline.find_layer(p.layer_id).muted = p.new_muted


def _unmute_layer(timeline: Timeline, p: LayerMute) -> None:
    timeline.find_layer(p.layer_id).muted = p.original_muted


def _add_layer(timeline: Timeline, p: LayerAdd) -> None:
    layers = timeline.audio_layers
    layers.insert(min(p.index, len(layers)), p.layer.model_copy(deep=True))


def _unadd_layer(timeline: Timeline, p: LayerAdd) -> None:
    layers = timeline.audio_layers
    layers.pop(_layer_index(layers, p.layer.id))


def _remove_layer(timeline: Timeline, p: LayerRemoval) -> None:
    layers = timeline.audio_layers
    index = _layer_index(layers, p.layer.id)
    if len(layers) <= 1:
        raise LastLayerError(p.layer.id)
    layers.pop(index)


def _unremove_layer(timeline: Timeline, p: LayerRemoval) -> None:
    layers = timeline.audio_layers
    layers.insert(min(p.index, len(layers)), p.layer.model_copy(deep=True))


def _rename_layer(timeline: Timeline, p: LayerRename) -> None:
    timeline.find_layer(p.layer_id).name = p.new_name


def _unrename_layer(timeline: Timeline, p: LayerRename) -> None:
    timeline.find_layer(p.layer_id).name = p.original_name


# =============================================================================
# Batches
# =============================================================================


def _batch_delete(timeline: Timeline, p: BatchDelete) -> None:
    targets = [(r.layer_id, r.clip.id) for r in [*p.video, *p.audio]]
    if len(set(targets)) != len(targets):
        raise InvalidFieldValueError("Batch delete names the same clip twice", field="clip_ids")

    # Resolve every target first so a stale id fails before anything is removed
    for removal in [*p.video, *p.audio]:
        _index_of(timeline.track_clips(removal.layer_id), removal.clip.id, removal.layer_id)

    for removal in [*p.video, *p.audio]:
        _remove(timeline, removal)


def _undo_batch_delete(timeline: Timeline, p: BatchDelete) -> None:
    for layer_id in {r.layer_id for r in p.audio}:
        timeline.find_layer(layer_id)

    # Ascending original indices rebuild the exact prior order
    for removal in sorted(p.video, key=lambda r: r.index):
        _unremove(timeline, removal)
    for removal in sorted(p.audio, key=lambda r: r.index):
        _unremove(timeline, removal)


def _batch_paste(timeline: Timeline, p: BatchPaste) -> None:
    created = p.new_layer is not None and not timeline.has_layer(p.new_layer.id)
    for insert in p.audio:
        if not (created and insert.layer_id == p.new_layer.id):
            timeline.find_layer(insert.layer_id)

    if created:
        timeline.audio_layers.append(p.new_layer.model_copy(deep=True))
    timeline.video_clips.extend(c.model_copy(deep=True) for c in p.video)
    for insert in p.audio:
        timeline.find_layer(insert.layer_id).clips.append(insert.clip.model_copy(deep=True))


def _undo_batch_paste(timeline: Timeline, p: BatchPaste) -> None:
    video_ids = {c.id for c in p.video}
    audio_ids = {i.clip.id for i in p.audio}

    timeline.video_clips[:] = [c for c in timeline.video_clips if c.id not in video_ids]
    for layer in timeline.audio_layers:
        layer.clips[:] = [c for c in layer.clips if c.id not in audio_ids]

    if p.new_layer is not None and timeline.has_layer(p.new_layer.id):
        index = _layer_index(timeline.audio_layers, p.new_layer.id)
        if not timeline.audio_layers[index].clips:
            timeline.audio_layers.pop(index)


def _swap_in(timeline: Timeline, p: SnapshotSwap) -> None:
    timeline.restore(p.after)


def _swap_out(timeline: Timeline, p: SnapshotSwap) -> None:
    timeline.restore(p.before)


def _run_children(timeline: Timeline, p: Composite) -> None:
    done = []
    try:
        for child in p.children:
            child.execute()
            done.append(child)
    except Exception:
        for child in reversed(done):
            child.undo()
        raise


def _undo_children(timeline: Timeline, p: Composite) -> None:
    done = []
    try:
        for child in reversed(p.children):
            child.undo()
            done.append(child)
    except Exception:
        for child in reversed(done):
            child.execute()
        raise


HANDLERS: dict[CommandKind, Handler] = {
    CommandKind.VIDEO_ADD: Handler(_insert, _uninsert),
    CommandKind.AUDIO_ADD: Handler(_insert, _uninsert),
    CommandKind.VIDEO_REMOVE: Handler(_remove, _unremove),
    CommandKind.AUDIO_REMOVE: Handler(_remove, _unremove),
    CommandKind.VIDEO_MOVE: Handler(_move, _unmove),
    CommandKind.AUDIO_MOVE: Handler(_move, _unmove),
    CommandKind.VIDEO_TRIM: Handler(_trim, _untrim),
    CommandKind.AUDIO_TRIM: Handler(_trim, _untrim),
    CommandKind.AUDIO_CLIP_TOGGLE_MUTE: Handler(_mute_clip, _unmute_clip),
    CommandKind.LAYER_TOGGLE_MUTE: Handler(_mute_layer, _unmute_layer),
    CommandKind.LAYER_ADD: Handler(_add_layer, _unadd_layer),
    CommandKind.LAYER_REMOVE: Handler(_remove_layer, _unremove_layer),
    CommandKind.LAYER_RENAME: Handler(_rename_layer, _unrename_layer),
    CommandKind.BATCH_DELETE: Handler(_batch_delete, _undo_batch_delete),
    CommandKind.BATCH_PASTE: Handler(_batch_paste, _undo_batch_paste),
    CommandKind.BATCH_SNAPSHOT: Handler(_swap_in, _swap_out),
    CommandKind.COMPOSITE: Handler(_run_children, _undo_children),
}


def apply(kind: CommandKind, timeline: Timeline, payload: Any) -> None:
    HANDLERS[kind].execute(timeline, payload)
    timeline.mark_dirty()


def revert(kind: CommandKind, timeline: Timeline, payload: Any) -> None:
    HANDLERS[kind].undo(timeline, payload)
    timeline.mark_dirty()
