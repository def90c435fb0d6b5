"""Command constructors.

Each factory reads the live timeline once, at construction, and freezes
the values undo will need. Placement (position search, depth allocation,
auto-trim) is already resolved by the caller; factories only record it.
"""

from collections.abc import Iterable, Sequence

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
from timeline_core.exceptions import LastLayerError
from timeline_core.schemas.timeline import AudioLayer, AutoTrimResult, Clip, TimelineSnapshot
from timeline_core.services.timeline import Timeline


def _track_kind(layer_id: str | None, video: CommandKind, audio: CommandKind) -> CommandKind:
    return video if layer_id is None else audio


def _index_in(clips: list[Clip], clip_id: str) -> int:
    return next(i for i, c in enumerate(clips) if c.id == clip_id)


# =============================================================================
# Clips
# =============================================================================


def add_clip(
    timeline: Timeline,
    clip: Clip,
    layer_id: str | None = None,
    *,
    new_layer: AudioLayer | None = None,
) -> Command:
    kind = _track_kind(layer_id, CommandKind.VIDEO_ADD, CommandKind.AUDIO_ADD)
    track = "video" if layer_id is None else "audio"
    return Command(
        kind=kind,
        description=f"Add {track} clip",
        payload=ClipInsert(clip=clip.model_copy(deep=True), layer_id=layer_id, new_layer=new_layer),
        timeline=timeline,
    )


def remove_clip(timeline: Timeline, clip_id: str) -> Command:
    location = timeline.locate(clip_id)
    clips = timeline.track_clips(location.layer_id)
    kind = _track_kind(location.layer_id, CommandKind.VIDEO_REMOVE, CommandKind.AUDIO_REMOVE)
    return Command(
        kind=kind,
        description=f"Remove {location.track} clip",
        payload=ClipRemoval(
            clip=location.clip.model_copy(deep=True),
            index=_index_in(clips, clip_id),
            layer_id=location.layer_id,
        ),
        timeline=timeline,
    )


def move_clip(
    timeline: Timeline,
    clip_id: str,
    timestamp: float,
    depth: int | None,
    *,
    auto_trim: AutoTrimResult | None = None,
    original: Placement | None = None,
) -> Command:
    """Build a move, optionally with the neighbour trim of an overwrite drag.

    ``original`` overrides the live values when the clip was already
    dragged by a preview and the pre-drag position must be restored on undo.
    """
    location = timeline.locate(clip_id)
    clip = location.clip
    if original is None:
        original = Placement(timestamp=clip.timestamp, depth=clip.depth)

    trim_change = None
    if auto_trim is not None and auto_trim.is_valid and auto_trim.clip_to_trim:
        neighbour = next(
            c for c in timeline.track_clips(location.layer_id) if c.id == auto_trim.clip_to_trim
        )
        trim_change = TrimChange(
            clip_id=neighbour.id,
            original_trim_end=neighbour.trim_end,
            new_trim_end=auto_trim.new_trim_end,
        )

    kind = _track_kind(location.layer_id, CommandKind.VIDEO_MOVE, CommandKind.AUDIO_MOVE)
    return Command(
        kind=kind,
        description=f"Move {location.track} clip",
        payload=ClipMove(
            clip_id=clip_id,
            original=original,
            updated=Placement(timestamp=timestamp, depth=depth),
            layer_id=location.layer_id,
            auto_trim=trim_change,
        ),
        timeline=timeline,
    )


def trim_clip(
    timeline: Timeline,
    clip_id: str,
    trim_start: float | None,
    trim_end: float | None,
    timestamp: float,
    *,
    original: TrimValues | None = None,
) -> Command:
    location = timeline.locate(clip_id)
    clip = location.clip
    if original is None:
        original = TrimValues(
            trim_start=clip.trim_start, trim_end=clip.trim_end, timestamp=clip.timestamp
        )

    kind = _track_kind(location.layer_id, CommandKind.VIDEO_TRIM, CommandKind.AUDIO_TRIM)
    return Command(
        kind=kind,
        description=f"Trim {location.track} clip",
        payload=ClipTrim(
            clip_id=clip_id,
            original=original,
            updated=TrimValues(trim_start=trim_start, trim_end=trim_end, timestamp=timestamp),
            layer_id=location.layer_id,
        ),
        timeline=timeline,
    )


def toggle_clip_mute(timeline: Timeline, clip_id: str) -> Command:
    layer, clip = timeline.find_audio_clip(clip_id)
    return Command(
        kind=CommandKind.AUDIO_CLIP_TOGGLE_MUTE,
        description="Unmute audio clip" if clip.muted else "Mute audio clip",
        payload=ClipMute(
            clip_id=clip_id,
            layer_id=layer.id,
            original_muted=clip.muted,
            new_muted=not clip.muted,
        ),
        timeline=timeline,
    )


# =============================================================================
# Layers
# =============================================================================


def toggle_layer_mute(timeline: Timeline, layer_id: str) -> Command:
    layer = timeline.find_layer(layer_id)
    return Command(
        kind=CommandKind.LAYER_TOGGLE_MUTE,
        description=f"{'Unmute' if layer.muted else 'Mute'} layer {layer.name}",
        payload=LayerMute(layer_id=layer_id, original_muted=layer.muted, new_muted=not layer.muted),
        timeline=timeline,
    )


def add_layer(timeline: Timeline, layer: AudioLayer, index: int | None = None) -> Command:
    if index is None:
        index = len(timeline.audio_layers)
    return Command(
        kind=CommandKind.LAYER_ADD,
        description=f"Add layer {layer.name}",
        payload=LayerAdd(layer=layer.model_copy(deep=True), index=index),
        timeline=timeline,
    )


def remove_layer(timeline: Timeline, layer_id: str) -> Command:
    layer = timeline.find_layer(layer_id)
    if len(timeline.audio_layers) <= 1:
        raise LastLayerError(layer_id)
    index = next(i for i, lyr in enumerate(timeline.audio_layers) if lyr.id == layer_id)
    return Command(
        kind=CommandKind.LAYER_REMOVE,
        description=f"Remove layer {layer.name}",
        payload=LayerRemoval(layer=layer.model_copy(deep=True), index=index),
        timeline=timeline,
    )


def rename_layer(timeline: Timeline, layer_id: str, name: str) -> Command:
    layer = timeline.find_layer(layer_id)
    return Command(
        kind=CommandKind.LAYER_RENAME,
        description=f"Rename layer {layer.name} to {name}",
        payload=LayerRename(layer_id=layer_id, original_name=layer.name, new_name=name),
        timeline=timeline,
    )


# =============================================================================
# Batches
# =============================================================================


def batch_delete(
    timeline: Timeline,
    video_ids: Iterable[str] = (),
    audio_refs: Iterable[tuple[str, str]] = (),
) -> Command:
    """Delete a multi-selection; ``audio_refs`` are ``(clip_id, layer_id)`` pairs."""
    wanted_video = set(video_ids)
    video = [
        ClipRemoval(clip=c.model_copy(deep=True), index=i)
        for i, c in enumerate(timeline.video_clips)
        if c.id in wanted_video
    ]
    missing = wanted_video - {r.clip.id for r in video}
    if missing:
        timeline.find_video_clip(sorted(missing)[0])

    audio: list[ClipRemoval] = []
    # A ref with and without its layer id names the same clip
    seen: set[tuple[str, str]] = set()
    for clip_id, layer_id in audio_refs:
        layer, clip = timeline.find_audio_clip(clip_id, layer_id)
        if (layer.id, clip.id) in seen:
            continue
        seen.add((layer.id, clip.id))
        audio.append(
            ClipRemoval(
                clip=clip.model_copy(deep=True),
                index=_index_in(layer.clips, clip_id),
                layer_id=layer.id,
            )
        )
    audio.sort(key=lambda r: r.index)

    count = len(video) + len(audio)
    return Command(
        kind=CommandKind.BATCH_DELETE,
        description=f"Delete {count} clip{'s' if count != 1 else ''}",
        payload=BatchDelete(video=video, audio=audio),
        timeline=timeline,
    )


def batch_paste(
    timeline: Timeline,
    video: Sequence[Clip],
    audio: Sequence[ClipInsert],
    *,
    new_layer: AudioLayer | None = None,
) -> Command:
    count = len(video) + len(audio)
    return Command(
        kind=CommandKind.BATCH_PASTE,
        description=f"Paste {count} clip{'s' if count != 1 else ''}",
        payload=BatchPaste(
            video=[c.model_copy(deep=True) for c in video],
            audio=list(audio),
            new_layer=new_layer,
        ),
        timeline=timeline,
    )


def snapshot_batch(
    timeline: Timeline,
    before: TimelineSnapshot,
    after: TimelineSnapshot,
    description: str,
) -> Command:
    return Command(
        kind=CommandKind.BATCH_SNAPSHOT,
        description=description,
        payload=SnapshotSwap(
            before=before.model_copy(deep=True),
            after=after.model_copy(deep=True),
        ),
        timeline=timeline,
    )


def composite(timeline: Timeline, children: Sequence[Command], description: str) -> Command:
    return Command(
        kind=CommandKind.COMPOSITE,
        description=description,
        payload=Composite(children=list(children)),
        timeline=timeline,
    )
