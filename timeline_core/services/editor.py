"""Timeline editing facade.

``TimelineEditor`` is the entry point for every edit. It validates input,
resolves placement so the no-overlap invariant holds, builds a command
and hands it to the history. Invalid requests raise before anything is
built, so a rejected edit never touches the timeline.

Live drags go through ``preview_move``/``preview_trim``, which write the
clip directly without history, and are closed by ``commit`` (one undoable
command back to the pre-drag values) or ``cancel_preview``.
"""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Literal
from uuid import uuid4

from timeline_core.commands import factories
from timeline_core.commands.command import Command
from timeline_core.commands.types import ClipInsert, Placement, TrimValues
from timeline_core.config import Settings, get_settings
from timeline_core.exceptions import (
    ClipboardEmptyError,
    ClipOverlapError,
    CommandExecutionError,
    HistoryBusyError,
    InvalidDurationError,
    InvalidFieldValueError,
    MissingRequiredFieldError,
    TimelineError,
)
from timeline_core.schemas.timeline import (
    AudioLayer,
    AutoTrimResult,
    Clip,
    ClipCandidate,
    ClipDescriptor,
    OverlapViolation,
    TimelineSnapshot,
)
from timeline_core.services.clipboard import Clipboard, ClipboardClip
from timeline_core.services.history import History
from timeline_core.services.media_catalog import MediaCatalog, MediaInfo
from timeline_core.services.positioning import (
    MIN_VISIBLE_DURATION,
    calculate_auto_trim,
    find_available_depth,
    find_nearest_valid_position,
    find_overlapping_clips,
    is_visible_duration_valid,
    track_end,
    visible_duration,
    would_overlap,
)
from timeline_core.services.timeline import (
    DEFAULT_LAYER_ID,
    DEFAULT_LAYER_NAME,
    ClipLocation,
    Timeline,
)
from timeline_core.services.track_validator import validate_track

logger = logging.getLogger(__name__)


@dataclass
class PreviewState:
    """Pre-drag values of a clip under live preview."""

    kind: Literal["move", "trim"]
    placement: Placement
    trim: TrimValues


def _require_non_negative(field: str, value: float | None) -> None:
    if value is not None and value < 0:
        raise InvalidFieldValueError(f"{field} must be >= 0, got {value}", field=field, value=value)


class TimelineEditor:
    """Validated, undoable edits on one timeline."""

    def __init__(
        self,
        timeline: Timeline | None = None,
        history: History | None = None,
        media_catalog: MediaCatalog | None = None,
        clipboard: Clipboard | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.timeline = timeline or Timeline()
        self.history = history or History(self.settings.history_capacity)
        self.media_catalog = media_catalog
        self.clipboard = clipboard or Clipboard()
        self._previews: dict[str, PreviewState] = {}

    # =========================================================================
    # History
    # =========================================================================

    def execute(self, command: Command) -> bool:
        return self.history.execute(command)

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    def _run(self, command: Command) -> Command:
        if self.history.is_busy:
            raise HistoryBusyError()
        if not self.history.execute(command):
            raise CommandExecutionError(
                f"Failed to apply: {command.description}", command_type=command.type
            )
        return command

    @staticmethod
    def validate_track(clips: list[Clip]) -> list[OverlapViolation]:
        return validate_track(clips)

    # =========================================================================
    # Session state
    # =========================================================================

    def snapshot(self) -> TimelineSnapshot:
        return self.timeline.snapshot()

    def load(self, snapshot: TimelineSnapshot) -> None:
        """Replace the whole timeline; history and pending previews are dropped."""
        self.timeline.restore(snapshot)
        self.timeline.mark_saved()
        self.history.clear()
        self._previews.clear()

    # =========================================================================
    # Add
    # =========================================================================

    def add(self, descriptor: ClipDescriptor | None = None, **fields) -> Clip:
        """Add a clip, placing it where it overlaps nothing at its depth.

        Without a timestamp the clip goes to the end of its track. Audio
        without an explicit depth gets the lowest free depth at the
        requested time; everything else is moved to the nearest free slot.

        Raises:
            MissingRequiredFieldError: No source_id
            MediaNotFoundError: The media catalog does not know the source
            InvalidDurationError: Visible duration at or below the floor
            LayerNotFoundError: An explicit layer_id does not exist
            InvalidFieldValueError: The id is already used on either track
        """
        if descriptor is None:
            descriptor = ClipDescriptor(**fields)
        if not descriptor.source_id:
            raise MissingRequiredFieldError("source_id", "add")
        if descriptor.id and self.timeline.has_clip(descriptor.id):
            raise InvalidFieldValueError(
                f"Clip id already in use: {descriptor.id}", field="id", value=descriptor.id
            )

        media = self.media_catalog.resolve(descriptor.source_id) if self.media_catalog else None
        duration = descriptor.duration
        if duration is None:
            duration = media.duration if media and media.duration else self.settings.default_clip_duration
        url = descriptor.url or (media.url if media else None)

        for name in ("timestamp", "trim_start", "trim_end", "depth"):
            _require_non_negative(name, getattr(descriptor, name))
        if duration <= 0:
            raise InvalidFieldValueError(f"duration must be > 0, got {duration}", field="duration", value=duration)
        if not is_visible_duration_valid(duration, descriptor.trim_start, descriptor.trim_end):
            raise InvalidDurationError(
                duration - (descriptor.trim_start or 0) - (descriptor.trim_end or 0),
                minimum=MIN_VISIBLE_DURATION,
            )

        clip = Clip(
            id=descriptor.id or str(uuid4()),
            source_id=descriptor.source_id,
            url=url,
            timestamp=descriptor.timestamp if descriptor.timestamp is not None else 0,
            duration=duration,
            trim_start=descriptor.trim_start,
            trim_end=descriptor.trim_end,
            depth=descriptor.depth,
            muted=descriptor.muted,
        )

        if descriptor.track == "video":
            self._place(self.timeline.video_clips, clip, descriptor.timestamp, allocate_depth=False)
            command = factories.add_clip(self.timeline, clip)
            linked = media.linked_audio if media else None
            if linked is not None:
                command = self._with_linked_audio(command, clip, linked)
        else:
            layer, new_layer = self._target_layer(descriptor.layer_id)
            self._place(layer.clips, clip, descriptor.timestamp, allocate_depth=descriptor.depth is None)
            command = factories.add_clip(self.timeline, clip, layer.id, new_layer=new_layer)

        self._run(command)
        logger.info(f"Added {descriptor.track} clip {clip.id} at {clip.timestamp:.3f}s")
        return self.timeline.locate(clip.id).clip

    def _place(
        self,
        clips: list[Clip],
        clip: Clip,
        requested: float | None,
        *,
        allocate_depth: bool,
    ) -> None:
        timestamp = requested if requested is not None else track_end(clips)
        if allocate_depth:
            clip.timestamp = timestamp
            clip.depth = find_available_depth(clips, timestamp, visible_duration(clip))
            return
        candidate = ClipCandidate.from_clip(clip, timestamp=timestamp)
        clip.timestamp = find_nearest_valid_position(clips, candidate)

    def _target_layer(self, layer_id: str | None) -> tuple[AudioLayer, AudioLayer | None]:
        """Layer for new audio, plus the layer to create when there is none yet."""
        if layer_id:
            return self.timeline.find_layer(layer_id), None
        if self.timeline.audio_layers:
            return self.timeline.audio_layers[0], None
        layer = AudioLayer(id=DEFAULT_LAYER_ID, name=DEFAULT_LAYER_NAME)
        return layer, layer

    def _with_linked_audio(self, video_command: Command, video: Clip, audio: MediaInfo) -> Command:
        layer, new_layer = self._target_layer(None)
        clip = Clip(
            id=str(uuid4()),
            source_id=audio.source_id,
            url=audio.url,
            timestamp=video.timestamp,
            duration=audio.duration or video.duration,
            trim_start=video.trim_start,
            trim_end=video.trim_end,
        )
        clip.depth = find_available_depth(layer.clips, clip.timestamp, visible_duration(clip))
        audio_command = factories.add_clip(self.timeline, clip, layer.id, new_layer=new_layer)
        return factories.composite(
            self.timeline, [video_command, audio_command], "Add video clip with audio"
        )

    # =========================================================================
    # Move / trim / remove
    # =========================================================================

    def _resolve_move(
        self,
        location: ClipLocation,
        timestamp: float,
        depth: int | None,
        auto_trim: bool,
    ) -> tuple[float, int | None, AutoTrimResult | None]:
        clip = location.clip
        clips = self.timeline.track_clips(location.layer_id)
        requested = max(0.0, timestamp)
        target_depth = depth if depth is not None else clip.depth
        candidate = ClipCandidate.from_clip(clip, timestamp=requested, depth=target_depth)

        if not would_overlap(clips, candidate, clip.id):
            return requested, target_depth, None

        if auto_trim:
            result = calculate_auto_trim(clips, candidate, clip.id)
            if result.is_valid and result.clip_to_trim:
                return requested, target_depth, result

        return find_nearest_valid_position(clips, candidate, clip.id), target_depth, None

    def move(
        self,
        clip_id: str,
        timestamp: float,
        depth: int | None = None,
        *,
        auto_trim: bool = True,
    ) -> Clip:
        """Move a clip, resolving a conflict by auto-trim or position search.

        A start landing strictly inside a neighbour shortens that neighbour
        when it can stay above the minimum duration; otherwise the clip goes
        to the nearest free slot at its depth.
        """
        if timestamp is None:
            raise MissingRequiredFieldError("timestamp", "move")
        _require_non_negative("depth", depth)

        location = self.timeline.locate(clip_id)
        final, final_depth, trim = self._resolve_move(location, timestamp, depth, auto_trim)
        command = factories.move_clip(self.timeline, clip_id, final, final_depth, auto_trim=trim)
        self._run(command)

        if final != timestamp:
            logger.debug(f"Move of {clip_id} to {timestamp:.3f}s resolved to {final:.3f}s")
        return location.clip

    def trim(
        self,
        clip_id: str,
        trim_start: float | None = None,
        trim_end: float | None = None,
        timestamp: float | None = None,
    ) -> Clip:
        """Change trim offsets (and optionally the start) of a clip.

        Raises:
            MissingRequiredFieldError: No value given
            InvalidDurationError: Resulting visible duration at or below the floor
            ClipOverlapError: The trimmed clip would overlap a same-depth neighbour
        """
        if trim_start is None and trim_end is None and timestamp is None:
            raise MissingRequiredFieldError("trim_start", "trim")
        for name, value in (("trim_start", trim_start), ("trim_end", trim_end), ("timestamp", timestamp)):
            _require_non_negative(name, value)

        location = self.timeline.locate(clip_id)
        clip = location.clip
        updated = TrimValues(
            trim_start=trim_start if trim_start is not None else clip.trim_start,
            trim_end=trim_end if trim_end is not None else clip.trim_end,
            timestamp=timestamp if timestamp is not None else clip.timestamp,
        )
        self._check_trim(location, updated)

        command = factories.trim_clip(
            self.timeline, clip_id, updated.trim_start, updated.trim_end, updated.timestamp
        )
        self._run(command)
        return clip

    def _check_trim(self, location: ClipLocation, values: TrimValues) -> None:
        clip = location.clip
        if not is_visible_duration_valid(clip.duration, values.trim_start, values.trim_end):
            raise InvalidDurationError(
                clip.duration - (values.trim_start or 0) - (values.trim_end or 0),
                minimum=MIN_VISIBLE_DURATION,
                clip_id=clip.id,
            )
        candidate = ClipCandidate.from_clip(
            clip,
            trim_start=values.trim_start,
            trim_end=values.trim_end,
            timestamp=values.timestamp,
        )
        overlaps = find_overlapping_clips(
            self.timeline.track_clips(location.layer_id), candidate, clip.id
        )
        if overlaps:
            raise ClipOverlapError(
                clip_id=clip.id, layer_id=location.layer_id, conflicting_clip_id=overlaps[0].id
            )

    def remove(self, clip_id: str) -> None:
        self._previews.pop(clip_id, None)
        self._run(factories.remove_clip(self.timeline, clip_id))

    # =========================================================================
    # Mute
    # =========================================================================

    def toggle_layer_mute(self, layer_id: str) -> AudioLayer:
        self._run(factories.toggle_layer_mute(self.timeline, layer_id))
        return self.timeline.find_layer(layer_id)

    def toggle_clip_mute(self, clip_id: str) -> Clip:
        self._run(factories.toggle_clip_mute(self.timeline, clip_id))
        return self.timeline.find_audio_clip(clip_id)[1]

    # =========================================================================
    # Layers
    # =========================================================================

    def add_layer(self, name: str | None = None) -> AudioLayer:
        layer = AudioLayer(
            id=str(uuid4()),
            name=name or f"Audio {len(self.timeline.audio_layers) + 1}",
        )
        self._run(factories.add_layer(self.timeline, layer))
        return self.timeline.find_layer(layer.id)

    def remove_layer(self, layer_id: str) -> None:
        self._run(factories.remove_layer(self.timeline, layer_id))

    def rename_layer(self, layer_id: str, name: str) -> AudioLayer:
        if not name or not name.strip():
            raise InvalidFieldValueError("Layer name must not be empty", field="name", value=name)
        self._run(factories.rename_layer(self.timeline, layer_id, name.strip()))
        return self.timeline.find_layer(layer_id)

    # =========================================================================
    # Selection: copy / paste / delete
    # =========================================================================

    def copy_selection(
        self,
        video_ids: Iterable[str] = (),
        audio_refs: Iterable[tuple[str, str | None]] = (),
    ) -> list[ClipboardClip]:
        return self.clipboard.copy(self.timeline, video_ids, audio_refs)

    def delete_selection(
        self,
        video_ids: Iterable[str] = (),
        audio_refs: Iterable[tuple[str, str | None]] = (),
    ) -> int:
        """Delete a multi-selection as one undoable step; returns the clip count."""
        video_ids = list(video_ids)
        audio_refs = list(audio_refs)
        if not video_ids and not audio_refs:
            raise MissingRequiredFieldError("clip_ids", "delete")

        command = factories.batch_delete(self.timeline, video_ids, audio_refs)
        self._run(command)
        for clip_id in [*video_ids, *(ref[0] for ref in audio_refs)]:
            self._previews.pop(clip_id, None)
        return len(command.payload.video) + len(command.payload.audio)

    def paste(self, playhead: float) -> list[Clip]:
        """Paste the clipboard at ``playhead`` with fresh ids.

        Audio returns to its original layer when that layer still exists and
        to the first layer otherwise.
        """
        if self.clipboard.is_empty():
            raise ClipboardEmptyError()
        playhead = max(0.0, playhead)

        video_track = list(self.timeline.video_clips)
        video: list[Clip] = []
        for item in (c for c in self.clipboard.clips if c.track == "video"):
            clip = self._clip_from_clipboard(item, playhead)
            clip.timestamp = find_nearest_valid_position(video_track, ClipCandidate.from_clip(clip))
            video_track.append(clip)
            video.append(clip)

        layers = {layer.id: list(layer.clips) for layer in self.timeline.audio_layers}
        new_layer: AudioLayer | None = None
        audio: list[ClipInsert] = []
        for item in (c for c in self.clipboard.clips if c.track == "audio"):
            if item.layer_id and item.layer_id in layers:
                layer_id = item.layer_id
            elif self.timeline.audio_layers:
                layer_id = self.timeline.audio_layers[0].id
            else:
                if new_layer is None:
                    new_layer = AudioLayer(id=DEFAULT_LAYER_ID, name=DEFAULT_LAYER_NAME)
                    layers[new_layer.id] = []
                layer_id = new_layer.id

            clip = self._clip_from_clipboard(item, playhead)
            clip.depth = find_available_depth(layers[layer_id], clip.timestamp, visible_duration(clip))
            layers[layer_id].append(clip)
            audio.append(ClipInsert(clip=clip, layer_id=layer_id))

        command = factories.batch_paste(self.timeline, video, audio, new_layer=new_layer)
        self._run(command)
        logger.info(f"Pasted {len(video) + len(audio)} clip(s) at {playhead:.3f}s")
        return [self.timeline.locate(c.id).clip for c in [*video, *(i.clip for i in audio)]]

    @staticmethod
    def _clip_from_clipboard(item: ClipboardClip, playhead: float) -> Clip:
        return Clip(
            id=str(uuid4()),
            source_id=item.source_id,
            url=item.url,
            timestamp=max(0.0, playhead + item.relative_offset),
            duration=item.duration,
            trim_start=item.trim_start,
            trim_end=item.trim_end,
            muted=item.muted,
        )

    # =========================================================================
    # Live preview
    # =========================================================================

    def _begin_preview(self, location: ClipLocation, kind: Literal["move", "trim"]) -> None:
        clip = location.clip
        state = self._previews.get(clip.id)
        if state is None:
            self._previews[clip.id] = PreviewState(
                kind=kind,
                placement=Placement(timestamp=clip.timestamp, depth=clip.depth),
                trim=TrimValues(
                    trim_start=clip.trim_start, trim_end=clip.trim_end, timestamp=clip.timestamp
                ),
            )
        elif state.kind != kind:
            raise InvalidFieldValueError(
                f"Clip {clip.id} already has a pending {state.kind} preview", field="clip_id"
            )

    def is_previewing(self, clip_id: str) -> bool:
        return clip_id in self._previews

    def preview_move(self, clip_id: str, timestamp: float, depth: int | None = None) -> Clip:
        """Drag a clip without recording history; conflicts are resolved on commit."""
        _require_non_negative("depth", depth)
        location = self.timeline.locate(clip_id)
        self._begin_preview(location, "move")
        location.clip.timestamp = max(0.0, timestamp)
        if depth is not None:
            location.clip.depth = depth
        self.timeline.mark_dirty()
        return location.clip

    def preview_trim(
        self,
        clip_id: str,
        trim_start: float | None = None,
        trim_end: float | None = None,
        timestamp: float | None = None,
    ) -> Clip:
        for name, value in (("trim_start", trim_start), ("trim_end", trim_end), ("timestamp", timestamp)):
            _require_non_negative(name, value)
        location = self.timeline.locate(clip_id)
        clip = location.clip
        new_start = trim_start if trim_start is not None else clip.trim_start
        new_end = trim_end if trim_end is not None else clip.trim_end
        if not is_visible_duration_valid(clip.duration, new_start, new_end):
            raise InvalidDurationError(
                clip.duration - (new_start or 0) - (new_end or 0),
                minimum=MIN_VISIBLE_DURATION,
                clip_id=clip_id,
            )

        self._begin_preview(location, "trim")
        clip.trim_start = new_start
        clip.trim_end = new_end
        if timestamp is not None:
            clip.timestamp = timestamp
        self.timeline.mark_dirty()
        return clip

    def _restore_preview(self, clip_id: str, state: PreviewState) -> Clip:
        clip = self.timeline.locate(clip_id).clip
        clip.timestamp = state.placement.timestamp
        clip.depth = state.placement.depth
        clip.trim_start = state.trim.trim_start
        clip.trim_end = state.trim.trim_end
        self.timeline.mark_dirty()
        return clip

    def cancel_preview(self, clip_id: str) -> bool:
        """Put a previewed clip back to its pre-drag values; False if none pending."""
        state = self._previews.pop(clip_id, None)
        if state is None:
            return False
        self._restore_preview(clip_id, state)
        return True

    def commit(self, clip_id: str, *, auto_trim: bool = True) -> Clip:
        """Turn a pending preview into one undoable command.

        Undo returns the clip to the values it had before the first preview.
        A preview that ends where it started records nothing. A trim that
        would break the invariant is rolled back and raised.
        """
        state = self._previews.pop(clip_id, None)
        if state is None:
            raise InvalidFieldValueError(f"No preview in progress for clip {clip_id}", field="clip_id")

        location = self.timeline.locate(clip_id)
        clip = location.clip
        try:
            if state.kind == "trim":
                updated = TrimValues(
                    trim_start=clip.trim_start, trim_end=clip.trim_end, timestamp=clip.timestamp
                )
                if updated == state.trim:
                    return clip
                self._check_trim(location, updated)
                command = factories.trim_clip(
                    self.timeline,
                    clip_id,
                    updated.trim_start,
                    updated.trim_end,
                    updated.timestamp,
                    original=state.trim,
                )
            else:
                final, depth, trim = self._resolve_move(location, clip.timestamp, clip.depth, auto_trim)
                if Placement(timestamp=final, depth=depth) == state.placement and trim is None:
                    self._restore_preview(clip_id, state)
                    return clip
                command = factories.move_clip(
                    self.timeline, clip_id, final, depth, auto_trim=trim, original=state.placement
                )
            self._run(command)
        except TimelineError:
            self._restore_preview(clip_id, state)
            raise
        return clip

    # =========================================================================
    # External edits
    # =========================================================================

    def record_external_edit(
        self,
        description: str,
        before: TimelineSnapshot,
        after: TimelineSnapshot,
    ) -> Command:
        """Register an edit that already landed in the timeline, for undo only."""
        if self.history.is_busy:
            raise HistoryBusyError()
        command = factories.snapshot_batch(self.timeline, before, after, description)
        self.history.add_without_execute(command)
        self.timeline.mark_dirty()
        logger.info(f"Recorded external edit: {description}")
        return command

    @contextmanager
    def external_edit(self, description: str) -> Iterator[Timeline]:
        """Mutate the timeline directly inside the block, recorded as one undo step.

        If the block raises, the timeline is put back as it was and nothing
        is recorded. A block that changes nothing records nothing.
        """
        before = self.timeline.snapshot()
        try:
            yield self.timeline
        except Exception:
            self.timeline.restore(before)
            raise
        after = self.timeline.snapshot()
        if after != before:
            self.record_external_edit(description, before, after)
