"""Timeline aggregate: the single owner of the canonical clip state.

Holds the flat video clip collection and the ordered audio layers. Commands
receive a handle to one Timeline and mutate it; nothing else writes to it.
"""

import logging
from dataclasses import dataclass

from timeline_core.exceptions import ClipNotFoundError, LayerNotFoundError
from timeline_core.schemas.timeline import AudioLayer, Clip, TimelineSnapshot, TrackKind

logger = logging.getLogger(__name__)

DEFAULT_LAYER_ID = "default"
DEFAULT_LAYER_NAME = "Audio 1"


@dataclass
class ClipLocation:
    """Where a clip lives: the video track, or one audio layer."""

    track: TrackKind
    clip: Clip
    layer_id: str | None = None


class Timeline:
    """Canonical video clips and audio layers for one editing session."""

    def __init__(
        self,
        video_clips: list[Clip] | None = None,
        audio_layers: list[AudioLayer] | None = None,
    ) -> None:
        self.video_clips: list[Clip] = [] if video_clips is None else video_clips
        self.audio_layers: list[AudioLayer] = [] if audio_layers is None else audio_layers
        self.is_dirty = False

    @classmethod
    def from_snapshot(cls, snapshot: TimelineSnapshot) -> "Timeline":
        timeline = cls()
        timeline.restore(snapshot)
        timeline.is_dirty = False
        return timeline

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_video_clip(self, clip_id: str) -> Clip:
        for clip in self.video_clips:
            if clip.id == clip_id:
                return clip
        raise ClipNotFoundError(clip_id)

    def find_layer(self, layer_id: str) -> AudioLayer:
        for layer in self.audio_layers:
            if layer.id == layer_id:
                return layer
        raise LayerNotFoundError(layer_id)

    def has_layer(self, layer_id: str) -> bool:
        return any(layer.id == layer_id for layer in self.audio_layers)

    def has_clip(self, clip_id: str) -> bool:
        return any(c.id == clip_id for c in self.video_clips) or any(
            c.id == clip_id for layer in self.audio_layers for c in layer.clips
        )

    def find_audio_clip(self, clip_id: str, layer_id: str | None = None) -> tuple[AudioLayer, Clip]:
        """Find an audio clip, optionally restricted to one layer."""
        layers = [self.find_layer(layer_id)] if layer_id else self.audio_layers
        for layer in layers:
            for clip in layer.clips:
                if clip.id == clip_id:
                    return layer, clip
        raise ClipNotFoundError(clip_id, layer_id)

    def locate(self, clip_id: str) -> ClipLocation:
        """Find a clip on either track; video ids are searched first."""
        for clip in self.video_clips:
            if clip.id == clip_id:
                return ClipLocation(track="video", clip=clip)
        for layer in self.audio_layers:
            for clip in layer.clips:
                if clip.id == clip_id:
                    return ClipLocation(track="audio", clip=clip, layer_id=layer.id)
        raise ClipNotFoundError(clip_id)

    def track_clips(self, layer_id: str | None) -> list[Clip]:
        """Clips sharing a track with the given layer (``None`` is the video track)."""
        if layer_id is None:
            return self.video_clips
        return self.find_layer(layer_id).clips

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> TimelineSnapshot:
        return TimelineSnapshot(
            video_clips=[c.model_copy(deep=True) for c in self.video_clips],
            audio_layers=[layer.model_copy(deep=True) for layer in self.audio_layers],
        )

    def restore(self, snapshot: TimelineSnapshot) -> None:
        """Swap both tracks in one step; the snapshot itself is never aliased."""
        video_clips = [c.model_copy(deep=True) for c in snapshot.video_clips]
        audio_layers = [layer.model_copy(deep=True) for layer in snapshot.audio_layers]
        self.video_clips, self.audio_layers = video_clips, audio_layers
        self.mark_dirty()

    # =========================================================================
    # Dirty tracking
    # =========================================================================

    def mark_dirty(self) -> None:
        self.is_dirty = True

    def mark_saved(self) -> None:
        self.is_dirty = False
