"""Clipboard for copying a clip selection and pasting it at a playhead."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from timeline_core.schemas.timeline import Clip, TrackKind
from timeline_core.services.timeline import Timeline

logger = logging.getLogger(__name__)


@dataclass
class ClipboardClip:
    """A copied clip, positioned relative to the earliest clip in the selection."""

    track: TrackKind
    source_id: str | None
    duration: float
    relative_offset: float
    url: str | None = None
    trim_start: float | None = None
    trim_end: float | None = None
    layer_id: str | None = None
    muted: bool | None = None

    @classmethod
    def from_clip(
        cls, clip: Clip, track: TrackKind, origin: float, layer_id: str | None = None
    ) -> "ClipboardClip":
        return cls(
            track=track,
            source_id=clip.source_id,
            duration=clip.duration,
            relative_offset=clip.timestamp - origin,
            url=clip.url,
            trim_start=clip.trim_start,
            trim_end=clip.trim_end,
            layer_id=layer_id,
            muted=clip.muted,
        )


class Clipboard:
    def __init__(self) -> None:
        self._clips: list[ClipboardClip] = []

    @property
    def clips(self) -> list[ClipboardClip]:
        return list(self._clips)

    def is_empty(self) -> bool:
        return not self._clips

    def clear(self) -> None:
        self._clips = []

    def copy(
        self,
        timeline: Timeline,
        video_ids: Iterable[str] = (),
        audio_refs: Iterable[tuple[str, str | None]] = (),
    ) -> list[ClipboardClip]:
        """Replace the clipboard with the selected clips.

        Unknown ids raise ClipNotFoundError and leave the clipboard as it was.

        Args:
            timeline: Timeline holding the selection
            video_ids: Selected video clip ids
            audio_refs: Selected audio clips as ``(clip_id, layer_id)`` pairs

        Returns:
            The copied entries
        """
        selected: list[tuple[TrackKind, Clip, str | None]] = []
        for clip_id in dict.fromkeys(video_ids):
            selected.append(("video", timeline.find_video_clip(clip_id), None))
        for clip_id, layer_id in dict.fromkeys(audio_refs):
            layer, clip = timeline.find_audio_clip(clip_id, layer_id)
            selected.append(("audio", clip, layer.id))

        if not selected:
            self._clips = []
            return []

        origin = min(clip.timestamp for _, clip, _ in selected)
        self._clips = [
            ClipboardClip.from_clip(clip, track, origin, layer_id)
            for track, clip, layer_id in selected
        ]
        logger.debug(f"Copied {len(self._clips)} clip(s) to clipboard")
        return self.clips
