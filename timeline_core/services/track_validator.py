"""Exhaustive overlap validation for whole tracks.

Used only where state arrives from outside the editing path (session load
and save). Interactive edits keep the invariant incrementally and never
call into this module.
"""

import logging
from collections.abc import Sequence

from timeline_core.exceptions import OverlappingClipsError
from timeline_core.schemas.timeline import AudioLayer, Clip, OverlapViolation
from timeline_core.services.positioning import ranges_overlap, visible_end

logger = logging.getLogger(__name__)

VIDEO_TRACK = "video"


def audio_track_name(layer_id: str) -> str:
    return f"audio-layer-{layer_id}"


def validate_track(clips: Sequence[Clip]) -> list[OverlapViolation]:
    """Pairwise scan of one track or layer for same-depth overlaps.

    Args:
        clips: All clips of the video track or of a single audio layer

    Returns:
        Every violating pair with the overlapping interval; empty when valid
    """
    violations: list[OverlapViolation] = []

    for i, clip_a in enumerate(clips):
        start_a = clip_a.timestamp
        end_a = visible_end(clip_a)
        for clip_b in clips[i + 1 :]:
            if (clip_a.depth or 0) != (clip_b.depth or 0):
                continue
            start_b = clip_b.timestamp
            end_b = visible_end(clip_b)
            if ranges_overlap(start_a, end_a, start_b, end_b):
                violations.append(
                    OverlapViolation(
                        clip_id=clip_a.id,
                        overlaps_with_id=clip_b.id,
                        start=max(start_a, start_b),
                        end=min(end_a, end_b),
                    )
                )

    return violations


def validate_layers(layers: Sequence[AudioLayer]) -> dict[str, list[OverlapViolation]]:
    """Validate each audio layer separately, keyed by track name."""
    result: dict[str, list[OverlapViolation]] = {}
    for layer in layers:
        violations = validate_track(layer.clips)
        if violations:
            result[audio_track_name(layer.id)] = violations
    return result


def ensure_session_valid(
    video_clips: Sequence[Clip] | None,
    audio_layers: Sequence[AudioLayer] | None,
) -> None:
    """Reject a session with any overlapping clips.

    The video track is checked first, then each audio layer in order; the
    first offending track is reported with all of its violations.

    Raises:
        OverlappingClipsError: If any track violates the no-overlap invariant
    """
    if video_clips is not None:
        violations = validate_track(video_clips)
        if violations:
            logger.warning(f"Rejected session: {len(violations)} overlap(s) on video track")
            raise OverlappingClipsError(
                VIDEO_TRACK, [v.model_dump(by_alias=True) for v in violations]
            )

    if audio_layers is not None:
        for track, violations in validate_layers(audio_layers).items():
            logger.warning(f"Rejected session: {len(violations)} overlap(s) on {track}")
            raise OverlappingClipsError(track, [v.model_dump(by_alias=True) for v in violations])
