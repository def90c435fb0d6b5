"""Clip positioning and overlap resolution.

All checks here are depth-aware: two clips only conflict when they sit on
the same depth (a missing depth is depth 0). Different depths are
independent virtual sub-lanes and may overlap freely.

Provides:
- Visible interval helpers (duration minus trim offsets)
- Epsilon-tolerant overlap detection
- Lowest-free-depth allocation
- Nearest non-overlapping position search
- Auto-trim resolution for "overwrite" drags
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Literal

from timeline_core.schemas.timeline import AutoTrimResult, Clip, ClipCandidate

logger = logging.getLogger(__name__)

# Overlaps of 1ms or less are treated as touching edges
OVERLAP_EPSILON = 0.001

# Visible duration of a clip must stay strictly above this (seconds)
MIN_VISIBLE_DURATION = 0.1

Placeable = Clip | ClipCandidate


# =============================================================================
# Interval model
# =============================================================================


def visible_duration(clip: Placeable) -> float:
    """Duration of the exposed portion of a clip after trims."""
    return clip.duration - (clip.trim_start or 0) - (clip.trim_end or 0)


def visible_end(clip: Placeable) -> float:
    """Timeline position where the visible portion of a clip ends."""
    return clip.timestamp + visible_duration(clip)


def track_end(clips: Iterable[Clip]) -> float:
    """End of the last visible clip on a track, 0 for an empty track."""
    return max((visible_end(c) for c in clips), default=0.0)


def is_visible_duration_valid(duration: float, trim_start: float | None, trim_end: float | None) -> bool:
    return duration - (trim_start or 0) - (trim_end or 0) > MIN_VISIBLE_DURATION


# =============================================================================
# Overlap detection
# =============================================================================


def ranges_overlap(
    start_a: float,
    end_a: float,
    start_b: float,
    end_b: float,
    epsilon: float = OVERLAP_EPSILON,
) -> bool:
    """Check whether two time ranges overlap by more than ``epsilon``.

    Touching edges (``end_a == start_b``) are not an overlap, so clips glued
    back-to-back never trip on floating-point noise.
    """
    return start_a < end_b - epsilon and end_a > start_b + epsilon


def _others(clips: Iterable[Clip], exclude_id: str | None) -> list[Clip]:
    if exclude_id is None:
        return list(clips)
    return [c for c in clips if c.id != exclude_id]


def find_overlapping_clips(
    clips: Iterable[Clip],
    candidate: Placeable,
    exclude_id: str | None = None,
) -> list[Clip]:
    """Find all clips at the candidate's depth that overlap it.

    Args:
        clips: Existing clips on one track or layer
        candidate: Clip (or prospective placement) to check
        exclude_id: Clip id to ignore, typically the clip being moved

    Returns:
        Overlapping clips, in track order
    """
    start = candidate.timestamp
    end = visible_end(candidate)
    lane = candidate.depth or 0
    return [
        c
        for c in _others(clips, exclude_id)
        if (c.depth or 0) == lane and ranges_overlap(start, end, c.timestamp, visible_end(c))
    ]


def would_overlap(
    clips: Iterable[Clip],
    candidate: Placeable,
    exclude_id: str | None = None,
) -> bool:
    return bool(find_overlapping_clips(clips, candidate, exclude_id))


def is_position_valid(
    clips: Iterable[Clip],
    clip_id: str,
    timestamp: float,
    duration: float,
    trim_start: float | None = None,
    trim_end: float | None = None,
    depth: int | None = None,
) -> bool:
    """Check if a clip could sit at ``timestamp`` without overlapping its depth."""
    candidate = ClipCandidate(
        id=clip_id,
        timestamp=timestamp,
        duration=duration,
        trim_start=trim_start,
        trim_end=trim_end,
        depth=depth,
    )
    return not would_overlap(clips, candidate, clip_id)


# =============================================================================
# Depth allocation
# =============================================================================


def find_available_depth(
    clips: Iterable[Clip],
    timestamp: float,
    duration: float,
    exclude_id: str | None = None,
) -> int:
    """Return the lowest depth where ``[timestamp, timestamp + duration)`` is free.

    Gaps in the depth sequence are filled: with depths {0, 2} occupied the
    result is 1, not 3.

    Args:
        clips: Existing clips on the layer
        timestamp: Candidate start
        duration: Candidate visible duration
        exclude_id: Clip id to ignore

    Returns:
        Smallest non-negative depth without a conflicting clip
    """
    end = timestamp + duration
    occupied = {
        c.depth or 0
        for c in _others(clips, exclude_id)
        if ranges_overlap(timestamp, end, c.timestamp, visible_end(c))
    }
    depth = 0
    while depth in occupied:
        depth += 1
    return depth


# =============================================================================
# Position search
# =============================================================================


def find_nearest_valid_position(
    clips: Sequence[Clip],
    candidate: Placeable,
    exclude_id: str | None = None,
) -> float:
    """Find the nearest timestamp where the candidate fits at its depth.

    Returns the requested timestamp (clamped to >= 0) when it is already free.
    Otherwise every valid slot at the candidate's depth is considered: before
    the first clip, each inter-clip gap wide enough for the candidate's
    visible duration, and right after the last clip. The slot closest to the
    requested timestamp wins; ties go to the earliest slot.

    Args:
        clips: Existing clips on the track or layer
        candidate: Requested placement (timestamp, duration, trims, depth)
        exclude_id: Clip id to ignore, typically the clip being moved

    Returns:
        A non-negative timestamp free of same-depth overlaps
    """
    requested = max(0.0, candidate.timestamp)
    if requested != candidate.timestamp:
        candidate = candidate.model_copy(update={"timestamp": requested})
    length = visible_duration(candidate)
    others = _others(clips, exclude_id)

    if not others or not would_overlap(others, candidate):
        return requested

    lane = candidate.depth or 0
    same_depth = sorted(
        (c for c in others if (c.depth or 0) == lane),
        key=lambda c: c.timestamp,
    )

    positions: list[float] = []

    # Before the first clip
    first_start = same_depth[0].timestamp
    if length <= first_start:
        positions.append(max(0.0, min(requested, first_start - length)))

    # Gaps between clips; a stale long clip may cover later starts, so track
    # the furthest end seen so far
    furthest_end = visible_end(same_depth[0])
    for nxt in same_depth[1:]:
        gap_start = furthest_end
        gap_end = nxt.timestamp
        if gap_end - gap_start >= length:
            if gap_start <= requested and requested + length <= gap_end:
                positions.append(requested)
            elif requested < gap_start:
                positions.append(gap_start)
            else:
                positions.append(gap_end - length)
        furthest_end = max(furthest_end, visible_end(nxt))

    # After the last clip
    positions.append(max(furthest_end, requested))

    best = min(positions, key=lambda p: abs(p - requested))
    return max(0.0, best)


def get_valid_position(
    clips: Sequence[Clip],
    clip_id: str,
    timestamp: float,
    duration: float,
    trim_start: float | None = None,
    trim_end: float | None = None,
    depth: int | None = None,
) -> float:
    """Auto-correct a requested timestamp for an existing clip."""
    candidate = ClipCandidate(
        id=clip_id,
        timestamp=timestamp,
        duration=duration,
        trim_start=trim_start,
        trim_end=trim_end,
        depth=depth,
    )
    return find_nearest_valid_position(clips, candidate, clip_id)


# =============================================================================
# Auto-trim
# =============================================================================


def calculate_auto_trim(
    clips: Sequence[Clip],
    moving: Placeable,
    exclude_id: str | None = None,
) -> AutoTrimResult:
    """Work out whether an overwrite drag can be resolved by trimming.

    When the moving clip's start lands strictly inside an existing clip at
    the same depth, that clip's ``trim_end`` is grown so it ends exactly
    where the moving clip now starts.

    The result is only valid when the trimmed clip keeps a visible duration
    above ``MIN_VISIBLE_DURATION`` and the moving clip overlaps nothing
    else afterwards. Callers fall back to position search otherwise.

    Args:
        clips: Existing clips on the track or layer
        moving: The clip being moved, at its new position
        exclude_id: Id of the clip being moved

    Returns:
        AutoTrimResult with the clip to trim, its new trim_end and validity
    """
    moving_start = moving.timestamp
    moving_end = visible_end(moving)
    lane = moving.depth or 0
    others = [c for c in _others(clips, exclude_id) if (c.depth or 0) == lane]

    overlapped = next(
        (
            c
            for c in others
            if c.timestamp + OVERLAP_EPSILON < moving_start < visible_end(c) - OVERLAP_EPSILON
        ),
        None,
    )

    if overlapped is None:
        has_overlap = any(
            ranges_overlap(moving_start, moving_end, c.timestamp, visible_end(c)) for c in others
        )
        return AutoTrimResult(clip_to_trim=None, new_trim_end=0, is_valid=not has_overlap)

    overlap_amount = visible_end(overlapped) - moving_start
    new_trim_end = (overlapped.trim_end or 0) + overlap_amount

    if not is_visible_duration_valid(overlapped.duration, overlapped.trim_start, new_trim_end):
        return AutoTrimResult(clip_to_trim=None, new_trim_end=0, is_valid=False)

    still_overlaps = any(
        ranges_overlap(moving_start, moving_end, c.timestamp, visible_end(c))
        for c in others
        if c.id != overlapped.id
    )
    if still_overlaps:
        return AutoTrimResult(clip_to_trim=None, new_trim_end=0, is_valid=False)

    return AutoTrimResult(clip_to_trim=overlapped.id, new_trim_end=new_trim_end, is_valid=True)


def is_position_valid_or_auto_trimmable(
    clips: Sequence[Clip],
    moving: Placeable,
    exclude_id: str | None = None,
) -> bool:
    if not would_overlap(clips, moving, exclude_id):
        return True
    return calculate_auto_trim(clips, moving, exclude_id).is_valid


# =============================================================================
# Trim limits
# =============================================================================


def get_max_trim_extension(
    clips: Sequence[Clip],
    clip_id: str,
    side: Literal["left", "right"],
) -> float:
    """How much of a trim can be given back on one side without a collision.

    Args:
        clips: Clips on the track or layer, including ``clip_id``
        clip_id: Clip whose trim is being relaxed
        side: "left" relaxes trim_start, "right" relaxes trim_end

    Returns:
        Seconds the clip can grow on that side (0 if the clip is unknown)
    """
    clip = next((c for c in clips if c.id == clip_id), None)
    if clip is None:
        return 0.0

    current = (clip.trim_start if side == "left" else clip.trim_end) or 0
    lane = clip.depth or 0
    others = [c for c in clips if c.id != clip_id and (c.depth or 0) == lane]

    start = clip.timestamp
    end = visible_end(clip)

    if side == "left":
        ends_before = [visible_end(c) for c in others if visible_end(c) <= start + OVERLAP_EPSILON]
        if not ends_before:
            return min(current, start)
        return max(0.0, min(current, start - max(ends_before)))

    starts_after = [c.timestamp for c in others if c.timestamp >= end - OVERLAP_EPSILON]
    if not starts_after:
        return current
    return max(0.0, min(current, min(starts_after) - end))
