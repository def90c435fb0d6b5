"""Session persistence boundary.

Everything entering or leaving storage passes through here. Saves are
validated with the track validator and rejected whole on any overlap, so
the last good document stays on disk. Loads migrate the legacy flat audio
format into a single default layer.
"""

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from timeline_core.config import get_settings
from timeline_core.exceptions import InvalidFieldValueError, SessionNotFoundError, StorageError
from timeline_core.schemas.session import (
    LayeredAudioTrack,
    LegacyAudioTrack,
    SessionPayload,
    StoredSession,
    read_audio_track,
)
from timeline_core.schemas.timeline import AudioLayer, Clip, TimelineSnapshot
from timeline_core.services.timeline import DEFAULT_LAYER_ID, DEFAULT_LAYER_NAME
from timeline_core.services.track_validator import (
    VIDEO_TRACK,
    ensure_session_valid,
    validate_layers,
    validate_track,
)

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def migrate_legacy_audio(track: LegacyAudioTrack) -> AudioLayer:
    """Move flat legacy audio clips into one default layer.

    A clip keeps its id unless the id is missing, duplicated, or the clip
    predates ``audioId`` (its id then named the source, so it becomes the
    source id and the clip gets a fresh one).
    """
    seen: set[str] = set()
    clips: list[Clip] = []
    regenerated = 0

    for legacy in track.clips:
        source_id = legacy.source_id or legacy.audio_id or legacy.id
        clip_id = legacy.id
        if not clip_id or not (legacy.audio_id or legacy.source_id) or clip_id in seen:
            clip_id = str(uuid4())
            regenerated += 1
        seen.add(clip_id)
        clips.append(
            Clip(
                id=clip_id,
                source_id=source_id,
                url=legacy.url,
                timestamp=legacy.timestamp,
                duration=legacy.duration,
                trim_start=legacy.trim_start,
                trim_end=legacy.trim_end,
                depth=legacy.depth,
                muted=legacy.muted,
            )
        )

    logger.info(f"Migrated {len(clips)} legacy audio clip(s), {regenerated} id(s) regenerated")
    return AudioLayer(id=DEFAULT_LAYER_ID, name=DEFAULT_LAYER_NAME, clips=clips)


def to_snapshot(document: StoredSession) -> tuple[TimelineSnapshot, bool]:
    """Convert a stored document to a snapshot.

    Returns:
        The snapshot, and whether the audio had to be migrated
    """
    track = read_audio_track(document.session_audio)
    if isinstance(track, LayeredAudioTrack):
        layers, migrated = track.layers, False
    else:
        layers, migrated = [migrate_legacy_audio(track)], True
    return TimelineSnapshot(video_clips=document.session_video, audio_layers=layers), migrated


def to_payload(snapshot: TimelineSnapshot) -> SessionPayload:
    return SessionPayload(
        session_video=snapshot.video_clips,
        session_audio=snapshot.audio_layers,
        saved_at=datetime.now(timezone.utc),
    )


class SessionStore(Protocol):
    def exists(self, session_id: str) -> bool: ...

    def load(self, session_id: str) -> TimelineSnapshot: ...

    def save(self, session_id: str, snapshot: TimelineSnapshot) -> None: ...


class LocalSessionStore:
    """Session documents as JSON files, one per session id."""

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path or get_settings().session_storage_path)

    def _path(self, session_id: str) -> Path:
        if not SESSION_ID_PATTERN.match(session_id):
            raise InvalidFieldValueError(
                f"Invalid session id: {session_id!r}", field="session_id", value=session_id
            )
        return self.base_path / f"{session_id}.json"

    def exists(self, session_id: str) -> bool:
        return self._path(session_id).exists()

    def load(self, session_id: str) -> TimelineSnapshot:
        """Read a session, migrating legacy audio.

        Overlaps in stored data are logged, not rejected, so a stale
        document can still be opened and repaired.

        Raises:
            SessionNotFoundError: No document for this id
            StorageError: The document cannot be read or parsed
        """
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFoundError(session_id)

        try:
            document = StoredSession.model_validate_json(path.read_bytes())
            snapshot, migrated = to_snapshot(document)
        except (OSError, PydanticValidationError) as e:
            logger.error(f"Failed to read session {session_id}: {e}")
            raise StorageError(f"Failed to read session {session_id}") from e

        if migrated:
            logger.info(f"Session {session_id} loaded from legacy audio format")

        video_violations = validate_track(snapshot.video_clips)
        if video_violations:
            logger.warning(
                f"Session {session_id}: {len(video_violations)} overlap(s) on {VIDEO_TRACK} track"
            )
        for track, violations in validate_layers(snapshot.audio_layers).items():
            logger.warning(f"Session {session_id}: {len(violations)} overlap(s) on {track}")

        return snapshot

    def save(self, session_id: str, snapshot: TimelineSnapshot) -> None:
        """Validate and write a session; the previous file survives a rejected save.

        Raises:
            OverlappingClipsError: Any track has same-depth overlaps
            StorageError: The file could not be written
        """
        path = self._path(session_id)
        ensure_session_valid(snapshot.video_clips, snapshot.audio_layers)

        body = to_payload(snapshot).model_dump_json(by_alias=True, exclude_none=True, indent=2)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(body, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error(f"Failed to write session {session_id}: {e}")
            raise StorageError(f"Failed to write session {session_id}") from e

        logger.info(
            f"Saved session {session_id}: {len(snapshot.video_clips)} video clip(s), "
            f"{len(snapshot.audio_layers)} audio layer(s)"
        )
