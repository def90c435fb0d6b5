"""Media catalog collaborator.

Resolves a source id to the concrete duration and URL a new clip needs.
The editor depends only on the ``MediaCatalog`` protocol; the in-memory
implementation backs tests and the HTTP app.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from timeline_core.exceptions import MediaNotFoundError
from timeline_core.schemas.timeline import TrackKind

logger = logging.getLogger(__name__)


@dataclass
class MediaInfo:
    source_id: str
    kind: TrackKind
    duration: float | None = None
    url: str | None = None
    # Audio extracted from a video source, added alongside it on the audio track
    linked_audio: "MediaInfo | None" = None


class MediaCatalog(Protocol):
    def resolve(self, source_id: str) -> MediaInfo:
        """Return media info, raising MediaNotFoundError for unknown ids."""
        ...


class InMemoryMediaCatalog:
    def __init__(self, items: list[MediaInfo] | None = None):
        self._items: dict[str, MediaInfo] = {}
        for item in items or []:
            self.register(item)

    def register(self, info: MediaInfo) -> None:
        self._items[info.source_id] = info
        logger.debug(f"Registered media {info.source_id} ({info.kind}, {info.duration}s)")

    def resolve(self, source_id: str) -> MediaInfo:
        info = self._items.get(source_id)
        if info is None:
            raise MediaNotFoundError(source_id)
        return info

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._items
