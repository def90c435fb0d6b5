"""Stored session documents.

Audio has two on-disk shapes: the current list of layers, and an older
flat list of clips with no layers. ``read_audio_track`` tells them apart
once, when a document is read; everything past that point only sees the
tagged ``AudioTrackPayload``.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from timeline_core.schemas.timeline import AudioLayer, Clip, ContractModel


class LegacyAudioClip(ContractModel):
    """Flat audio clip from before layers; ``audioId`` names the source."""

    id: str | None = None
    audio_id: str | None = None
    source_id: str | None = None
    url: str | None = None
    timestamp: float = 0
    duration: float = 0
    trim_start: float | None = None
    trim_end: float | None = None
    depth: int | None = None
    muted: bool | None = None


class LegacyAudioTrack(BaseModel):
    format: Literal["legacy"] = "legacy"
    clips: list[LegacyAudioClip] = Field(default_factory=list)


class LayeredAudioTrack(BaseModel):
    format: Literal["layered"] = "layered"
    layers: list[AudioLayer] = Field(default_factory=list)


AudioTrackPayload = Annotated[LegacyAudioTrack | LayeredAudioTrack, Field(discriminator="format")]


def read_audio_track(raw: list[dict[str, Any]] | None) -> LegacyAudioTrack | LayeredAudioTrack:
    """Classify a stored audio array; layered entries carry a ``clips`` list."""
    if not raw:
        return LayeredAudioTrack()
    if "clips" in raw[0]:
        return LayeredAudioTrack(layers=raw)
    return LegacyAudioTrack(clips=raw)


class StoredSession(BaseModel):
    """Session document exactly as read from storage, audio not yet classified."""

    session_video: list[Clip] = Field(default_factory=list)
    session_audio: list[dict[str, Any]] = Field(default_factory=list)
    saved_at: datetime | None = None


class SessionPayload(BaseModel):
    """Session document in the current format, as written to storage."""

    session_video: list[Clip] = Field(default_factory=list)
    session_audio: list[AudioLayer] = Field(default_factory=list)
    saved_at: datetime | None = None
