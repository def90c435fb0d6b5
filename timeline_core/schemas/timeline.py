from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


TrackKind = Literal["video", "audio"]


class ContractModel(BaseModel):
    """Base for models whose serialized field names are the camelCase contract."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Clip(ContractModel):
    id: str
    source_id: str | None = None
    url: str | None = None
    timestamp: float = 0
    duration: float = 0
    trim_start: float | None = None
    trim_end: float | None = None
    depth: int | None = None

    # Audio clips only
    muted: bool | None = None

    @property
    def visible_duration(self) -> float:
        return self.duration - (self.trim_start or 0) - (self.trim_end or 0)

    @property
    def visible_end(self) -> float:
        return self.timestamp + self.visible_duration

    @property
    def lane(self) -> int:
        """Depth with an absent value read as the base lane."""
        return self.depth or 0


class AudioLayer(ContractModel):
    id: str
    name: str
    muted: bool = False
    clips: list[Clip] = Field(default_factory=list)


class TimelineSnapshot(ContractModel):
    """Deep copy of both tracks, used by batch commands and persistence."""

    video_clips: list[Clip] = Field(default_factory=list)
    audio_layers: list[AudioLayer] = Field(default_factory=list)


class OverlapViolation(ContractModel):
    clip_id: str
    overlaps_with_id: str
    start: float
    end: float


class AutoTrimResult(ContractModel):
    clip_to_trim: str | None = None
    new_trim_end: float = 0
    is_valid: bool = False


class ClipCandidate(ContractModel):
    """A prospective placement checked against a track before it is applied."""

    id: str | None = None
    timestamp: float
    duration: float
    trim_start: float | None = None
    trim_end: float | None = None
    depth: int | None = None

    @property
    def visible_duration(self) -> float:
        return self.duration - (self.trim_start or 0) - (self.trim_end or 0)

    @property
    def visible_end(self) -> float:
        return self.timestamp + self.visible_duration

    @property
    def lane(self) -> int:
        return self.depth or 0

    @classmethod
    def from_clip(cls, clip: Clip, **overrides) -> "ClipCandidate":
        values = {
            "id": clip.id,
            "timestamp": clip.timestamp,
            "duration": clip.duration,
            "trim_start": clip.trim_start,
            "trim_end": clip.trim_end,
            "depth": clip.depth,
        }
        values.update(overrides)
        return cls(**values)


class ClipDescriptor(ContractModel):
    """Request to add a clip; unset fields are resolved by the editor."""

    track: TrackKind = "video"
    source_id: str | None = None
    id: str | None = None
    url: str | None = None
    timestamp: float | None = None
    duration: float | None = None
    trim_start: float | None = None
    trim_end: float | None = None
    depth: int | None = None
    layer_id: str | None = None
    muted: bool | None = None
