from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


Vec3 = tuple[float, float, float]
Slots3 = list[Optional[float]]  # None = unset


class Channel(str, Enum):
    POSITION = "position"
    ROTATION_DEG = "rotation_deg"
    SCALE = "scale"


class Axis(str, Enum):
    X = "x"
    Y = "y"
    Z = "z"

    @property
    def slot(self) -> int:
        return _AXIS_SLOT[self]


_AXIS_SLOT = {Axis.X: 0, Axis.Y: 1, Axis.Z: 2}


@dataclass(frozen=True)
class SampleRow:
    time_ms: float
    target: str
    channel: Channel
    axis: Axis
    value: float


class TrackKey(NamedTuple):
    target: str
    channel: Channel
    axis: Axis


@dataclass(frozen=True)
class Keyframe:
    time_ms: float
    value: float


@dataclass(frozen=True)
class Track:
    """
    Keyframes for one (target, channel, axis), stored as parallel tuples so the
    sampler can binary-search `times` without rebuilding it per query.
    """
    key: TrackKey
    times: tuple[float, ...]
    values: tuple[float, ...]

    def __len__(self) -> int:
        return len(self.times)

    @property
    def keyframes(self) -> list[Keyframe]:
        return [Keyframe(t, v) for t, v in zip(self.times, self.values)]

    @property
    def first_time_ms(self) -> Optional[float]:
        return self.times[0] if self.times else None

    @property
    def last_time_ms(self) -> Optional[float]:
        return self.times[-1] if self.times else None


@dataclass(frozen=True)
class CompiledTimeline:
    tracks: Mapping[TrackKey, Track]
    duration_ms: float

    @staticmethod
    def empty() -> "CompiledTimeline":
        return CompiledTimeline(tracks=MappingProxyType({}), duration_ms=1.0)

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    @property
    def targets(self) -> list[str]:
        return sorted({k.target for k in self.tracks})

    def get(self, target: str, channel: Channel, axis: Axis) -> Optional[Track]:
        return self.tracks.get(TrackKey(target, channel, axis))


def _unset() -> Slots3:
    return [None, None, None]


@dataclass
class PoseDelta:
    position: Slots3 = field(default_factory=_unset)
    rotation_deg: Slots3 = field(default_factory=_unset)
    scale: Slots3 = field(default_factory=_unset)

    def slots(self, channel: Channel) -> Slots3:
        if channel is Channel.POSITION:
            return self.position
        if channel is Channel.ROTATION_DEG:
            return self.rotation_deg
        return self.scale

    def set_value(self, channel: Channel, axis: Axis, value: float) -> None:
        self.slots(channel)[axis.slot] = value

    def is_set(self, channel: Channel, axis: Axis) -> bool:
        return self.slots(channel)[axis.slot] is not None

    def has_channel(self, channel: Channel) -> bool:
        return any(c is not None for c in self.slots(channel))


@dataclass(frozen=True)
class PlaybackSnapshot:
    playing: bool
    loop: bool
    speed: float
    progress: float
    time_ms: float
    duration_ms: float

    def as_dict(self) -> dict:
        return {
            "playing": self.playing,
            "loop": self.loop,
            "speed": self.speed,
            "progress": self.progress,
            "timeMs": self.time_ms,
            "durationMs": self.duration_ms,
        }
