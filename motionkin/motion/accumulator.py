# motionkin/motion/accumulator.py
from __future__ import annotations

import math
from typing import Dict, List, Mapping, Optional, Protocol

from .sampler import sample_track
from .types import Channel, PoseDelta, Slots3, Track, TrackKey


class Vec3Like(Protocol):
    x: float
    y: float
    z: float

    def set(self, x: float, y: float, z: float) -> None:
        ...


class PoseTarget(Protocol):
    """Node shape expected from the resolver. `rotation` is in radians."""
    position: Vec3Like
    rotation: Vec3Like
    scale: Vec3Like


def accumulate(tracks: Mapping[TrackKey, Track], t_ms: float) -> Dict[str, PoseDelta]:
    """
    Sample every track at t_ms and gather the values into one sparse PoseDelta
    per target. Targets without any sampled value get no entry.
    """
    out: Dict[str, PoseDelta] = {}
    for key, track in tracks.items():
        v = sample_track(track, t_ms)
        if v is None:
            continue
        delta = out.get(key.target)
        if delta is None:
            delta = PoseDelta()
            out[key.target] = delta
        delta.set_value(key.channel, key.axis, v)
    return out


def _carry(slots: Slots3, current: Vec3Like) -> tuple[float, float, float]:
    x, y, z = slots
    return (
        current.x if x is None else x,
        current.y if y is None else y,
        current.z if z is None else z,
    )


def _apply_one(node: PoseTarget, delta: PoseDelta) -> None:
    if delta.has_channel(Channel.POSITION):
        node.position.set(*_carry(delta.position, node.position))

    if delta.has_channel(Channel.ROTATION_DEG):
        # degrees on the wire, radians on the node; unset axes keep the node's radians
        rad = [None if d is None else math.radians(d) for d in delta.rotation_deg]
        node.rotation.set(*_carry(rad, node.rotation))

    if delta.has_channel(Channel.SCALE):
        node.scale.set(*_carry(delta.scale, node.scale))


def apply_pose(
    resolver: Mapping[str, PoseTarget],
    poses: Mapping[str, PoseDelta],
    *,
    logger=None,
) -> List[str]:
    """
    Write pose deltas onto resolved nodes using carry-forward: a channel with any
    set axis writes all three axes, taking unset ones from the node's current
    value. Returns the names that could not be resolved (skipped).
    """
    missing: List[str] = []
    for target, delta in poses.items():
        node: Optional[PoseTarget] = resolver.get(target)
        if node is None:
            missing.append(target)
            continue
        _apply_one(node, delta)

    if missing and logger:
        logger.debug("[motion] unresolved targets skipped: %s", ", ".join(missing))
    return missing
