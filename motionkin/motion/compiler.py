from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Tuple

from .csv_rows import parse_rows
from .types import CompiledTimeline, SampleRow, Track, TrackKey


def compile_timeline(rows: Iterable[SampleRow]) -> CompiledTimeline:
    """
    Group rows by (target, channel, axis) into time-sorted tracks.

    Sorting happens once after all rows are consumed; the sort is stable, so rows
    sharing a time keep their input order. Duration is the latest key time across
    all tracks, floored at 1 ms.
    """
    grouped: Dict[TrackKey, List[Tuple[float, float]]] = {}
    duration = 0.0
    for r in rows:
        key = TrackKey(r.target, r.channel, r.axis)
        grouped.setdefault(key, []).append((r.time_ms, r.value))
        duration = max(duration, r.time_ms)

    tracks: Dict[TrackKey, Track] = {}
    for key, keys in grouped.items():
        keys.sort(key=lambda kv: kv[0])
        tracks[key] = Track(
            key=key,
            times=tuple(t for t, _ in keys),
            values=tuple(v for _, v in keys),
        )

    return CompiledTimeline(tracks=MappingProxyType(tracks), duration_ms=max(1.0, duration))


def compile_text(text: str, *, delimiter: str = ",", comment_prefix: str = "#") -> CompiledTimeline:
    return compile_timeline(parse_rows(text, delimiter=delimiter, comment_prefix=comment_prefix))
