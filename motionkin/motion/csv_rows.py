# motionkin/motion/csv_rows.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .types import Axis, Channel, SampleRow


# time_ms,target,channel,axis,value
# 0,Module_A,position,x,0
# 1000,Module_A,position,x,10
# 2000,Module_A,rotation_deg,z,90
FIELD_ORDER = ("time_ms", "target", "channel", "axis", "value")

_CHANNELS = {c.value: c for c in Channel}
_AXES = {a.value: a for a in Axis}


@dataclass(frozen=True)
class RowParseResult:
    rows: list[SampleRow]
    dropped: int
    header: Optional[list[str]]


def _finite(s: str) -> Optional[float]:
    try:
        v = float(s)
    except ValueError:
        return None
    return v if math.isfinite(v) else None


def _split_records(text: str, delimiter: str, comment_prefix: str) -> list[list[str]]:
    if text.startswith("\ufeff"):
        text = text[1:]
    out: list[list[str]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or (comment_prefix and line.startswith(comment_prefix)):
            continue
        out.append([c.strip() for c in line.split(delimiter)])
    return out


def _to_row(fields: list[str]) -> Optional[SampleRow]:
    if len(fields) < len(FIELD_ORDER):
        return None
    t_str, target, channel_str, axis_str, v_str = fields[:5]

    time_ms = _finite(t_str)
    value = _finite(v_str)
    if time_ms is None or value is None:
        return None

    channel = _CHANNELS.get(channel_str)
    axis = _AXES.get(axis_str)
    if channel is None or axis is None:
        return None

    return SampleRow(time_ms=time_ms, target=target, channel=channel, axis=axis, value=value)


def parse_motion_text(text: str, *, delimiter: str = ",", comment_prefix: str = "#") -> RowParseResult:
    """
    Parse long-form motion text into typed rows.

    Blank and comment lines are skipped. The first retained line is treated as a
    header when its first field is not a finite number. Rows with a bad time or
    value, fewer than five fields, or an unknown channel/axis are dropped and
    counted, never raised.
    """
    records = _split_records(text, delimiter, comment_prefix)

    header: Optional[list[str]] = None
    if records and _finite(records[0][0]) is None:
        header = records[0]
        records = records[1:]

    rows: list[SampleRow] = []
    dropped = 0
    for fields in records:
        row = _to_row(fields)
        if row is None:
            dropped += 1
            continue
        rows.append(row)

    return RowParseResult(rows=rows, dropped=dropped, header=header)


def parse_rows(text: str, *, delimiter: str = ",", comment_prefix: str = "#") -> list[SampleRow]:
    return parse_motion_text(text, delimiter=delimiter, comment_prefix=comment_prefix).rows
