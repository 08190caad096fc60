# motionkin/config.py
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


def _flag(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return v != 0
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true", "yes", "on", "1"):
            return True
        if s in ("false", "no", "off", "0"):
            return False
    raise ValueError(f"expected a boolean, got {v!r}")


def _delimiter(v: Any) -> str:
    s = str(v)
    if not s:
        raise ValueError("delimiter must be a non-empty string")
    return s


CONFIG_FIELDS = [
    ("log_path", Path, lambda: Path("logs/motionkin.log")),

    # scene + motion sources
    ("rig_config_path", Path, None),
    ("motion_csv_path", Path, None),
    ("persistence_path", Path, None),

    # motion CSV dialect
    ("delimiter", _delimiter, ","),
    ("comment_prefix", str, "#"),

    # playback defaults
    ("default_speed", float, 1.0),
    ("default_loop", _flag, True),
    ("tick_ms", int, 16),
    ("reset_to_rest_on_load", _flag, True),
]


@dataclass(frozen=True)
class AppConfig:
    log_path: Path
    rig_config_path: Optional[Path]
    motion_csv_path: Optional[Path]
    persistence_path: Optional[Path]
    delimiter: str
    comment_prefix: str
    default_speed: float
    default_loop: bool
    tick_ms: int
    reset_to_rest_on_load: bool


def _build(raw: dict) -> AppConfig:
    values = {}
    for entry in CONFIG_FIELDS:
        key = entry[0]
        cast = entry[1]
        default = entry[2] if len(entry) > 2 else None

        if key in raw:
            value = raw[key]
        else:
            value = default() if callable(default) else default

        if value is not None and cast is not None:
            value = cast(value)

        values[key] = value

    return AppConfig(**values)


def default_config() -> AppConfig:
    return _build({})


def load_config(config_path: Path) -> AppConfig:
    if not config_path.exists():
        return default_config()
    raw = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Config must be a JSON object: {config_path}")
    return _build(raw)
