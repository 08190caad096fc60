# motionkin/motion/player.py
from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Union

from .accumulator import PoseTarget, accumulate, apply_pose
from .compiler import compile_timeline
from .csv_rows import parse_motion_text
from .errors import InvalidControlError, MotionFileError
from .types import CompiledTimeline, PlaybackSnapshot, PoseDelta


Listener = Callable[[PlaybackSnapshot], None]


@dataclass
class PlaybackState:
    playing: bool = False
    loop: bool = True
    speed: float = 1.0
    current_time_ms: float = 0.0
    scrub_fraction: float = 0.0


def _clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else 1.0 if x > 1.0 else x


class MotionPlayer:
    """
    Time-based playback of a compiled motion timeline onto named nodes.

    States are Playing and Paused; stop() is Paused at time 0. The render loop
    calls tick(dt_ms) once per frame. Every operation that changes the playhead,
    play state, loop or speed re-samples all tracks, applies the pose through the
    resolver, and then calls each listener with the new snapshot before returning.

    Not thread-safe: reload and tick must come from the same owner.
    """

    def __init__(
        self,
        *,
        resolver: Optional[Mapping[str, PoseTarget]] = None,
        loop: bool = True,
        speed: float = 1.0,
        delimiter: str = ",",
        comment_prefix: str = "#",
        logger=None,
    ) -> None:
        self._check_speed(speed)
        if not delimiter:
            raise InvalidControlError("delimiter must be a non-empty string")
        self._resolver = resolver
        self._timeline = CompiledTimeline.empty()
        self._state = PlaybackState(loop=bool(loop), speed=float(speed))
        self._listeners: List[Listener] = []
        self._last_pose: Dict[str, PoseDelta] = {}
        self.delimiter = delimiter
        self.comment_prefix = comment_prefix
        self.logger = logger

    # ---- observation ----
    @property
    def timeline(self) -> CompiledTimeline:
        return self._timeline

    @property
    def playing(self) -> bool:
        return self._state.playing

    @property
    def loop(self) -> bool:
        return self._state.loop

    @property
    def speed(self) -> float:
        return self._state.speed

    @property
    def time_ms(self) -> float:
        return self._state.current_time_ms

    @property
    def progress(self) -> float:
        return self._state.scrub_fraction

    @property
    def duration_ms(self) -> float:
        return self._timeline.duration_ms

    @property
    def last_pose(self) -> Dict[str, PoseDelta]:
        return self._last_pose

    def get_state(self) -> PlaybackSnapshot:
        s = self._state
        return PlaybackSnapshot(
            playing=s.playing,
            loop=s.loop,
            speed=s.speed,
            progress=s.scrub_fraction,
            time_ms=s.current_time_ms,
            duration_ms=self._timeline.duration_ms,
        )

    def add_listener(self, cb: Listener) -> None:
        self._listeners.append(cb)

    def remove_listener(self, cb: Listener) -> None:
        try:
            self._listeners.remove(cb)
        except ValueError:
            pass

    def set_resolver(self, resolver: Optional[Mapping[str, PoseTarget]]) -> None:
        self._resolver = resolver
        self._changed()

    # ---- control surface ----
    def play(self) -> None:
        if self._state.playing:
            return
        self._state.playing = True
        self._changed()

    def pause(self) -> None:
        if not self._state.playing:
            return
        self._state.playing = False
        self._changed()

    def stop(self) -> None:
        self._state.playing = False
        self._set_time(0.0)
        self._changed()

    def set_speed(self, v: float) -> None:
        self._check_speed(v)
        self._state.speed = float(v)
        self._changed()

    def set_loop(self, loop: bool) -> None:
        self._state.loop = bool(loop)
        self._changed()

    def set_progress(self, fraction: float) -> None:
        """Scrub to a fraction of the duration. Ignored while playing."""
        try:
            f = float(fraction)
        except (TypeError, ValueError) as e:
            raise InvalidControlError(f"progress must be a number, got {fraction!r}") from e
        if not math.isfinite(f):
            raise InvalidControlError(f"progress must be finite, got {fraction!r}")
        if self._state.playing:
            return
        self._set_time(_clamp01(f) * self._timeline.duration_ms)
        self._changed()

    def tick(self, dt_ms: float) -> None:
        s = self._state
        if not s.playing:
            return
        if not math.isfinite(dt_ms) or dt_ms < 0.0:
            dt_ms = 0.0

        duration = self._timeline.duration_ms
        t = s.current_time_ms + dt_ms * s.speed
        if t > duration:
            if s.loop:
                t = t % duration
            else:
                # end of timeline: hold the final pose
                t = duration
                s.playing = False

        self._set_time(t)
        self._changed()

    # ---- loading ----
    def load_compiled(self, timeline: CompiledTimeline) -> None:
        # single assignment: a tick never sees old tracks with a new duration
        self._timeline = timeline
        self._state.playing = False
        self._set_time(0.0)
        self._changed()

    def read_timeline(self, raw_text: str) -> CompiledTimeline:
        """Parse and compile with this player's CSV dialect. Playback state is untouched."""
        parsed = parse_motion_text(raw_text, delimiter=self.delimiter, comment_prefix=self.comment_prefix)
        compiled = compile_timeline(parsed.rows)
        if self.logger:
            self.logger.info(
                "[motion] Loaded CSV: duration %s ms, tracks %d, rows %d, dropped %d",
                compiled.duration_ms,
                compiled.track_count,
                len(parsed.rows),
                parsed.dropped,
            )
        return compiled

    def read_timeline_file(self, path: Union[str, Path]) -> CompiledTimeline:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise MotionFileError(f"Unable to read motion CSV {path}: {e!r}") from e
        if self.logger:
            self.logger.info("[motion] Reading %s", path)
        return self.read_timeline(text)

    def load_timeline(self, raw_text: str) -> CompiledTimeline:
        compiled = self.read_timeline(raw_text)
        self.load_compiled(compiled)
        return compiled

    def load_timeline_file(self, path: Union[str, Path]) -> CompiledTimeline:
        compiled = self.read_timeline_file(path)
        self.load_compiled(compiled)
        return compiled

    # ---- internals ----
    @staticmethod
    def _check_speed(v: float) -> None:
        try:
            f = float(v)
        except (TypeError, ValueError) as e:
            raise InvalidControlError(f"speed must be a number, got {v!r}") from e
        if not math.isfinite(f) or f <= 0.0:
            raise InvalidControlError(f"speed must be a positive finite number, got {v!r}")

    def _set_time(self, t_ms: float) -> None:
        self._state.current_time_ms = t_ms
        self._state.scrub_fraction = _clamp01(t_ms / self._timeline.duration_ms)

    def _resample(self) -> None:
        pose = accumulate(self._timeline.tracks, self._state.current_time_ms)
        if self._resolver is not None:
            apply_pose(self._resolver, pose, logger=self.logger)
        self._last_pose = pose

    def _changed(self) -> None:
        self._resample()
        snap = self.get_state()
        for cb in list(self._listeners):
            cb(snap)
