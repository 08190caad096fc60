from __future__ import annotations


class MotionError(RuntimeError):
    pass


class InvalidControlError(MotionError, ValueError):
    """Rejected playback control input (non-positive speed, NaN progress...)."""


class MotionFileError(MotionError):
    pass
