from __future__ import annotations

from typing import Optional, Sequence

from .types import Track


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def find_bracketing_keys(times: Sequence[float], t_ms: float) -> tuple[int, int]:
    """
    Returns (i0, i1) indices into times such that times[i0] <= t < times[i1].
    If t is outside range, returns nearest endpoint pair (0,0) or (n-1,n-1).
    """
    n = len(times)
    if n == 0:
        return (0, 0)
    if t_ms <= times[0]:
        return (0, 0)
    if t_ms >= times[-1]:
        return (n - 1, n - 1)

    # binary search
    lo, hi = 0, n - 1
    while lo + 1 < hi:
        mid = (lo + hi) // 2
        if times[mid] <= t_ms:
            lo = mid
        else:
            hi = mid
    return (lo, hi)


def sample_track(track: Track, t_ms: float) -> Optional[float]:
    """
    Boundary-clamped piecewise-linear sample. Returns None for an empty track;
    authored keyframe times return the authored value exactly.
    """
    if not track.times:
        return None

    i0, i1 = find_bracketing_keys(track.times, t_ms)
    if i0 == i1:
        return track.values[i0]

    t0, t1 = track.times[i0], track.times[i1]
    alpha = (t_ms - t0) / (t1 - t0)
    return _lerp(track.values[i0], track.values[i1], alpha)
