"""Elbow-point detection on a variance-explained curve.

The curve is treated as points (rank, variance).  A chord is drawn from the
first to the last point and the elbow is the interior point with the largest
perpendicular distance below that chord.  Pure geometry: no randomness, so
the same variance sequence always gives the same elbow.
"""

from typing import Sequence, Union

import numpy as np

from pcaguide.errors import InsufficientComponents, InvalidParameter
from pcaguide.result import PCAResult


def _as_variance(variance) -> np.ndarray:
    if isinstance(variance, PCAResult):
        variance = variance.variance
    v = np.asarray(variance, dtype=np.float64).ravel()
    if not np.all(np.isfinite(v)):
        raise InvalidParameter("variance sequence must be finite", v.tolist()[:10])
    if v.size >= 2 and np.any(np.diff(v) > 1e-9 * max(1.0, float(np.abs(v).max()))):
        raise InvalidParameter("variance sequence must be non-increasing", v.tolist()[:10])
    return v


def elbow_distances(variance: Union[PCAResult, Sequence[float]]) -> np.ndarray:
    """Signed perpendicular distance of every point to the first-last chord.

    Positive values lie below the chord (the convex side of a scree curve);
    the end points are always 0.
    """
    v = _as_variance(variance)
    if v.size < 3:
        raise InsufficientComponents("elbow detection needs at least 3 components", int(v.size))
    x = np.arange(1, v.size + 1, dtype=np.float64)
    x0, y0, x1, y1 = x[0], v[0], x[-1], v[-1]
    dx, dy = x1 - x0, y1 - y0
    norm = np.hypot(dx, dy)
    # 2-D cross product of (point - start) with the chord, over chord length
    return (dy * (x - x0) - dx * (v - y0)) / norm


def find_elbow(variance: Union[PCAResult, Sequence[float]]) -> int:
    """1-based rank of the elbow of a non-increasing variance sequence.

    Args:
        variance: Percent variance per component, or a ``PCAResult``.

    Returns:
        The rank of the interior point farthest below the first-last chord.
        When no interior point lies below the chord (a straight or concave
        curve) there is no elbow and the last rank is returned.

    Raises:
        InsufficientComponents: fewer than 3 components (no interior point).
        InvalidParameter: the sequence is increasing somewhere or non-finite.
    """
    d = elbow_distances(variance)
    interior = d[1:-1]
    if not np.any(interior > 0):
        return int(d.size)
    # argmax returns the first maximum, so ties resolve to the lower rank
    return int(np.argmax(interior)) + 2
