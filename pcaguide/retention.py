"""Closed-form component-retention rules from random matrix theory.

These complement Horn's parallel analysis (simulation-based) and the elbow
detector (geometric):

* Gavish-Donoho optimal hard threshold for singular values.
* Marchenko-Pastur upper edge for sample-covariance eigenvalues of pure noise.
* Cumulative variance threshold.

All rules read a ``PCAResult`` and return an integer number of components.
"""

import math
from typing import Optional

import numpy as np

from pcaguide.errors import InsufficientComponents, InvalidParameter
from pcaguide.result import PCAResult


def _aspect(result: PCAResult):
    """(beta, larger dimension) of the processed samples x features matrix."""
    n, p = result.n_samples, result.n_features
    return min(n, p) / max(n, p), max(n, p)


def _full_rank(result: PCAResult) -> int:
    return min(result.n_samples, result.n_features) - (1 if result.centered else 0)


def gavish_donoho_lambda(beta: float) -> float:
    """lambda*(beta): optimal threshold coefficient for known noise level."""
    return math.sqrt(2.0 * (beta + 1.0) + 8.0 * beta / ((beta + 1.0) + math.sqrt(beta ** 2 + 14.0 * beta + 1.0)))


def gavish_donoho_omega(beta: float) -> float:
    """omega(beta): polynomial approximation used with the median singular value."""
    return 0.56 * beta ** 3 - 0.95 * beta ** 2 + 1.82 * beta + 1.43


def choose_gavish_donoho(result: PCAResult, noise: Optional[float] = None) -> int:
    """Number of singular values above the Gavish-Donoho hard threshold.

    Args:
        result: PCA result.
        noise: Variance of the i.i.d. noise on every matrix entry.  When
            omitted the threshold is omega(beta) * median(s), which needs the
            full singular value spectrum (k at the rank bound).

    Raises:
        InvalidParameter: non-positive noise.
        InsufficientComponents: unknown noise and a truncated spectrum.
    """
    beta, n_large = _aspect(result)
    s = np.asarray(result.singular_values)
    if noise is None:
        if result.n_components < _full_rank(result):
            raise InsufficientComponents(
                "median-based Gavish-Donoho threshold needs the full singular value spectrum",
                result.n_components, f"rank bound is {_full_rank(result)}; pass noise= instead",
            )
        tau = gavish_donoho_omega(beta) * float(np.median(s))
    else:
        if noise <= 0:
            raise InvalidParameter("noise variance must be positive", noise)
        tau = gavish_donoho_lambda(beta) * math.sqrt(n_large) * math.sqrt(noise)
    return int(np.sum(s > tau))


def marchenko_pastur_edge(n_samples: int, n_features: int, noise: float) -> float:
    """Upper edge sigma^2 (1 + sqrt(p / n))^2 of the Marchenko-Pastur law."""
    return float(noise) * (1.0 + math.sqrt(n_features / n_samples)) ** 2


def choose_marchenko_pastur(result: PCAResult, noise: float) -> int:
    """Number of eigenvalues above the Marchenko-Pastur upper edge."""
    if noise is None or noise <= 0:
        raise InvalidParameter("noise variance must be positive", noise)
    edge = marchenko_pastur_edge(result.n_samples, result.n_features, noise)
    return int(np.sum(np.asarray(result.eigenvalues) > edge))


def choose_cumulative_variance(result: PCAResult, threshold: float = 80.0) -> int:
    """Smallest number of components whose cumulative variance reaches *threshold* %."""
    if not (0.0 < float(threshold) <= 100.0):
        raise InvalidParameter("threshold must lie in (0, 100]", threshold)
    cum = np.asarray(result.cumulative_variance)
    # tolerate float drift in the running sum (e.g. 99.99999999999999)
    hits = np.flatnonzero(cum >= float(threshold) - 1e-9)
    if hits.size == 0:
        raise InsufficientComponents(
            "captured components do not reach the variance threshold", float(cum[-1]),
            f"threshold={threshold}",
        )
    return int(hits[0]) + 1
