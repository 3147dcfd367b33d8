"""Structureless null matrices for Horn's parallel analysis.

Two null models are provided, both operating on a samples x features matrix:

- Column permutation: each feature is independently permuted across samples.
  This preserves the marginal distribution of every feature but destroys all
  cross-feature dependence (covariance structure).
- Column resampling: each feature is resampled with replacement across
  samples.  Marginals are preserved in distribution only, so the null matrix
  is re-centered (and re-scaled) before decomposition.

Any eigenvalue structure left in a null matrix is due to finite-sample noise
and marginal effects, not genuine correlation, which is exactly the
reference that observed eigenvalues are compared against.
"""

import numpy as np

from pcaguide.config import NULL_METHODS, check_choice
from pcaguide.utils import center_and_scale, eigenvalues_from_singular, svd_top_k

# Redraws of a collapsed resampled column before falling back to a permutation.
MAX_REDRAWS = 100


def column_permutation_null(M: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Independently permute the rows of every column of *M*."""
    M = np.asarray(M, dtype=np.float64)
    return rng.permuted(M, axis=0)


def column_resample_null(
    M: np.ndarray,
    rng: np.random.Generator,
    *,
    keep_spread: bool = False,
    max_redraws: int = MAX_REDRAWS,
) -> np.ndarray:
    """Resample the rows of every column of *M* with replacement.

    With ``keep_spread`` a non-constant column whose draw came out constant is
    redrawn (up to *max_redraws* times, then permuted instead), so the null
    matrix can be scaled to unit variance whenever the observed one can.
    """
    M = np.asarray(M, dtype=np.float64)
    n, p = M.shape
    idx = rng.integers(0, n, size=(n, p))
    Mn = M[idx, np.arange(p)]
    if not keep_spread:
        return Mn
    collapsed = np.flatnonzero((np.ptp(M, axis=0) > 0) & (np.ptp(Mn, axis=0) == 0))
    for j in collapsed:
        for _ in range(max_redraws):
            Mn[:, j] = M[rng.integers(0, n, size=n), j]
            if np.ptp(Mn[:, j]) > 0:
                break
        else:
            Mn[:, j] = rng.permutation(M[:, j])
    return Mn


def null_eigenvalues(
    M: np.ndarray,
    k: int,
    seed: np.random.SeedSequence,
    *,
    method: str = "permute",
    center: bool = True,
    scale: bool = False,
    solver: str = "auto",
) -> np.ndarray:
    """Top-k eigenvalues of one null matrix built from *M*.

    The null matrix is preprocessed with the same ``center``/``scale`` flags
    as the observed data so both spectra live on the same scale.  All
    randomness (the null draw and the randomised SVD state) derives from
    *seed*, so a run is reproducible independently of which worker runs it.
    """
    check_choice("null_method", method, NULL_METHODS)
    rng = np.random.default_rng(seed)
    if method == "permute":
        Mn = column_permutation_null(M, rng)
    else:
        Mn = column_resample_null(M, rng, keep_spread=scale)
    Mp, _, _ = center_and_scale(Mn, center=center, scale=scale)
    svd_seed = int(rng.integers(0, 2 ** 31 - 1))
    _, s, _ = svd_top_k(Mp, k, solver=solver, seed=svd_seed, centered=center, compute_vectors=False)
    return eigenvalues_from_singular(s, M.shape[0])
