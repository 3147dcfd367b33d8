"""Central numerical helpers shared across the pipeline.

Provides the building blocks used by the decomposition adapter, the
parallel-analysis engine and the retention heuristics:

* **Input normalisation** -- coerce arrays/DataFrames into a labelled
  features x samples matrix and reject empty or non-finite input.
* **Centering / scaling** -- per-feature preprocessing across samples with an
  explicit failure for zero-variance features under scaling.
* **SVD collaborator** -- a thin wrapper over scipy's exact SVD and
  scikit-learn's randomised SVD returning the top-k singular triplets.
* **Spectrum conversion** -- singular values to eigenvalues and to percent
  variance explained.

Key notation throughout:
  - M   : (n x p) samples x features matrix (the transpose of the labelled
          features x samples input)
  - U   : (n x k) left singular vectors, one row per sample
  - Vt  : (k x p) right singular vectors, rows are PC loading directions
  - s   : (k,) singular values, descending
"""

from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import effective_n_jobs
from scipy import linalg
from sklearn.utils.extmath import randomized_svd, svd_flip

from pcaguide.config import EPS, SEED, SVD_SOLVERS, check_choice
from pcaguide.errors import (
    DegenerateInput, DimensionMismatch, InvalidParameter, RankExceeded,
)


def as_feature_matrix(
    X,
    feature_names: Optional[Sequence] = None,
    sample_names: Optional[Sequence] = None,
) -> pd.DataFrame:
    """Coerce *X* into a float64 DataFrame with features as rows.

    Arrays get integer position labels unless names are supplied.  Labels
    must be unique on both axes; every entry must be finite (imputation of
    missing values happens before this point).
    """
    if isinstance(X, pd.DataFrame):
        df = X.copy()
    else:
        arr = np.asarray(X)
        if arr.ndim != 2:
            raise DegenerateInput("feature matrix must be 2-dimensional", arr.shape)
        df = pd.DataFrame(arr)

    if feature_names is not None:
        if len(feature_names) != df.shape[0]:
            raise DimensionMismatch(
                "feature_names must match the number of rows", (len(feature_names), df.shape[0]),
            )
        df.index = pd.Index(feature_names)
    if sample_names is not None:
        if len(sample_names) != df.shape[1]:
            raise DimensionMismatch(
                "sample_names must match the number of columns", (len(sample_names), df.shape[1]),
            )
        df.columns = pd.Index(sample_names)

    if df.shape[0] == 0 or df.shape[1] == 0:
        raise DegenerateInput("feature matrix must have at least one row and one column", df.shape)
    if df.index.has_duplicates:
        dups = df.index[df.index.duplicated()].unique().tolist()
        raise InvalidParameter("feature labels must be unique", dups[:10])
    if df.columns.has_duplicates:
        dups = df.columns[df.columns.duplicated()].unique().tolist()
        raise InvalidParameter("sample labels must be unique", dups[:10])

    try:
        df = df.astype(np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter("feature matrix must be numeric", str(exc)) from exc

    n_bad = int((~np.isfinite(df.to_numpy())).sum())
    if n_bad:
        raise DegenerateInput(
            "feature matrix must not contain missing or infinite values", n_bad,
            "impute or drop them before decomposition",
        )
    return df


def feature_variances(X) -> np.ndarray:
    """Per-feature sample variance (ddof=1) of a features x samples matrix."""
    values = X.to_numpy() if isinstance(X, pd.DataFrame) else np.asarray(X, dtype=np.float64)
    # float64 accumulation; a single sample has no defined variance.
    if values.shape[1] < 2:
        return np.zeros(values.shape[0], dtype=np.float64)
    return values.var(axis=1, ddof=1)


def center_and_scale(
    M: np.ndarray,
    *,
    center: bool = True,
    scale: bool = False,
    feature_names: Optional[Sequence] = None,
    reject_duplicates: bool = False,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Center and optionally unit-scale each feature (column) across samples.

    Returns (Mp, means, scales).  *means* is all zeros when ``center`` is
    False and *scales* all ones when ``scale`` is False.

    Scaling follows R's ``scale()``: the sample standard deviation when the
    column has been centered, otherwise the root mean square
    sqrt(sum(x^2) / (n - 1)).  A feature whose spread is zero (relative to
    its magnitude) cannot be brought to unit variance and raises
    ``DegenerateInput``; the offending features are named in the error.

    With ``reject_duplicates`` (only meaningful together with ``scale``) two
    features that are identical after standardisation also raise
    ``DegenerateInput``: their difference has zero variance, so the scaled
    matrix carries a redundant direction.
    """
    M = np.asarray(M, dtype=np.float64)
    n, p = M.shape
    means = M.mean(axis=0) if center else np.zeros(p, dtype=np.float64)
    Mc = M - means
    scales = np.ones(p, dtype=np.float64)
    if scale:
        scales = np.sqrt(np.sum(Mc ** 2, axis=0) / max(n - 1, 1))
        floor = EPS * np.maximum(1.0, np.abs(M).max(axis=0))
        zero = np.flatnonzero(scales <= floor)
        if zero.size:
            labels = list(np.asarray(feature_names)[zero]) if feature_names is not None else zero.tolist()
            raise DegenerateInput(
                "zero-variance features cannot be scaled to unit variance", labels[:10],
                f"{zero.size} feature(s) affected; drop them or use scale=False",
            )
        Mc = Mc / scales
        if reject_duplicates:
            dup = np.flatnonzero(pd.DataFrame(Mc.T).duplicated().to_numpy())
            if dup.size:
                labels = list(np.asarray(feature_names)[dup]) if feature_names is not None else dup.tolist()
                raise DegenerateInput(
                    "duplicated features have a zero-variance difference once scaled", labels[:10],
                    f"{dup.size} duplicate feature(s); drop them or use scale=False",
                )
    return Mc, means, scales


def rank_bound(n_samples: int, n_features: int, *, centered: bool = True) -> int:
    """Largest number of components a (centered) samples x features matrix supports."""
    return min(n_samples, n_features) - (1 if centered else 0)


def check_decomposable(n_samples: int, n_features: int, *, centered: bool = True) -> int:
    """Rank bound of the processed matrix; ``DegenerateInput`` when it has no components."""
    bound = rank_bound(n_samples, n_features, centered=centered)
    if bound < 1:
        raise DegenerateInput(
            "matrix has no components to extract", (n_features, n_samples),
            "a centered matrix needs at least 2 features and 2 samples",
        )
    return bound


def svd_top_k(
    M: np.ndarray,
    k: int,
    *,
    solver: str = "auto",
    seed: int = SEED,
    centered: bool = True,
    compute_vectors: bool = True,
) -> Tuple[Optional[np.ndarray], np.ndarray, Optional[np.ndarray]]:
    """Top-k singular triplets of a preprocessed samples x features matrix.

    Parameters
    ----------
    M : (n, p) array
        Centered (optionally scaled) data, samples as rows.
    k : int
        Requested rank.  Must not exceed min(n, p), or min(n, p) - 1 when the
        columns were centered (centering removes one degree of freedom).
    solver : {"auto", "exact", "randomized"}
        "auto" picks randomised SVD for large matrices when k is small
        relative to min(n, p), the same rule scikit-learn's PCA uses.
    seed : int
        Random state for the randomised solver.
    compute_vectors : bool
        When False only the singular values are computed (permutation runs).

    Returns
    -------
    U : (n, k) array or None
        Left singular vectors (one row per sample).
    s : (k,) array
        Singular values, non-negative and descending.
    Vt : (k, p) array or None
        Right singular vectors (rows are loading directions).

    Signs follow ``svd_flip`` (largest-magnitude entry of each left vector
    positive), so repeated calls on the same data agree exactly.
    """
    check_choice("svd_solver", solver, SVD_SOLVERS)
    M = np.asarray(M, dtype=np.float64)
    n, p = M.shape
    bound = rank_bound(n, p, centered=centered)
    if int(k) < 1:
        raise InvalidParameter("number of components must be >= 1", k)
    if int(k) > bound:
        raise RankExceeded(
            "requested components exceed the matrix rank bound", int(k),
            f"at most {bound} for a {n} x {p} {'centered ' if centered else ''}matrix",
        )
    k = int(k)

    if solver == "auto":
        solver = "randomized" if (max(n, p) > 500 and k < 0.8 * min(n, p)) else "exact"

    if solver == "randomized":
        U, s, Vt = randomized_svd(M, n_components=k, random_state=seed)
    elif not compute_vectors:
        s = linalg.svdvals(M)[:k]
        return None, s, None
    else:
        U, s, Vt = linalg.svd(M, full_matrices=False)
        U, Vt = svd_flip(U, Vt)
        U, s, Vt = U[:, :k], s[:k], Vt[:k]

    if not compute_vectors:
        return None, s, None
    return U, s, Vt


def eigenvalues_from_singular(s: np.ndarray, n_samples: int) -> np.ndarray:
    """lambda_k = s_k^2 / (n - 1): eigenvalues of the sample covariance."""
    s = np.asarray(s, dtype=np.float64)
    return s ** 2 / max(n_samples - 1, 1)


def percent_variance(s: np.ndarray, total_ss: Optional[float] = None) -> np.ndarray:
    """Percent variance explained per component.

    With ``total_ss=None`` the denominator is the sum of the captured squared
    singular values, i.e. percentages are relative to the k-dimensional
    subspace and sum to 100.  Pass the squared Frobenius norm of the
    processed matrix to express them relative to its total variance instead.
    """
    ss = np.asarray(s, dtype=np.float64) ** 2
    denom = float(ss.sum()) if total_ss is None else float(total_ss)
    if denom <= EPS:
        return np.zeros_like(ss)
    return ss / denom * 100.0


def resolve_n_jobs(n_jobs: int) -> int:
    """Concrete worker count for a joblib ``n_jobs`` value (-1 = all cores)."""
    if n_jobs == 0:
        raise InvalidParameter("n_jobs must be non-zero", n_jobs)
    return int(effective_n_jobs(n_jobs))
