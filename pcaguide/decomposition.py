"""Decomposition adapter: labelled matrix in, ``PCAResult`` out.

Pipeline steps:
  1. Normalise the input into a features x samples DataFrame.
  2. Encode and align sample metadata (fails fast, before any SVD).
  3. Drop low-variance features (optional).
  4. Center and optionally unit-scale every feature across samples.
  5. Factorise with the SVD collaborator (``utils.svd_top_k``).
  6. Convert singular values to eigenvalues and percent variance explained
     and assemble the result.

Explained variance
------------------
The default ``variance_basis="captured"`` computes s_i^2 / sum_{j<=k} s_j^2,
so percentages describe the k-dimensional captured subspace and always sum to
100.  That equals the true proportion of total variance only when k is the
full rank.  ``variance_basis="total"`` divides by the squared Frobenius norm
of the processed matrix instead, which gives true proportions for any k.
"""

from typing import Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from pcaguide.config import SEED, VARIANCE_BASES, VERBOSE, check_choice
from pcaguide.errors import InsufficientSamples, InvalidParameter
from pcaguide.filtering import low_variance_mask
from pcaguide.metadata import encode_metadata
from pcaguide.result import PCAResult, pc_names
from pcaguide.utils import (
    as_feature_matrix, center_and_scale, check_decomposable,
    eigenvalues_from_singular, percent_variance, svd_top_k,
)


def default_n_components(n_features: int, n_samples: int, *, center: bool = True) -> int:
    """min(features, samples) - 1 for centered data, min(features, samples) otherwise."""
    return max(1, min(n_features, n_samples) - (1 if center else 0))


def pca(
    X,
    *,
    metadata: Optional[pd.DataFrame] = None,
    components: Optional[int] = None,
    center: bool = True,
    scale: bool = False,
    remove_var: Optional[float] = None,
    n_remove: Optional[int] = None,
    variance_basis: str = "captured",
    svd_solver: str = "auto",
    seed: int = SEED,
    level_order: Optional[Mapping[str, Sequence]] = None,
    feature_names: Optional[Sequence] = None,
    sample_names: Optional[Sequence] = None,
    verbose: bool = VERBOSE,
) -> PCAResult:
    """Principal component analysis of a features x samples matrix.

    Parameters
    ----------
    X : DataFrame or 2-D array
        Rows are features, columns are samples.  No missing values.
    metadata : DataFrame, optional
        One row per sample (index = sample labels); may cover a subset of the
        samples.  Encoded once into typed columns on the result.
    components : int, optional
        Number of components k.  Defaults to min(features, samples) - 1
        (without the -1 when ``center=False``), computed after filtering.
    center, scale : bool
        Subtract per-feature means; divide by per-feature standard deviation.
    remove_var, n_remove : optional
        Variance filter: fraction or count of lowest-variance features to drop.
    variance_basis : {"captured", "total"}
        Denominator for percent variance explained (see module docstring).
    svd_solver : {"auto", "exact", "randomized"}
    seed : int
        Random state of the randomised solver.
    level_order : mapping, optional
        Explicit categorical level order per metadata attribute.

    Returns
    -------
    PCAResult

    Raises
    ------
    DegenerateInput
        Empty/non-finite matrix, no components to extract (a single
        feature left under centering), or a zero-variance or duplicated
        feature with ``scale=True``.
    DimensionMismatch
        Metadata samples cannot be aligned to the matrix columns.
    InvalidParameter
        Bad filter settings, or fewer surviving features than components.
    RankExceeded
        ``components`` above the rank bound of the processed matrix.
    """
    check_choice("variance_basis", variance_basis, VARIANCE_BASES)
    df = as_feature_matrix(X, feature_names=feature_names, sample_names=sample_names)
    n_features_in, n_samples = df.shape
    if n_samples < 2:
        raise InsufficientSamples("PCA needs at least 2 samples", n_samples)

    # Metadata alignment is validated before any numeric work.
    meta_columns = {}
    if metadata is not None:
        meta_columns = encode_metadata(metadata, df.columns, level_order=level_order)

    keep = low_variance_mask(df, remove_var, n_remove=n_remove)
    removed = tuple(df.index[~keep])
    df = df.loc[keep]
    n_features = df.shape[0]
    check_decomposable(n_samples, n_features, centered=center)

    if components is None:
        k = default_n_components(n_features, n_samples, center=center)
    else:
        k = int(components)
        if k < 1:
            raise InvalidParameter("components must be >= 1", components)
        if n_features < k:
            raise InvalidParameter(
                "fewer features remain after filtering than components requested",
                n_features, f"components={k}",
            )

    if verbose:
        print(f"[pca] n_samples={n_samples}, n_features={n_features} (of {n_features_in}), "
              f"k={k}, center={center}, scale={scale}")

    # samples x features for the SVD, as the rest of the numeric code expects
    M = df.to_numpy().T
    Mp, means, scales = center_and_scale(
        M, center=center, scale=scale, feature_names=df.index, reject_duplicates=scale,
    )
    U, s, Vt = svd_top_k(Mp, k, solver=svd_solver, seed=seed, centered=center)

    # Total sum of squares of the processed matrix = sum of ALL squared
    # singular values, so it does not depend on k.
    total_ss = float(np.sum(Mp ** 2))
    variance = percent_variance(s, None if variance_basis == "captured" else total_ss)
    eigenvalues = eigenvalues_from_singular(s, n_samples)

    if verbose:
        print(f"[pca] top variance %: {np.round(variance[:5], 3).tolist()}")

    return PCAResult(
        components=pc_names(k),
        samples=df.columns,
        features=df.index,
        score_matrix=U * s,
        loading_matrix=Vt.T,
        variance=variance,
        cumulative_variance=np.cumsum(variance),
        singular_values=s,
        eigenvalues=eigenvalues,
        sdev=np.sqrt(eigenvalues),
        total_variance=total_ss / max(n_samples - 1, 1),
        variance_basis=variance_basis,
        centered=bool(center),
        scaled=bool(scale),
        feature_means=means,
        feature_scales=scales,
        removed_features=removed,
        metadata=meta_columns,
    )
