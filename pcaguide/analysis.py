"""End-to-end exploratory PCA: decomposition, retention guidance, metadata links.

analyze_matrix() chains every stage with a single ``AnalysisConfig``:

  1. Variance filter + decomposition (``decomposition.pca``).
  2. Horn's parallel analysis on the same filtered matrix.
  3. Elbow point of the variance curve.
  4. Component-metadata correlation, when metadata is supplied.

The returned dict holds only numeric artifacts; renderers (scree plots,
biplots, correlation heatmaps) consume it without touching intermediates.
"""

from numbers import Integral
from typing import Optional

import pandas as pd

from pcaguide.config import VERBOSE, AnalysisConfig, component_rank
from pcaguide.correlation import correlate_components
from pcaguide.decomposition import pca
from pcaguide.elbow import find_elbow
from pcaguide.errors import InsufficientComponents
from pcaguide.horn import parallel_analysis
from pcaguide.utils import as_feature_matrix


def analyze_matrix(
    X,
    metadata: Optional[pd.DataFrame] = None,
    config: Optional[AnalysisConfig] = None,
    *,
    name: str = "matrix",
    verbose: bool = VERBOSE,
) -> dict:
    """Run the full pipeline on a features x samples matrix.

    Args:
        X: Features x samples matrix (DataFrame or 2-D array).
        metadata: Optional sample metadata (index = sample labels).
        config: Analysis options; defaults to ``AnalysisConfig()``.
        name: Label used in progress output.
        verbose: Print progress lines.

    Returns:
        Dictionary with keys: pca (PCAResult), parallel
        (ParallelAnalysisResult), horn_n, elbow (int or None when fewer than
        3 components), correlation (CorrelationResult or None), config.
    """
    config = config or AnalysisConfig()
    results = {"config": config}

    # explicit component lists select components downstream; the
    # decomposition needs the highest requested rank
    components = config.components
    selection = None
    if components is not None and not isinstance(components, Integral):
        selection = list(components)
        components = max(component_rank(c) for c in selection)

    if verbose:
        print(f"[{name}] decomposing")
    result = pca(
        X,
        metadata=metadata,
        components=components,
        center=config.center,
        scale=config.scale,
        remove_var=config.remove_var,
        variance_basis=config.variance_basis,
        svd_solver=config.svd_solver,
        verbose=verbose,
    )
    results["pca"] = result

    # Parallel analysis sees exactly the features that survived the filter.
    filtered = as_feature_matrix(X).loc[result.features]
    if verbose:
        print(f"[{name}] parallel analysis ({config.n_permutations} iterations)")
    horn = parallel_analysis(
        filtered,
        components=result.n_components,
        n_permutations=config.n_permutations,
        null_percentile=config.null_percentile,
        null_method=config.null_method,
        center=config.center,
        scale=config.scale,
        seed=config.seed,
        svd_solver=config.svd_solver,
        n_jobs=config.n_jobs,
        verbose=verbose,
    )
    results["parallel"] = horn
    results["horn_n"] = horn.n

    try:
        results["elbow"] = find_elbow(result)
    except InsufficientComponents:
        results["elbow"] = None
    if verbose:
        print(f"[{name}] Horn n={horn.n}, elbow={results['elbow']}")

    results["correlation"] = None
    if metadata is not None and result.metadata:
        results["correlation"] = correlate_components(
            result,
            selection,
            method=config.correlation_method,
            correction=config.multiple_test_correction,
            correction_scope=config.correction_scope,
            cutpoints=config.significance_cutpoints,
            symbols=config.significance_symbols,
            pairwise_complete=config.pairwise_complete,
            categorical_encoding=config.categorical_encoding,
            n_jobs=config.n_jobs,
            verbose=verbose,
        )
    return results
