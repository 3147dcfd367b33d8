"""Correlate principal components with sample metadata.

For every (component, attribute) pair a correlation statistic and its
p-value are computed, p-values are corrected for multiple testing, and each
adjusted p-value is mapped to a significance symbol.

Missing data
------------
With ``pairwise_complete=True`` (default) each pair uses only the samples
that have both a score and an attribute value, independently of the other
pairs.  With ``pairwise_complete=False`` a single complete-case subset is
taken across all requested attributes and shared by every pair.

Categorical attributes
----------------------
Categorical attributes are correlated through their level indices
(``categorical_encoding="ordinal"``).  This treats unordered categories as if
they were ordered and is a simplification: the statistic depends on the level
order.  Pass ``categorical_encoding="error"`` to refuse categorical attributes
and pre-encode them numerically instead.

Multiple testing
----------------
``correction`` uses statsmodels' ``multipletests``; ``correction_scope``
selects whether the family is every pair at once ("all") or the attributes
within each component ("component").  Pairs whose p-value is undefined
(constant input) stay NaN and are left out of the family.
"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import stats
from statsmodels.stats.multitest import multipletests

from pcaguide.config import (
    CATEGORICAL_ENCODINGS, CORRECTION_METHODS, CORRECTION_SCOPES, CORRELATION_METHODS,
    N_JOBS, SIGNIF_CUTPOINTS, SIGNIF_SYMBOLS, VERBOSE, check_choice, check_significance_bins,
)
from pcaguide.errors import (
    EmptyIntersection, InsufficientSamples, InvalidParameter, UnknownAttribute,
)
from pcaguide.metadata import numeric_values
from pcaguide.result import CorrelationResult, PCAResult

OUTPUTS = ("r", "r2", "both")

_TESTS = {
    "pearson": stats.pearsonr,
    "spearman": stats.spearmanr,
    "kendall": stats.kendalltau,
}


def correlation_test(x: np.ndarray, y: np.ndarray, method: str = "pearson"):
    """Correlation and two-sided p-value for two complete-case vectors.

    Returns (nan, nan) when either vector is constant, where the statistic is
    undefined.
    """
    check_choice("correlation_method", method, CORRELATION_METHODS)
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.size < 2 or np.ptp(x) == 0 or np.ptp(y) == 0:
        return float("nan"), float("nan")
    r, p = _TESTS[method](x, y)
    return float(r), float(p)


def adjust_pvalues(pvalues: np.ndarray, correction: str = "none") -> np.ndarray:
    """Multiple-testing adjusted p-values; NaN entries are passed through."""
    check_choice("multiple_test_correction", correction, CORRECTION_METHODS)
    p = np.asarray(pvalues, dtype=np.float64)
    out = p.copy()
    method = CORRECTION_METHODS[correction]
    finite = np.isfinite(p)
    if method is None or not finite.any():
        return out
    out[finite] = multipletests(p[finite], method=method)[1]
    return out


def significance_symbols(
    pvalues: np.ndarray,
    cutpoints: Sequence[float] = SIGNIF_CUTPOINTS,
    symbols: Sequence[str] = SIGNIF_SYMBOLS,
) -> np.ndarray:
    """Symbol of the first cutpoint each p-value does not exceed ("" otherwise)."""
    cutpoints, symbols = check_significance_bins(cutpoints, symbols)
    p = np.asarray(pvalues, dtype=np.float64)
    # searchsorted(side="left") gives i with cut[i-1] < p <= cut[i]; NaN sorts last
    idx = np.searchsorted(np.asarray(cutpoints), p, side="left")
    lookup = np.array(list(symbols) + [""], dtype=object)
    return lookup[np.where(np.isnan(p), len(symbols), idx)]


def _pair_task(x, y, mask, method):
    r, p = correlation_test(x[mask], y[mask], method)
    return r, p


def correlate_components(
    result: PCAResult,
    components=None,
    attributes: Optional[Sequence[str]] = None,
    *,
    method: str = "pearson",
    correction: str = "none",
    correction_scope: str = "all",
    cutpoints: Sequence[float] = SIGNIF_CUTPOINTS,
    symbols: Sequence[str] = SIGNIF_SYMBOLS,
    pairwise_complete: bool = True,
    output: str = "r",
    categorical_encoding: str = "ordinal",
    n_jobs: int = N_JOBS,
    verbose: bool = VERBOSE,
) -> CorrelationResult:
    """Correlate component scores with metadata attributes.

    Parameters
    ----------
    result : PCAResult
        Result with metadata attached (``pca(..., metadata=...)`` or
        ``result.with_metadata(...)``).
    components : optional
        Component names or 1-based ranks; all components by default.
    attributes : sequence of str, optional
        Metadata attributes; all attached attributes by default.
    method : {"pearson", "spearman", "kendall"}
    correction : {"none", "bonferroni", "holm", "hochberg", "hommel", "BH", "fdr", "BY"}
    correction_scope : {"all", "component"}
    cutpoints, symbols : sequences of equal length
        Significance bins, applied to the adjusted p-values.
    pairwise_complete : bool
        Per-pair (True) or shared (False) complete-case subsets.
    output : {"r", "r2", "both"}
        Report the statistic, its square, or both.
    categorical_encoding : {"ordinal", "error"}
    n_jobs : int
        joblib workers for the per-pair tests.

    Returns
    -------
    CorrelationResult

    Raises
    ------
    InvalidParameter
        Bad option (checked before any computation) or a categorical
        attribute under ``categorical_encoding="error"``.
    UnknownAttribute
        A requested attribute is not attached to the result.
    EmptyIntersection
        A pair has no complete samples.
    InsufficientSamples
        A pair has a single complete sample.
    """
    # Configuration first: nothing is computed on a bad option.
    check_choice("correlation_method", method, CORRELATION_METHODS)
    check_choice("multiple_test_correction", correction, CORRECTION_METHODS)
    check_choice("correction_scope", correction_scope, CORRECTION_SCOPES)
    check_choice("output", output, OUTPUTS)
    check_choice("categorical_encoding", categorical_encoding, CATEGORICAL_ENCODINGS)
    cutpoints, symbols = check_significance_bins(cutpoints, symbols)

    pcs = result.component_names(components)
    if attributes is None:
        if not result.metadata:
            raise InvalidParameter("PCA result has no metadata attached", None)
        attributes = tuple(result.metadata)
    elif isinstance(attributes, str):
        attributes = (attributes,)
    attributes = tuple(attributes)
    if not attributes:
        raise InvalidParameter("at least one attribute is required", attributes)
    for name in attributes:
        if name not in result.metadata:
            raise UnknownAttribute(
                "metadata attribute not found", name, f"available: {sorted(result.metadata)}",
            )

    columns = [result.metadata[name] for name in attributes]
    values = [numeric_values(col, categorical_encoding) for col in columns]
    scores = result.scores.loc[:, list(pcs)].to_numpy()

    shared = None
    if not pairwise_complete:
        shared = np.logical_and.reduce([np.isfinite(v) for v in values])
        if not shared.any():
            raise EmptyIntersection(
                "no sample is complete across all requested attributes", list(attributes),
            )

    tasks = []
    n_obs = np.zeros((len(pcs), len(attributes)), dtype=int)
    for i, pc in enumerate(pcs):
        x = scores[:, i]
        for j, name in enumerate(attributes):
            y = values[j]
            mask = np.isfinite(x) & np.isfinite(y)
            if shared is not None:
                mask &= shared
            n = int(mask.sum())
            if n == 0:
                raise EmptyIntersection("no complete samples for pair", (pc, name))
            if n < 2:
                raise InsufficientSamples("correlation needs at least 2 complete samples", (pc, name))
            n_obs[i, j] = n
            tasks.append((x, y, mask))

    if verbose:
        print(f"[correlate] {len(pcs)} component(s) x {len(attributes)} attribute(s), "
              f"method={method}, correction={correction} ({correction_scope})")

    # one output slot per pair, in row-major (component, attribute) order
    outputs = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_pair_task)(x, y, mask, method) for x, y, mask in tasks
    )
    r = np.array([o[0] for o in outputs], dtype=np.float64).reshape(len(pcs), len(attributes))
    p = np.array([o[1] for o in outputs], dtype=np.float64).reshape(len(pcs), len(attributes))

    if correction_scope == "all":
        p_adj = adjust_pvalues(p.ravel(), correction).reshape(p.shape)
    else:
        p_adj = np.vstack([adjust_pvalues(row, correction) for row in p])
    sym = significance_symbols(p_adj.ravel(), cutpoints, symbols).reshape(p.shape)

    def frame(data):
        return pd.DataFrame(data, index=list(pcs), columns=list(attributes))

    return CorrelationResult(
        components=tuple(pcs),
        attributes=attributes,
        correlation=frame(r) if output in ("r", "both") else None,
        r_squared=frame(r ** 2) if output in ("r2", "both") else None,
        pvalues=frame(p),
        adjusted_pvalues=frame(p_adj),
        symbols=frame(sym),
        n_obs=frame(n_obs),
        method=method,
        correction=correction,
        correction_scope=correction_scope,
        categorical_attributes=tuple(c.name for c in columns if c.is_categorical),
    )
