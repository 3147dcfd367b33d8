"""Package-wide constants and the validated configuration surface.

This module centralizes every tuneable default for the pipeline -- permutation
counts, null percentiles, significance bins, correction methods -- so that
notebooks, scripts and the CLI import a single source of truth.

``AnalysisConfig`` bundles the named options accepted by
``pcaguide.analysis.analyze_matrix``.  All checks run when the object is
built, so a bad option (for instance cutpoints and symbols of different
length) fails before any matrix is touched.
"""

from dataclasses import dataclass
from numbers import Integral
from typing import Optional, Sequence, Tuple, Union

from pcaguide.errors import InvalidParameter

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Numerical floor for denominators and variance comparisons.
EPS = 1e-12

# Default seed for the randomized SVD solver.  Parallel analysis does NOT fall
# back to it: an unseeded permutation run is reported as non-reproducible.
SEED = 42

# Horn's parallel analysis: number of permuted matrices and the percentile of
# the null eigenvalue distribution each observed eigenvalue must exceed.
N_PERMUTATIONS = 50
NULL_PERCENTILE = 95.0

# A 3-sample matrix has only 3! orderings per feature and at most 2 centered
# components, too few to build a null distribution.
MIN_SAMPLES_PERMUTATION = 4

# Significance bins: a p-value gets the symbol of the first cutpoint it does
# not exceed.  Values above the last cutpoint (or NaN) get "".
SIGNIF_CUTPOINTS = (0.001, 0.01, 0.05, 1.0)
SIGNIF_SYMBOLS = ("***", "**", "*", "")

CORRELATION_METHODS = ("pearson", "spearman", "kendall")

# R-style p.adjust names mapped to statsmodels.stats.multitest method names.
CORRECTION_METHODS = {
    "none": None,
    "bonferroni": "bonferroni",
    "holm": "holm",
    "hochberg": "simes-hochberg",
    "hommel": "hommel",
    "BH": "fdr_bh",
    "fdr": "fdr_bh",
    "BY": "fdr_by",
}

# Correct across every (component, attribute) pair at once, or separately
# within each component.
CORRECTION_SCOPES = ("all", "component")

# Explained variance relative to the captured k-component subspace, or to the
# total variance of the processed matrix.
VARIANCE_BASES = ("captured", "total")

SVD_SOLVERS = ("auto", "exact", "randomized")

# "ordinal" correlates level indices; "error" refuses categorical attributes.
CATEGORICAL_ENCODINGS = ("ordinal", "error")

NULL_METHODS = ("permute", "resample")

# joblib worker count for permutation and pairwise correlation loops.
N_JOBS = 1

VERBOSE = False


# ---------------------------------------------------------------------------
# Validators (shared with the individual stages)
# ---------------------------------------------------------------------------

def check_choice(name: str, value, choices) -> None:
    if value not in choices:
        raise InvalidParameter(f"{name} must be one of {sorted(choices)}", value)


def check_remove_var(remove_var: Optional[float]) -> None:
    if remove_var is None:
        return
    if not (0.0 <= float(remove_var) < 1.0):
        raise InvalidParameter("remove_var must lie in [0, 1)", remove_var)


def check_percentile(percentile) -> None:
    if percentile == "mean":
        return
    try:
        q = float(percentile)
    except (TypeError, ValueError):
        raise InvalidParameter("null_percentile must be 'mean' or a number in [0, 100]", percentile) from None
    if not (0.0 <= q <= 100.0):
        raise InvalidParameter("null_percentile must be 'mean' or a number in [0, 100]", percentile)


def component_rank(component) -> int:
    """1-based rank of a component given as an int or as "PC<k>"."""
    if isinstance(component, bool):
        raise InvalidParameter("component must be a rank or a 'PC<k>' name", component)
    if isinstance(component, Integral):
        rank = int(component)
    elif isinstance(component, str) and component.startswith("PC") and component[2:].isdigit():
        rank = int(component[2:])
    else:
        raise InvalidParameter("component must be a rank or a 'PC<k>' name", component)
    if rank < 1:
        raise InvalidParameter("component rank must be >= 1", component)
    return rank


def check_significance_bins(
    cutpoints: Sequence[float], symbols: Sequence[str],
) -> Tuple[Tuple[float, ...], Tuple[str, ...]]:
    """Validate parallel cutpoint/symbol sequences and return them as tuples.

    Cutpoints must be strictly increasing upper bounds in (0, 1] and there
    must be exactly one symbol per cutpoint.
    """
    cutpoints = tuple(float(c) for c in cutpoints)
    symbols = tuple(str(s) for s in symbols)
    if len(cutpoints) != len(symbols):
        raise InvalidParameter(
            "significance cutpoints and symbols must have equal length",
            (len(cutpoints), len(symbols)),
        )
    if not cutpoints:
        raise InvalidParameter("at least one significance cutpoint is required", cutpoints)
    if any(c <= 0.0 or c > 1.0 for c in cutpoints):
        raise InvalidParameter("significance cutpoints must lie in (0, 1]", cutpoints)
    if any(b <= a for a, b in zip(cutpoints, cutpoints[1:])):
        raise InvalidParameter("significance cutpoints must be strictly increasing", cutpoints)
    return cutpoints, symbols


# ---------------------------------------------------------------------------
# Configuration surface
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AnalysisConfig:
    """Every named option of the pipeline, validated on construction."""

    remove_var: Optional[float] = None
    center: bool = True
    scale: bool = False
    components: Optional[Union[int, Sequence]] = None
    n_permutations: int = N_PERMUTATIONS
    seed: Optional[int] = None
    null_percentile: Union[float, str] = NULL_PERCENTILE
    null_method: str = "permute"
    correlation_method: str = "pearson"
    multiple_test_correction: str = "none"
    correction_scope: str = "all"
    significance_cutpoints: Sequence[float] = SIGNIF_CUTPOINTS
    significance_symbols: Sequence[str] = SIGNIF_SYMBOLS
    pairwise_complete: bool = True
    variance_basis: str = "captured"
    categorical_encoding: str = "ordinal"
    svd_solver: str = "auto"
    n_jobs: int = N_JOBS

    def __post_init__(self):
        check_remove_var(self.remove_var)
        if isinstance(self.components, Integral):
            component_rank(self.components)
        elif self.components is not None:
            if isinstance(self.components, str) or not len(self.components):
                raise InvalidParameter("components must be a count or a non-empty list", self.components)
            for c in self.components:
                component_rank(c)
            object.__setattr__(self, "components", tuple(self.components))
        if int(self.n_permutations) < 1:
            raise InvalidParameter("n_permutations must be >= 1", self.n_permutations)
        check_percentile(self.null_percentile)
        check_choice("null_method", self.null_method, NULL_METHODS)
        check_choice("correlation_method", self.correlation_method, CORRELATION_METHODS)
        check_choice("multiple_test_correction", self.multiple_test_correction, CORRECTION_METHODS)
        check_choice("correction_scope", self.correction_scope, CORRECTION_SCOPES)
        check_choice("variance_basis", self.variance_basis, VARIANCE_BASES)
        check_choice("categorical_encoding", self.categorical_encoding, CATEGORICAL_ENCODINGS)
        check_choice("svd_solver", self.svd_solver, SVD_SOLVERS)
        cut, sym = check_significance_bins(self.significance_cutpoints, self.significance_symbols)
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "significance_cutpoints", cut)
        object.__setattr__(self, "significance_symbols", sym)
