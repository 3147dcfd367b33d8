"""Variance filter: drop the lowest-variance features before decomposition.

Low-variance features contribute almost nothing to the leading components
but still cost SVD time, so the usual exploratory workflow removes a fixed
fraction of them up front.  The filter is a pure function: the input is
never modified and survivors keep their relative row order.
"""

import math
from typing import Optional, Union

import numpy as np
import pandas as pd

from pcaguide.config import VERBOSE, check_remove_var
from pcaguide.errors import InvalidParameter
from pcaguide.utils import feature_variances


def n_features_to_remove(
    n_features: int,
    remove_var: Optional[float] = None,
    n_remove: Optional[int] = None,
) -> int:
    """Number of features dropped for a fraction (ceil(r * F)) or an absolute count."""
    if remove_var is not None and n_remove is not None:
        raise InvalidParameter("give either remove_var or n_remove, not both", (remove_var, n_remove))
    if n_remove is not None:
        if int(n_remove) < 0:
            raise InvalidParameter("n_remove must be >= 0", n_remove)
        m = int(n_remove)
    elif remove_var is not None:
        check_remove_var(remove_var)
        # round() first so that e.g. 0.7 * 10 = 7.000000000000001 gives 7, not 8
        m = int(math.ceil(round(float(remove_var) * n_features, 9)))
    else:
        m = 0
    if m >= n_features:
        raise InvalidParameter(
            "variance filter would leave zero features", remove_var if n_remove is None else n_remove,
            f"{n_features} features available",
        )
    return m


def low_variance_mask(
    X,
    remove_var: Optional[float] = None,
    *,
    n_remove: Optional[int] = None,
) -> np.ndarray:
    """Boolean keep-mask over the rows of a features x samples matrix.

    Features are ranked by ascending variance with a stable sort, so among
    tied variances the earlier row is dropped first.
    """
    variances = feature_variances(X)
    m = n_features_to_remove(len(variances), remove_var, n_remove)
    keep = np.ones(len(variances), dtype=bool)
    if m:
        order = np.argsort(variances, kind="stable")
        keep[order[:m]] = False
    return keep


def filter_low_variance(
    X: Union[pd.DataFrame, np.ndarray],
    remove_var: Optional[float] = None,
    *,
    n_remove: Optional[int] = None,
    verbose: bool = VERBOSE,
) -> Union[pd.DataFrame, np.ndarray]:
    """Remove the lowest-variance features (rows) of *X*.

    Args:
        X: Features x samples matrix, as a DataFrame or 2-D array.
        remove_var: Fraction r in [0, 1) of features to drop; ceil(r * F)
            rows are removed.  ``0`` or ``None`` returns every feature.
        n_remove: Absolute number of features to drop instead of a fraction.
        verbose: Print a one-line report.

    Returns:
        The filtered matrix, same type as *X*, survivors in original order.

    Raises:
        InvalidParameter: r outside [0, 1), both options given, or no
            features would survive.
    """
    keep = low_variance_mask(X, remove_var, n_remove=n_remove)
    if verbose:
        print(f"[filter] removed {int((~keep).sum())} of {len(keep)} features "
              f"(remove_var={remove_var}, n_remove={n_remove})")
    if isinstance(X, pd.DataFrame):
        return X.loc[keep].copy()
    return np.asarray(X)[keep].copy()
