"""Select the features that dominate each component's loadings."""

import numpy as np
import pandas as pd

from pcaguide.errors import InvalidParameter
from pcaguide.result import PCAResult


def select_top_loadings(
    result: PCAResult,
    components=None,
    range_retain: float = 0.05,
    *,
    absolute: bool = False,
) -> pd.DataFrame:
    """Loadings of the features at either extreme of each component.

    For each component the loading range [min, max] is computed and a feature
    is retained when its loading lies within ``range_retain * (max - min)``
    of the maximum or of the minimum.  The union over components is returned,
    keeping the original feature order.

    Args:
        result: PCA result.
        components: Component names or 1-based ranks (all by default).
        range_retain: Fraction in (0, 1] of the loading range to retain at
            each end.
        absolute: Return absolute loadings.

    Returns:
        DataFrame (retained features x selected components).
    """
    if not (0.0 < float(range_retain) <= 1.0):
        raise InvalidParameter("range_retain must lie in (0, 1]", range_retain)
    L = result.get_loadings(components)
    keep = np.zeros(L.shape[0], dtype=bool)
    for pc in L.columns:
        col = L[pc].to_numpy()
        lo, hi = col.min(), col.max()
        band = float(range_retain) * (hi - lo)
        keep |= (col >= hi - band) | (col <= lo + band)
    out = L.loc[keep]
    return out.abs() if absolute else out
