"""Sample metadata as typed, pre-aligned columns.

Metadata tables mix numeric measurements with categorical labels.  Each
attribute is resolved exactly once, when the PCA result is built, into a
``MetadataColumn`` that is either numeric (raw values) or categorical (level
indices plus the level names).  Downstream code never re-infers types.

Columns are aligned to the sample order of the score matrix by sample label,
not by position; samples without a metadata row are NaN in every column.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from pcaguide.config import CATEGORICAL_ENCODINGS, check_choice
from pcaguide.errors import DimensionMismatch, InvalidParameter

NUMERIC = "numeric"
CATEGORICAL = "categorical"


@dataclass(frozen=True)
class MetadataColumn:
    """One metadata attribute: numeric values or categorical level indices."""

    name: str
    kind: str
    values: np.ndarray
    levels: Tuple = ()

    @property
    def is_categorical(self) -> bool:
        return self.kind == CATEGORICAL

    @property
    def n_missing(self) -> int:
        return int(np.isnan(self.values).sum())

    def labels(self) -> list:
        """Decoded values: level names for categorical columns, None for missing."""
        if not self.is_categorical:
            return [None if np.isnan(v) else float(v) for v in self.values]
        return [None if np.isnan(v) else self.levels[int(v)] for v in self.values]


def _categorical_levels(series: pd.Series, order: Optional[Sequence]) -> Tuple:
    observed = series.dropna().unique().tolist()
    if order is not None:
        allowed = set(order)
        missing = [v for v in observed if v not in allowed]
        if missing:
            raise InvalidParameter(
                f"level_order for {series.name!r} does not cover every observed level", missing[:10],
            )
        return tuple(order)
    if isinstance(series.dtype, pd.CategoricalDtype):
        return tuple(series.cat.categories.tolist())
    try:
        return tuple(sorted(observed))
    except TypeError:
        # mixed types: fall back to order of first appearance
        return tuple(observed)


def encode_column(
    series: pd.Series,
    level_order: Optional[Sequence] = None,
) -> MetadataColumn:
    """Resolve a single aligned pandas Series into a ``MetadataColumn``."""
    name = str(series.name)
    if is_numeric_dtype(series.dtype) and not is_bool_dtype(series.dtype) and level_order is None:
        values = series.to_numpy(dtype=np.float64, na_value=np.nan)
        return MetadataColumn(name=name, kind=NUMERIC, values=_readonly(values))

    levels = _categorical_levels(series, level_order)
    index = {level: i for i, level in enumerate(levels)}
    values = np.array(
        [np.nan if pd.isna(v) else float(index[v]) for v in series.astype(object)],
        dtype=np.float64,
    )
    return MetadataColumn(name=name, kind=CATEGORICAL, values=_readonly(values), levels=levels)


def encode_metadata(
    metadata: pd.DataFrame,
    samples: Sequence,
    *,
    level_order: Optional[Mapping[str, Sequence]] = None,
) -> Dict[str, MetadataColumn]:
    """Align *metadata* (rows = samples) to *samples* and encode every column.

    Parameters
    ----------
    metadata : DataFrame
        One row per sample, indexed by the same labels as the matrix columns.
        It may cover only a subset of the samples.
    samples : sequence
        Sample labels in score order.
    level_order : mapping, optional
        Explicit level order per attribute name; forces categorical encoding
        for the named attributes.

    Raises
    ------
    DimensionMismatch
        Metadata is not a DataFrame, has duplicated sample labels, or names
        samples that are not in the matrix.
    """
    if not isinstance(metadata, pd.DataFrame):
        raise DimensionMismatch("metadata must be a DataFrame indexed by sample", type(metadata).__name__)
    if metadata.index.has_duplicates:
        dups = metadata.index[metadata.index.duplicated()].unique().tolist()
        raise DimensionMismatch("metadata sample labels must be unique", dups[:10])
    sample_index = pd.Index(samples)
    unknown = metadata.index.difference(sample_index)
    if len(unknown):
        raise DimensionMismatch(
            "metadata samples are not a subset of the matrix samples", unknown.tolist()[:10],
            f"{len(unknown)} unmatched of {len(metadata)}",
        )
    level_order = dict(level_order or {})
    aligned = metadata.reindex(sample_index)
    return {
        str(col): encode_column(aligned[col].rename(str(col)), level_order.get(str(col)))
        for col in aligned.columns
    }


def numeric_values(column: MetadataColumn, categorical_encoding: str = "ordinal") -> np.ndarray:
    """Values used for correlation under the categorical policy.

    "ordinal" correlates level indices directly.  This treats unordered
    categories as ordered; callers needing a proper categorical test should
    pre-encode the attribute numerically.  "error" refuses categorical
    attributes outright.
    """
    check_choice("categorical_encoding", categorical_encoding, CATEGORICAL_ENCODINGS)
    if column.is_categorical and categorical_encoding == "error":
        raise InvalidParameter(
            "categorical attribute requires explicit numeric encoding", column.name,
            f"levels {list(column.levels)[:10]}",
        )
    return column.values


def _readonly(values: np.ndarray) -> np.ndarray:
    values = np.array(values, dtype=np.float64, copy=True)
    values.flags.writeable = False
    return values
