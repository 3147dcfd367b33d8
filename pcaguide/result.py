"""Result containers shared by the decomposition, retention and correlation stages.

``PCAResult`` is produced once per decomposition and is read-only from then
on: the retention heuristics, the metadata correlation engine and any
external renderer consume it but never modify it.  ``CorrelationResult`` is a
derived artifact rebuilt on every call to the correlation engine.

Both containers expose only numeric artifacts (scores, loadings, variance
vectors, statistic and p-value tables); renderers must depend on these fields
and not on intermediate arrays of the pipeline.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from pcaguide.errors import InvalidParameter, UnknownAttribute
from pcaguide.metadata import MetadataColumn, encode_metadata


def pc_names(k: int) -> Tuple[str, ...]:
    return tuple(f"PC{i}" for i in range(1, k + 1))


_ARRAY_FIELDS = (
    "score_matrix", "loading_matrix", "variance", "cumulative_variance",
    "singular_values", "eigenvalues", "sdev", "feature_means", "feature_scales",
)


@dataclass(frozen=True)
class PCAResult:
    """Canonical PCA output.

    Attributes
    ----------
    components : tuple of str
        ``("PC1", ..., "PCk")``.
    samples, features : Index
        Sample labels (score rows) and retained feature labels (loading rows).
    score_matrix : (samples, k) array
        Sample coordinates along each component; ``scores`` is the labelled
        DataFrame view.
    loading_matrix : (features, k) array
        Feature weights (unit-norm right singular vectors); ``loadings`` is
        the labelled DataFrame view.
    variance : (k,) array
        Percent variance explained per component, non-increasing.  With
        ``variance_basis="captured"`` the percentages are relative to the
        k-dimensional captured subspace (they sum to 100 even when k is less
        than full rank); with "total" they are relative to the total variance
        of the processed matrix.
    cumulative_variance : (k,) array
        Running sum of ``variance``.
    singular_values, eigenvalues, sdev : (k,) arrays
        s_k, s_k^2 / (n - 1), and sqrt(eigenvalues).
    total_variance : float
        Sum of all eigenvalues of the processed matrix (trace of the
        covariance), independent of k.
    feature_means, feature_scales : (features,) arrays
        Means subtracted and divisors applied (zeros / ones when disabled),
        also available as Series through ``center_values`` / ``scale_values``.
    removed_features : tuple
        Features dropped by the variance filter, in original order.
    metadata : mapping of attribute name -> MetadataColumn
        Sample metadata aligned to the score rows.

    Every array is stored read-only; the DataFrame and Series properties
    return fresh copies, so consumers cannot modify the result.
    """

    components: Tuple[str, ...]
    samples: pd.Index
    features: pd.Index
    score_matrix: np.ndarray
    loading_matrix: np.ndarray
    variance: np.ndarray
    cumulative_variance: np.ndarray
    singular_values: np.ndarray
    eigenvalues: np.ndarray
    sdev: np.ndarray
    total_variance: float
    variance_basis: str
    centered: bool
    scaled: bool
    feature_means: np.ndarray
    feature_scales: np.ndarray
    removed_features: Tuple = ()
    metadata: Mapping[str, MetadataColumn] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "samples", pd.Index(self.samples))
        object.__setattr__(self, "features", pd.Index(self.features))
        for name in _ARRAY_FIELDS:
            arr = np.array(getattr(self, name), dtype=np.float64, copy=True)
            arr.flags.writeable = False
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    # -- shape ---------------------------------------------------------------

    @property
    def n_components(self) -> int:
        return len(self.components)

    @property
    def n_samples(self) -> int:
        return len(self.samples)

    @property
    def n_features(self) -> int:
        return len(self.features)

    # -- labelled views -------------------------------------------------------

    @property
    def scores(self) -> pd.DataFrame:
        """Samples x components DataFrame."""
        return pd.DataFrame(self.score_matrix, index=self.samples, columns=list(self.components), copy=True)

    @property
    def loadings(self) -> pd.DataFrame:
        """Features x components DataFrame."""
        return pd.DataFrame(self.loading_matrix, index=self.features, columns=list(self.components), copy=True)

    @property
    def center_values(self) -> pd.Series:
        return pd.Series(self.feature_means, index=self.features, name="center", copy=True)

    @property
    def scale_values(self) -> pd.Series:
        return pd.Series(self.feature_scales, index=self.features, name="scale", copy=True)

    # -- accessors -----------------------------------------------------------

    def component_names(self, pcs=None) -> Tuple[str, ...]:
        """Resolve component selectors: names ("PC2") or 1-based integers."""
        if pcs is None:
            return self.components
        if isinstance(pcs, (str, int, np.integer)):
            pcs = [pcs]
        names = []
        for pc in pcs:
            if isinstance(pc, (int, np.integer)) and not isinstance(pc, bool):
                if not 1 <= int(pc) <= self.n_components:
                    raise InvalidParameter(
                        f"component index must lie in 1..{self.n_components}", pc,
                    )
                names.append(self.components[int(pc) - 1])
            elif pc in self.components:
                names.append(pc)
            else:
                raise InvalidParameter("unknown component", pc, f"available: {self.components[:5]}...")
        return tuple(names)

    def get_components(self, pcs=None) -> pd.DataFrame:
        """Scores of the selected components (copy)."""
        return self.scores.loc[:, list(self.component_names(pcs))]

    def get_loadings(self, pcs=None) -> pd.DataFrame:
        """Loadings of the selected components (copy)."""
        return self.loadings.loc[:, list(self.component_names(pcs))]

    def get_vars(self, pcs=None) -> pd.Series:
        """Percent variance explained of the selected components."""
        s = pd.Series(np.array(self.variance), index=list(self.components), name="variance")
        return s.loc[list(self.component_names(pcs))]

    def metadata_column(self, name: str) -> MetadataColumn:
        if name not in self.metadata:
            raise UnknownAttribute("metadata attribute not found", name, f"available: {sorted(self.metadata)}")
        return self.metadata[name]

    def metadata_frame(self) -> pd.DataFrame:
        """Decoded metadata (level names for categorical columns) by sample."""
        return pd.DataFrame(
            {name: col.labels() for name, col in self.metadata.items()}, index=self.samples,
        )

    def with_metadata(
        self,
        metadata: pd.DataFrame,
        *,
        level_order: Optional[Mapping[str, Sequence]] = None,
    ) -> "PCAResult":
        """New result with *metadata* encoded and aligned; self is unchanged."""
        columns = encode_metadata(metadata, self.samples, level_order=level_order)
        return replace(self, metadata=columns)

    def summary(self, max_rows: int = 10) -> str:
        """Return a readable variance table."""
        lines = [
            f"PCA  (samples={self.n_samples}, features={self.n_features}, "
            f"components={self.n_components}, center={self.centered}, scale={self.scaled})",
            f"Variance basis: {self.variance_basis}"
            + ("  (percentages relative to the captured subspace)" if self.variance_basis == "captured" else ""),
            f"Features removed by variance filter: {len(self.removed_features)}",
            "",
            f"{'PC':>6s}  {'sdev':>10s}  {'var%':>8s}  {'cum%':>8s}",
            "-" * 40,
        ]
        for i, pc in enumerate(self.components[:max_rows]):
            lines.append(
                f"{pc:>6s}  {self.sdev[i]:10.4f}  {self.variance[i]:8.3f}  {self.cumulative_variance[i]:8.3f}"
            )
        if self.n_components > max_rows:
            lines.append(f"  ... {self.n_components - max_rows} more")
        return "\n".join(lines)


@dataclass(frozen=True)
class CorrelationResult:
    """Component x attribute correlation tables.

    Every DataFrame is indexed by component (rows) and attribute (columns).
    ``correlation`` is None when only R^2 was requested and ``r_squared`` is
    None when only the raw statistic was requested.
    """

    components: Tuple[str, ...]
    attributes: Tuple[str, ...]
    correlation: Optional[pd.DataFrame]
    r_squared: Optional[pd.DataFrame]
    pvalues: pd.DataFrame
    adjusted_pvalues: pd.DataFrame
    symbols: pd.DataFrame
    n_obs: pd.DataFrame
    method: str
    correction: str
    correction_scope: str
    categorical_attributes: Tuple[str, ...] = ()

    def pair(self, component: str, attribute: str) -> dict:
        """Statistic, p-values and symbol for one (component, attribute) pair."""
        if attribute not in self.attributes:
            raise UnknownAttribute("attribute not in this correlation result", attribute)
        if component not in self.components:
            raise InvalidParameter("component not in this correlation result", component)
        rec = {
            "component": component,
            "attribute": attribute,
            "pvalue": float(self.pvalues.at[component, attribute]),
            "adjusted_pvalue": float(self.adjusted_pvalues.at[component, attribute]),
            "symbol": self.symbols.at[component, attribute],
            "n_obs": int(self.n_obs.at[component, attribute]),
        }
        if self.correlation is not None:
            rec["statistic"] = float(self.correlation.at[component, attribute])
        if self.r_squared is not None:
            rec["r_squared"] = float(self.r_squared.at[component, attribute])
        return rec

    def to_frame(self) -> pd.DataFrame:
        """Long table, one row per (component, attribute) pair."""
        rows = [self.pair(pc, attr) for pc in self.components for attr in self.attributes]
        return pd.DataFrame(rows)

    def summary(self) -> str:
        """Return a readable summary table."""
        lines = [
            f"Component-metadata correlation  (method={self.method}, "
            f"correction={self.correction}, scope={self.correction_scope})",
        ]
        if self.categorical_attributes:
            lines.append(
                "Ordinal-encoded categorical attributes: " + ", ".join(self.categorical_attributes)
            )
        lines += [
            "",
            f"{'component':>10s}  {'attribute':>16s}  {'stat':>8s}  {'pval':>10s}  {'adj':>10s}  sig",
            "-" * 70,
        ]
        for rec in self.to_frame().to_dict("records"):
            stat = rec.get("statistic", rec.get("r_squared", float("nan")))
            lines.append(
                f"{rec['component']:>10s}  {str(rec['attribute'])[:16]:>16s}  {stat:+8.4f}  "
                f"{rec['pvalue']:10.4g}  {rec['adjusted_pvalue']:10.4g}  {rec['symbol']}"
            )
        return "\n".join(lines)
