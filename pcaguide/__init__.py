"""
pcaguide -- exploratory PCA with guidance on how many components matter.

The package decomposes a features x samples matrix, estimates how many
principal components carry signal, and relates components back to sample
metadata.  It produces numeric artifacts only (scores, loadings, variance
vectors, retention counts, correlation and p-value tables); plotting is left
to external renderers.

Key exports
-----------
filter_low_variance : function
    Drop the lowest-variance features before decomposition.
pca : function
    Center/scale, factorise and assemble a ``PCAResult``.
parallel_analysis : function
    Horn's parallel analysis against permuted (or resampled) null matrices.
find_elbow : function
    Geometric elbow point of the variance-explained curve.
correlate_components : function
    Component x metadata correlations with multiple-testing correction and
    significance symbols.
choose_gavish_donoho, choose_marchenko_pastur, choose_cumulative_variance
    Closed-form retention rules.
analyze_matrix : function
    The whole pipeline driven by an ``AnalysisConfig``.
"""

from pcaguide.analysis import analyze_matrix
from pcaguide.config import AnalysisConfig
from pcaguide.correlation import correlate_components
from pcaguide.decomposition import pca
from pcaguide.elbow import find_elbow
from pcaguide.filtering import filter_low_variance
from pcaguide.loadings import select_top_loadings
from pcaguide.horn import ParallelAnalysisResult, parallel_analysis
from pcaguide.result import CorrelationResult, PCAResult
from pcaguide.retention import (
    choose_cumulative_variance, choose_gavish_donoho, choose_marchenko_pastur,
)

__all__ = [
    "AnalysisConfig",
    "CorrelationResult",
    "PCAResult",
    "ParallelAnalysisResult",
    "analyze_matrix",
    "choose_cumulative_variance",
    "choose_gavish_donoho",
    "choose_marchenko_pastur",
    "correlate_components",
    "filter_low_variance",
    "find_elbow",
    "parallel_analysis",
    "pca",
    "select_top_loadings",
]
