"""
Tests for the decomposition adapter and the PCAResult container.
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from pcaguide.decomposition import default_n_components, pca
from pcaguide.errors import (
    DegenerateInput, DimensionMismatch, InsufficientSamples, InvalidParameter,
    RankExceeded, UnknownAttribute,
)


class TestPCAShapes:

    def test_filtered_large_matrix(self, random_matrix):
        """1000 x 50, remove_var=0.1, 10 components."""
        result = pca(random_matrix, remove_var=0.1, components=10)
        assert result.scores.shape == (50, 10)
        assert result.loadings.shape == (900, 10)
        assert len(result.removed_features) == 100
        assert result.components == tuple(f"PC{i}" for i in range(1, 11))

    def test_default_component_count(self, structured_matrix):
        result = pca(structured_matrix)
        assert result.n_components == 39
        assert default_n_components(200, 40, center=False) == 40
        assert default_n_components(1, 1) == 1

    def test_labels_carried(self, structured_matrix):
        result = pca(structured_matrix, components=3)
        assert list(result.samples) == list(structured_matrix.columns)
        assert list(result.features) == list(structured_matrix.index)


class TestVarianceExplained:

    def test_non_increasing_and_bounded(self, random_matrix):
        result = pca(random_matrix, remove_var=0.1, components=10)
        v = result.variance
        assert np.all(np.diff(v) <= 1e-9)
        assert np.all((v >= 0) & (v <= 100))

    def test_captured_sums_to_100(self, structured_matrix):
        result = pca(structured_matrix, components=5)
        assert result.cumulative_variance[-1] == pytest.approx(100.0)

    def test_total_basis_truncated(self, structured_matrix):
        """Relative to total variance, a truncated set sums below 100."""
        captured = pca(structured_matrix, components=5)
        total = pca(structured_matrix, components=5, variance_basis="total")
        assert total.cumulative_variance[-1] < 100.0
        assert np.all(total.variance <= captured.variance + 1e-9)

    def test_total_basis_full_rank(self, structured_matrix):
        result = pca(structured_matrix, variance_basis="total")
        assert result.cumulative_variance[-1] == pytest.approx(100.0)
        assert result.eigenvalues.sum() == pytest.approx(result.total_variance)

    def test_eigenvalue_relations(self, structured_matrix):
        result = pca(structured_matrix, components=4)
        n = result.n_samples
        np.testing.assert_allclose(result.eigenvalues, result.singular_values ** 2 / (n - 1))
        np.testing.assert_allclose(result.sdev, np.sqrt(result.eigenvalues))

    def test_unknown_basis(self, structured_matrix):
        with pytest.raises(InvalidParameter):
            pca(structured_matrix, variance_basis="relative")


class TestScoresAndLoadings:

    def test_scores_are_projections(self, structured_matrix):
        """scores = centered data x loadings."""
        result = pca(structured_matrix, components=5)
        centered = structured_matrix.T - structured_matrix.mean(axis=1)
        projected = centered.to_numpy() @ result.loadings.to_numpy()
        np.testing.assert_allclose(projected, result.scores.to_numpy(), atol=1e-8)

    def test_loadings_orthonormal(self, structured_matrix):
        result = pca(structured_matrix, components=5)
        L = result.loadings.to_numpy()
        np.testing.assert_allclose(L.T @ L, np.eye(5), atol=1e-10)

    def test_scaled_center_values(self, structured_matrix):
        result = pca(structured_matrix, components=3, scale=True)
        np.testing.assert_allclose(result.center_values, structured_matrix.mean(axis=1))
        np.testing.assert_allclose(result.scale_values, structured_matrix.std(axis=1, ddof=1))

    def test_randomized_matches_exact(self, structured_matrix):
        exact = pca(structured_matrix, components=3, svd_solver="exact")
        rand = pca(structured_matrix, components=3, svd_solver="randomized", seed=0)
        np.testing.assert_allclose(rand.singular_values, exact.singular_values, rtol=1e-4)

    def test_deterministic(self, structured_matrix):
        a = pca(structured_matrix, components=4)
        b = pca(structured_matrix, components=4)
        pd.testing.assert_frame_equal(a.scores, b.scores)


class TestPCAErrors:

    def test_constant_feature_with_scaling(self, structured_matrix):
        X = structured_matrix.copy()
        X.iloc[5] = 3.0
        with pytest.raises(DegenerateInput) as err:
            pca(X, scale=True)
        assert "g5" in err.value.value
        # without scaling a constant feature is harmless
        assert pca(X, components=2).n_components == 2

    def test_duplicate_feature_with_scaling(self, structured_matrix):
        X = structured_matrix.copy()
        X.iloc[1] = X.iloc[0].to_numpy()
        with pytest.raises(DegenerateInput) as err:
            pca(X, scale=True)
        assert "g1" in err.value.value
        assert pca(X, components=2).n_components == 2

    def test_single_feature_has_no_components(self):
        """A centered 1 x n matrix has rank 0, whatever k defaults to."""
        with pytest.raises(DegenerateInput):
            pca(np.random.default_rng(0).standard_normal((1, 10)))
        assert pca(np.random.default_rng(0).standard_normal((1, 10)), center=False).n_components == 1

    def test_filtered_to_single_feature(self, structured_matrix):
        with pytest.raises(DegenerateInput):
            pca(structured_matrix, n_remove=199)

    def test_missing_values(self, structured_matrix):
        X = structured_matrix.copy()
        X.iloc[0, 0] = np.nan
        with pytest.raises(DegenerateInput):
            pca(X)

    def test_empty_matrix(self):
        with pytest.raises(DegenerateInput):
            pca(np.empty((0, 5)))

    def test_single_sample(self):
        with pytest.raises(InsufficientSamples):
            pca(np.ones((10, 1)))

    def test_rank_exceeded(self, random_matrix):
        """50 centered samples support at most 49 components."""
        with pytest.raises(RankExceeded):
            pca(random_matrix, components=50)
        assert pca(random_matrix, components=50, center=False, svd_solver="exact").n_components == 50

    def test_more_components_than_features(self, structured_matrix):
        with pytest.raises(InvalidParameter):
            pca(structured_matrix, remove_var=0.99, components=5)

    def test_metadata_unknown_sample(self, structured_matrix):
        meta = pd.DataFrame({"age": [1.0, 2.0]}, index=["s0", "nope"])
        with pytest.raises(DimensionMismatch):
            pca(structured_matrix, metadata=meta)

    def test_metadata_checked_before_svd(self, structured_matrix):
        """Alignment fails even when the decomposition itself would also fail."""
        meta = pd.DataFrame({"age": [1.0]}, index=["nope"])
        with pytest.raises(DimensionMismatch):
            pca(structured_matrix, metadata=meta, components=1000)

    def test_duplicate_feature_labels(self):
        X = pd.DataFrame(np.random.default_rng(0).standard_normal((3, 6)), index=["a", "a", "b"])
        with pytest.raises(InvalidParameter):
            pca(X)


class TestPCAResult:

    def test_frozen(self, structured_matrix):
        result = pca(structured_matrix, components=3)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.variance = np.zeros(3)
        with pytest.raises(ValueError):
            result.variance[0] = 0.0

    def test_views_are_copies(self, structured_matrix):
        """Writing into a returned DataFrame or Series leaves the result intact."""
        result = pca(structured_matrix, components=3)
        before = result.scores.iloc[0, 0]
        scores, loadings = result.scores, result.loadings
        center, scale = result.center_values, result.scale_values
        scores.iloc[0, 0] = 999.0
        loadings.iloc[0, 0] = 999.0
        center.iloc[0] = 999.0
        scale.iloc[0] = 999.0
        assert result.scores.iloc[0, 0] == before
        assert result.loadings.iloc[0, 0] != 999.0
        assert result.center_values.iloc[0] != 999.0
        assert result.scale_values.iloc[0] == 1.0
        assert not result.score_matrix.flags.writeable
        assert not result.loading_matrix.flags.writeable
        with pytest.raises(ValueError):
            result.feature_means[0] = 0.0

    def test_accessors(self, structured_matrix):
        result = pca(structured_matrix, components=5)
        assert list(result.get_components([1, "PC3"]).columns) == ["PC1", "PC3"]
        assert result.get_loadings(2).shape == (200, 1)
        assert result.get_vars(["PC1", "PC2"]).sum() == pytest.approx(
            result.cumulative_variance[1])
        with pytest.raises(InvalidParameter):
            result.get_components(6)
        with pytest.raises(InvalidParameter):
            result.get_components("PC9")

    def test_with_metadata(self, structured_matrix, sample_metadata):
        result = pca(structured_matrix, components=3)
        enriched = result.with_metadata(sample_metadata)
        assert not result.metadata
        assert set(enriched.metadata) == {"age", "batch", "noise"}
        assert enriched.metadata_column("batch").is_categorical
        frame = enriched.metadata_frame()
        assert list(frame["batch"]) == list(sample_metadata["batch"])
        with pytest.raises(UnknownAttribute):
            enriched.metadata_column("height")

    def test_summary(self, structured_matrix):
        text = pca(structured_matrix, components=3).summary()
        assert "PC1" in text
        assert "captured" in text


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
