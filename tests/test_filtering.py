"""
Tests for the variance filter.
"""

import numpy as np
import pandas as pd
import pytest

from pcaguide.errors import InvalidParameter
from pcaguide.filtering import filter_low_variance, low_variance_mask, n_features_to_remove


class TestVarianceFilter:
    """Dropping low-variance features."""

    def test_fraction_of_large_matrix(self, random_matrix):
        """1000 features with remove_var=0.1 leaves 900."""
        out = filter_low_variance(random_matrix, 0.1)
        assert out.shape == (900, 50)

    def test_zero_is_identity(self, structured_matrix):
        """remove_var=0 keeps every feature in order."""
        out = filter_low_variance(structured_matrix, 0)
        assert list(out.index) == list(structured_matrix.index)
        np.testing.assert_array_equal(out.to_numpy(), structured_matrix.to_numpy())

    def test_none_is_identity(self, random_matrix):
        out = filter_low_variance(random_matrix)
        assert out.shape == random_matrix.shape

    def test_drops_lowest_and_preserves_order(self):
        """Survivors keep their relative row order."""
        rng = np.random.default_rng(3)
        base = rng.standard_normal(30)
        base = (base - base.mean()) / base.std(ddof=1)
        sds = [np.sqrt(5), 1.0, np.sqrt(3), np.sqrt(0.5), 2.0]
        X = pd.DataFrame([base * s for s in sds], index=list("abcde"))
        out = filter_low_variance(X, 0.4)
        assert list(out.index) == ["a", "c", "e"]

    def test_ceiling_of_fraction(self):
        """ceil(r * F) features are removed, robust to float rounding."""
        assert n_features_to_remove(10, 0.7) == 7
        assert n_features_to_remove(10, 0.15) == 2
        assert n_features_to_remove(1000, 0.1) == 100

    def test_absolute_count(self, random_matrix):
        out = filter_low_variance(random_matrix, n_remove=250)
        assert out.shape[0] == 750

    def test_array_in_array_out(self, random_matrix):
        out = filter_low_variance(random_matrix, 0.5)
        assert isinstance(out, np.ndarray)

    def test_input_not_modified(self, structured_matrix):
        before = structured_matrix.copy()
        filter_low_variance(structured_matrix, 0.5)
        pd.testing.assert_frame_equal(before, structured_matrix)

    def test_mask_matches_filter(self, random_matrix):
        keep = low_variance_mask(random_matrix, 0.2)
        assert keep.sum() == 800
        variances = random_matrix.var(axis=1, ddof=1)
        assert variances[keep].min() >= variances[~keep].max()


class TestVarianceFilterErrors:

    @pytest.mark.parametrize("r", [1.0, 1.5, -0.1])
    def test_fraction_out_of_range(self, random_matrix, r):
        with pytest.raises(InvalidParameter):
            filter_low_variance(random_matrix, r)

    def test_nothing_left(self, random_matrix):
        with pytest.raises(InvalidParameter):
            filter_low_variance(random_matrix, n_remove=1000)

    def test_both_options(self, random_matrix):
        with pytest.raises(InvalidParameter):
            filter_low_variance(random_matrix, 0.1, n_remove=5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
