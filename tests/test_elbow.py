"""
Tests for elbow detection on variance-explained curves.
"""

import numpy as np
import pytest

from pcaguide.decomposition import pca
from pcaguide.elbow import elbow_distances, find_elbow
from pcaguide.errors import InsufficientComponents, InvalidParameter


class TestFindElbow:

    def test_known_curve(self):
        """Farthest point below the chord from (1, 50) to (7, 2) is rank 3."""
        assert find_elbow([50, 20, 10, 8, 6, 4, 2]) == 3

    def test_sharp_drop(self):
        assert find_elbow([90, 2, 1.5, 1, 0.5]) == 2

    def test_deterministic(self):
        v = np.sort(np.random.default_rng(0).exponential(size=30))[::-1]
        assert find_elbow(v) == find_elbow(v.copy())

    def test_straight_line_has_no_elbow(self):
        assert find_elbow([5, 4, 3, 2, 1]) == 5

    def test_concave_curve_has_no_elbow(self):
        assert find_elbow([10, 9.9, 9.5, 8, 1]) == 5

    def test_flat_tail(self):
        """Ties are allowed in a non-increasing sequence."""
        assert find_elbow([40, 10, 10, 10]) == 2

    def test_accepts_result(self, structured_matrix):
        """Three planted factors put the elbow where the noise floor starts."""
        result = pca(structured_matrix, components=15)
        assert find_elbow(result) == find_elbow(result.variance)
        assert 3 <= find_elbow(result) <= 4

    def test_distances_vanish_at_ends(self):
        d = elbow_distances([50, 20, 10, 8, 6, 4, 2])
        assert d[0] == pytest.approx(0.0)
        assert d[-1] == pytest.approx(0.0)
        assert np.argmax(d) == 2


class TestFindElbowErrors:

    @pytest.mark.parametrize("v", [[], [10.0], [10.0, 5.0]])
    def test_too_few_components(self, v):
        with pytest.raises(InsufficientComponents):
            find_elbow(v)

    def test_increasing(self):
        with pytest.raises(InvalidParameter):
            find_elbow([1, 2, 3, 4])

    def test_non_finite(self):
        with pytest.raises(InvalidParameter):
            find_elbow([10, np.nan, 1])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
