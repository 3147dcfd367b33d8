"""Shared synthetic matrices for the test-suite."""

import numpy as np
import pandas as pd
import pytest


def make_structured(n_features=200, n_samples=40, seed=1):
    """Features x samples matrix with three strong latent factors plus unit noise.

    Returns (matrix, factors) where factors is (3, n_samples).
    """
    rng = np.random.default_rng(seed)
    factors = rng.standard_normal((3, n_samples)) * np.array([[6.0], [4.0], [3.0]])
    weights = rng.standard_normal((n_features, 3))
    noise = rng.standard_normal((n_features, n_samples))
    X = pd.DataFrame(
        weights @ factors + noise,
        index=[f"g{i}" for i in range(n_features)],
        columns=[f"s{j}" for j in range(n_samples)],
    )
    return X, factors


@pytest.fixture
def random_matrix():
    """1000 features x 50 samples of i.i.d. normal noise."""
    rng = np.random.default_rng(0)
    return rng.standard_normal((1000, 50))


@pytest.fixture
def structured():
    return make_structured()


@pytest.fixture
def structured_matrix(structured):
    return structured[0]


@pytest.fixture
def sample_metadata(structured):
    """Metadata for the structured matrix: one attribute tracks factor 1."""
    X, factors = structured
    rng = np.random.default_rng(7)
    n = X.shape[1]
    return pd.DataFrame(
        {
            "age": factors[0] * 2.0 + rng.standard_normal(n) * 0.5,
            "batch": rng.choice(["b1", "b2", "b3"], size=n),
            "noise": rng.standard_normal(n),
        },
        index=X.columns,
    )
