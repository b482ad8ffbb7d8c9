"""Pytest configuration and shared fixtures for hmmgibbs tests.

This module provides:
- A deterministic numpy RNG fixture
- The two-state Gaussian HMM used throughout the test-suite
"""

import os

import numpy as np
import pytest

from hmmgibbs import GaussianEmission, HiddenMarkovModel, HMMParams


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    This ensures tests are reproducible while allowing override for debugging.

    Returns:
        A seeded numpy.random.Generator instance.
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Auto-use fixture to seed numpy's legacy global RNG for every test."""
    np.random.seed(_seed())


@pytest.fixture
def emission() -> GaussianEmission:
    """Two-state Gaussian emissions with unit standard deviation."""
    return GaussianEmission(n_states=2, sigma=1.0)


@pytest.fixture
def true_params() -> HMMParams:
    """Sticky two-state model with means 3 and 5."""
    return HMMParams(
        trans_mat=np.array([[0.9, 0.1], [0.1, 0.9]]),
        start_prob=np.array([0.5, 0.5]),
        emission_params=np.array([3.0, 5.0]),
    )


@pytest.fixture
def true_model(emission: GaussianEmission, true_params: HMMParams) -> HiddenMarkovModel:
    return HiddenMarkovModel(emission, true_params)


@pytest.fixture
def simulated(true_model: HiddenMarkovModel):
    """(states, observations) of length 100 drawn from ``true_model`` with seed 42."""
    return true_model.sample(100, rng=np.random.default_rng(42))
