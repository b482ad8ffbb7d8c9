"""Smoke test to verify test determinism.

Runs the randomized pieces of the package twice with the same seed and
asserts identical outputs. This helps catch flaky tests early.
"""

import os

import numpy as np

from hmmgibbs import GibbsSampler, SamplerConfig, sample_categorical, sample_dirichlet


def test_numpy_rng_reproducibility(rng: np.random.Generator) -> None:
    """Test that numpy RNG fixture produces reproducible results."""
    values1 = rng.random(10)

    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    rng2 = np.random.default_rng(seed)
    values2 = rng2.random(10)

    np.testing.assert_array_equal(values1, values2)


def test_categorical_and_dirichlet_reproducibility() -> None:
    """Same generator seed gives the same categorical and Dirichlet draws."""
    weights = np.array([0.2, 0.5, 0.3])
    draws = []
    for _ in range(2):
        gen = np.random.default_rng(42)
        draws.append(
            (
                [sample_categorical(weights, gen) for _ in range(50)],
                sample_dirichlet(np.array([[1.0, 2.0], [3.0, 4.0]]), gen),
            )
        )
    assert draws[0][0] == draws[1][0]
    np.testing.assert_array_equal(draws[0][1], draws[1][1])


def test_sampler_reproducibility(emission, true_params, simulated) -> None:
    """Two runs with the same config seed produce identical traces."""
    _, observations = simulated
    config = SamplerConfig(n_iter=15, n_chains=2, seed=2024)
    runs = [GibbsSampler(emission, config).run(observations, [true_params] * 2) for _ in range(2)]
    for a, b in zip(runs[0].chains, runs[1].chains):
        np.testing.assert_array_equal(a.paths, b.paths)
        np.testing.assert_array_equal(a.start_prob, b.start_prob)
        np.testing.assert_array_equal(a.emission_params, b.emission_params)


def test_simulation_reproducibility(true_model) -> None:
    """Model simulation with a fixed seed is reproducible."""
    states1, obs1 = true_model.sample(30, rng=np.random.default_rng(5))
    states2, obs2 = true_model.sample(30, rng=np.random.default_rng(5))
    np.testing.assert_array_equal(states1, states2)
    np.testing.assert_array_equal(obs1, obs2)
