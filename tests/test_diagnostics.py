"""Tests for chain post-processing and convergence diagnostics."""

import numpy as np
import pytest

from hmmgibbs import (
    ChainTrace,
    ConfigurationError,
    InvalidParameterError,
    autocorrelation,
    concatenate_chains,
    discard_burn_in,
    effective_sample_size,
    gelman_rubin,
    ljung_box,
    postprocess,
    select_thinning,
    state_probability,
    thin,
    trace_autocorrelation,
)


def _trace(n_draws, n_timesteps=4, offset=0.0, rng=None):
    """Synthetic trace whose emission means are ``offset + k`` or noise."""
    if rng is None:
        means = offset + np.arange(n_draws, dtype=float)[:, np.newaxis] * np.ones(2)
    else:
        means = offset + rng.normal(size=(n_draws, 2))
    return ChainTrace(
        paths=np.arange(n_draws)[:, np.newaxis] % 2 * np.ones(n_timesteps, dtype=int),
        trans_mat=np.tile(np.array([[0.9, 0.1], [0.2, 0.8]]), (n_draws, 1, 1)),
        start_prob=np.tile(np.array([0.5, 0.5]), (n_draws, 1)),
        emission_params=means,
    )


def _ar1(rng, n, phi):
    x = np.zeros(n)
    for t in range(1, n):
        x[t] = phi * x[t - 1] + rng.normal()
    return x


class TestChainTrace:
    """Tests for the ChainTrace container."""

    def test_len_and_shapes(self):
        trace = _trace(6, n_timesteps=3)
        assert len(trace) == 6
        assert trace.n_states == 2
        assert trace.n_timesteps == 3

    def test_shape_validation(self):
        with pytest.raises(InvalidParameterError):
            ChainTrace(
                paths=np.zeros((3, 4), dtype=int),
                trans_mat=np.zeros((2, 2, 2)),
                start_prob=np.zeros((3, 2)),
                emission_params=np.zeros((3, 2)),
            )
        with pytest.raises(InvalidParameterError):
            ChainTrace(
                paths=np.zeros(4, dtype=int),
                trans_mat=np.zeros((3, 2, 2)),
                start_prob=np.zeros((3, 2)),
                emission_params=np.zeros((3, 2)),
            )

    def test_draw_returns_params(self):
        trace = _trace(5)
        path, params = trace.draw(3)
        np.testing.assert_array_equal(path, [1, 1, 1, 1])
        np.testing.assert_array_equal(params.emission_params, [3.0, 3.0])

    def test_posterior_mean(self):
        means = _trace(5).posterior_mean()
        np.testing.assert_allclose(means["emission_params"], [2.0, 2.0])
        np.testing.assert_allclose(means["trans_mat"], [[0.9, 0.1], [0.2, 0.8]])

    def test_state_probability(self):
        trace = _trace(4)
        np.testing.assert_allclose(trace.state_probability(1), [0.5] * 4)
        with pytest.raises(InvalidParameterError):
            trace.state_probability(2)


class TestPostProcessing:
    """Tests for burn-in, concatenation and thinning."""

    def test_discard_burn_in(self):
        trace = discard_burn_in(_trace(10), 4)
        assert len(trace) == 6
        assert trace.emission_params[0, 0] == 4.0

    @pytest.mark.parametrize("burn_in", [-1, 10, 11])
    def test_discard_burn_in_invalid(self, burn_in):
        with pytest.raises(ConfigurationError):
            discard_burn_in(_trace(10), burn_in)

    def test_concatenate_preserves_chain_order(self):
        combined = concatenate_chains([_trace(3, offset=0.0), _trace(2, offset=100.0)])
        assert len(combined) == 5
        np.testing.assert_array_equal(combined.emission_params[:, 0], [0.0, 1.0, 2.0, 100.0, 101.0])

    def test_concatenate_rejects_mismatch(self):
        with pytest.raises(InvalidParameterError):
            concatenate_chains([_trace(3, n_timesteps=4), _trace(3, n_timesteps=5)])
        with pytest.raises(ConfigurationError):
            concatenate_chains([])

    def test_thin(self):
        trace = thin(_trace(10), 3)
        np.testing.assert_array_equal(trace.emission_params[:, 0], [0.0, 3.0, 6.0, 9.0])
        assert len(thin(_trace(10), 1)) == 10
        with pytest.raises(ConfigurationError):
            thin(_trace(10), 0)

    def test_postprocess(self):
        chains = [_trace(10, offset=0.0), _trace(10, offset=100.0)]
        result = postprocess(chains, burn_in=6, stride=2)
        np.testing.assert_array_equal(result.emission_params[:, 0], [6.0, 8.0, 100.0 + 6, 100.0 + 8])

    def test_state_probability_function(self):
        paths = np.array([[0, 1, 1], [0, 0, 1], [1, 0, 1], [0, 0, 1]])
        np.testing.assert_allclose(state_probability(paths, 1), [0.25, 0.25, 1.0])
        np.testing.assert_allclose(state_probability(paths, 0), [0.75, 0.75, 0.0])
        with pytest.raises(InvalidParameterError):
            state_probability(np.zeros((0, 3)), 0)

    def test_state_probability_rejects_out_of_range_label(self):
        paths = np.zeros((4, 3), dtype=int)
        with pytest.raises(InvalidParameterError):
            state_probability(paths, 7, n_states=2)
        with pytest.raises(InvalidParameterError):
            state_probability(paths, -1)
        np.testing.assert_array_equal(state_probability(paths, 1, n_states=2), [0.0, 0.0, 0.0])


class TestAutocorrelation:
    """Tests for autocorrelation and thinning selection."""

    def test_known_values(self):
        acf = autocorrelation(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), max_lag=2)
        np.testing.assert_allclose(acf, [1.0, 0.4, -0.1])

    def test_constant_series(self):
        np.testing.assert_array_equal(autocorrelation(np.full(10, 3.0), 3), np.zeros(4))

    def test_white_noise_small(self, rng):
        acf = autocorrelation(rng.normal(size=2000), 5)
        assert acf[0] == pytest.approx(1.0)
        assert np.all(np.abs(acf[1:]) < 0.1)

    def test_ar1_lag_one(self, rng):
        acf = autocorrelation(_ar1(rng, 5000, 0.8), 1)
        assert acf[1] == pytest.approx(0.8, abs=0.05)

    def test_invalid_lag(self):
        with pytest.raises(ConfigurationError):
            autocorrelation(np.arange(5.0), 5)
        with pytest.raises(ConfigurationError):
            autocorrelation(np.arange(5.0), -1)

    def test_trace_autocorrelation_shapes(self, rng):
        acfs = trace_autocorrelation(_trace(50, rng=rng), 5)
        assert acfs["emission_params"].shape == (6, 2)
        assert acfs["trans_mat"].shape == (6, 4)
        # constant blocks
        np.testing.assert_array_equal(acfs["start_prob"], 0.0)

    def test_select_thinning_independent_draws(self, rng):
        assert select_thinning(_trace(5000, rng=rng)) == 1

    def test_select_thinning_correlated_draws(self, rng):
        n = 20000
        means = np.column_stack([_ar1(rng, n, 0.9), _ar1(rng, n, 0.9)])
        trace = ChainTrace(
            paths=np.zeros((n, 2), dtype=int),
            trans_mat=np.tile(np.eye(2), (n, 1, 1)),
            start_prob=np.tile([1.0, 0.0], (n, 1)),
            emission_params=means,
        )
        stride = select_thinning(trace, threshold=0.1)
        # 0.9 ** 22 ~= 0.098
        assert 12 <= stride <= 40

    def test_select_thinning_falls_back_to_max_lag(self):
        # linear trend stays correlated at every lag considered
        assert select_thinning(_trace(200), threshold=0.1, max_lag=5) == 5


class TestGelmanRubin:
    """Tests for the potential scale reduction factor."""

    def test_same_distribution_close_to_one(self, rng):
        chains = [_trace(2000, rng=rng), _trace(2000, rng=rng)]
        r_hat = gelman_rubin(chains)
        np.testing.assert_allclose(r_hat["emission_params"], 1.0, atol=0.01)
        np.testing.assert_array_equal(r_hat["trans_mat"], 1.0)

    def test_constant_components_are_exactly_one(self, rng):
        """Constant columns whose variance is only rounding noise still give 1.0."""
        n = 2000
        trans_mat = np.tile(np.array([[0.7, 0.3], [0.1, 0.9]]), (n, 1, 1))
        chains = [
            ChainTrace(
                paths=np.zeros((n, 3), dtype=int),
                trans_mat=trans_mat,
                start_prob=np.tile(np.array([0.3, 0.7]), (n, 1)),
                emission_params=rng.normal(size=(n, 2)),
            )
            for _ in range(2)
        ]
        r_hat = gelman_rubin(chains)
        np.testing.assert_array_equal(r_hat["trans_mat"], 1.0)
        np.testing.assert_array_equal(r_hat["start_prob"], 1.0)

    def test_separated_chains_flagged(self, rng):
        chains = [_trace(500, offset=0.0, rng=rng), _trace(500, offset=5.0, rng=rng)]
        r_hat = gelman_rubin(chains)
        assert np.all(r_hat["emission_params"] > 1.5)

    def test_requires_two_chains(self, rng):
        with pytest.raises(ConfigurationError):
            gelman_rubin([_trace(10, rng=rng)])

    def test_requires_equal_lengths(self, rng):
        with pytest.raises(InvalidParameterError):
            gelman_rubin([_trace(10, rng=rng), _trace(11, rng=rng)])


class TestEffectiveSampleSize:
    """Tests for effective_sample_size."""

    def test_independent_draws(self, rng):
        ess = effective_sample_size(rng.normal(size=4000))
        assert 3000 < ess < 5500

    def test_correlated_draws(self, rng):
        # integrated autocorrelation time of AR(1) is (1 + phi) / (1 - phi) = 19
        ess = effective_sample_size(_ar1(rng, 20000, 0.9))
        assert 20000 / 30 < ess < 20000 / 12

    def test_constant_series(self):
        assert effective_sample_size(np.ones(50)) == 50.0


class TestLjungBox:
    """Tests for the Ljung-Box test."""

    def test_white_noise_not_rejected(self, rng):
        _, pvalue = ljung_box(rng.normal(size=500), lags=10)
        assert pvalue > 0.001

    def test_autocorrelated_rejected(self, rng):
        q, pvalue = ljung_box(_ar1(rng, 500, 0.7), lags=10)
        assert q > 0
        assert pvalue < 0.001

    def test_default_lags(self, rng):
        q, pvalue = ljung_box(rng.normal(size=100))
        assert np.isfinite(q)
        assert 0.0 <= pvalue <= 1.0

    def test_too_short(self):
        with pytest.raises(ConfigurationError):
            ljung_box(np.array([1.0]))
        with pytest.raises(ConfigurationError):
            ljung_box(np.arange(5.0), lags=5)
