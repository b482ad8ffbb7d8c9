"""Emission models linking hidden states to observations.

An emission model evaluates ``p(y | state, params)`` and knows how to draw
its own parameters from their conditional posterior given an assignment of
observations to states. Callers (the decoder, the forward filter and the
Gibbs sampler) only ever go through this interface, so emission families can
be swapped without touching them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Union

import numpy as np

from .exceptions import DegenerateClusterError, InvalidParameterError
from .logging import get_logger
from .utils import check_stochastic, sample_dirichlet

logger = get_logger(__name__)

EMPTY_STATE_POLICIES = ("keep", "raise")


class EmissionModel(ABC):
    """Abstract per-state emission density.

    Attributes:
        n_states: Number of hidden states the model is defined over.
    """

    def __init__(self, n_states: int):
        if n_states < 1:
            raise InvalidParameterError(f"n_states must be >= 1, got {n_states}")
        self.n_states = int(n_states)

    def _check_state(self, state: int) -> int:
        state = int(state)
        if state < 0 or state >= self.n_states:
            raise InvalidParameterError(
                f"state {state} out of range for {self.n_states} states"
            )
        return state

    @abstractmethod
    def validate_params(self, params: np.ndarray) -> np.ndarray:
        """Check emission parameters and return them as a float array."""

    @abstractmethod
    def log_density(self, observation: float, state: int, params: np.ndarray) -> float:
        """Log-density of a single observation under ``state``."""

    def density(self, observation: float, state: int, params: np.ndarray) -> float:
        """Density of a single observation under ``state``; never negative."""
        return float(np.exp(self.log_density(observation, state, params)))

    def log_likelihoods(self, observations: np.ndarray, params: np.ndarray) -> np.ndarray:
        """Log-density of every observation under every state.

        Args:
            observations: Observation sequence, shape (T,).
            params: Emission parameters.

        Returns:
            Array of shape (T, n_states).
        """
        observations = np.asarray(observations)
        out = np.empty((len(observations), self.n_states))
        for t, y in enumerate(observations):
            for s in range(self.n_states):
                out[t, s] = self.log_density(y, s, params)
        return out

    @abstractmethod
    def sample_observation(self, state: int, params: np.ndarray, rng: np.random.Generator) -> float:
        """Draw one observation from the emission distribution of ``state``."""

    @abstractmethod
    def sample_posterior(
        self,
        observations: np.ndarray,
        path: np.ndarray,
        params: np.ndarray,
        rng: np.random.Generator,
        empty_state: str = "keep",
    ) -> np.ndarray:
        """Draw new emission parameters given a state assignment.

        Args:
            observations: Observation sequence, shape (T,).
            path: State assigned to each observation, shape (T,).
            params: Current emission parameters.
            rng: Random number generator.
            empty_state: What to do with states that have no observations:
                ``"keep"`` retains the current parameters for that state,
                ``"raise"`` raises :class:`DegenerateClusterError`.

        Returns:
            New emission parameters (a fresh array).
        """


def _check_empty_state(empty_state: str) -> None:
    if empty_state not in EMPTY_STATE_POLICIES:
        raise InvalidParameterError(
            f"empty_state must be one of {EMPTY_STATE_POLICIES}, got {empty_state!r}"
        )


class GaussianEmission(EmissionModel):
    """Univariate Gaussian emissions with known standard deviation.

    Parameters are the per-state means, shape (n_states,). The standard
    deviation is fixed and held by the model: either one value shared by all
    states or one value per state.

    The posterior update assumes a flat prior on each mean, so given ``n_j``
    observations assigned to state ``j``:

        mu_j | y, x ~ Normal(mean(y[x == j]), sigma_j**2 / n_j)

    Example:
        >>> emission = GaussianEmission(n_states=2, sigma=1.0)
        >>> round(emission.density(3.0, 0, np.array([3.0, 5.0])), 4)
        0.3989
    """

    def __init__(self, n_states: int, sigma: Union[float, np.ndarray] = 1.0):
        super().__init__(n_states)
        sigma = np.asarray(sigma, dtype=float)
        if sigma.ndim == 0:
            sigma = np.full(self.n_states, float(sigma))
        if sigma.shape != (self.n_states,):
            raise InvalidParameterError(
                f"sigma shape {sigma.shape} != ({self.n_states},)"
            )
        if not np.all(np.isfinite(sigma)) or np.any(sigma <= 0):
            raise InvalidParameterError(f"sigma must be positive and finite, got {sigma.tolist()}")
        self.sigma = sigma
        self._log_norm = -0.5 * np.log(2.0 * np.pi * sigma**2)

    def validate_params(self, params: np.ndarray) -> np.ndarray:
        means = np.array(params, dtype=float)
        if means.shape != (self.n_states,):
            raise InvalidParameterError(
                f"means shape {means.shape} != ({self.n_states},)"
            )
        if not np.all(np.isfinite(means)):
            raise InvalidParameterError("means contain NaN or Inf values")
        return means

    def log_density(self, observation: float, state: int, params: np.ndarray) -> float:
        state = self._check_state(state)
        z = (observation - params[state]) / self.sigma[state]
        return float(self._log_norm[state] - 0.5 * z * z)

    def log_likelihoods(self, observations: np.ndarray, params: np.ndarray) -> np.ndarray:
        y = np.asarray(observations, dtype=float)[:, np.newaxis]
        z = (y - np.asarray(params)[np.newaxis, :]) / self.sigma[np.newaxis, :]
        return self._log_norm[np.newaxis, :] - 0.5 * z * z

    def sample_observation(self, state: int, params: np.ndarray, rng: np.random.Generator) -> float:
        state = self._check_state(state)
        return float(rng.normal(params[state], self.sigma[state]))

    def sample_posterior(
        self,
        observations: np.ndarray,
        path: np.ndarray,
        params: np.ndarray,
        rng: np.random.Generator,
        empty_state: str = "keep",
    ) -> np.ndarray:
        _check_empty_state(empty_state)
        observations = np.asarray(observations, dtype=float)
        path = np.asarray(path)
        means = np.array(params, dtype=float)

        for j in range(self.n_states):
            assigned = observations[path == j]
            n_j = len(assigned)
            if n_j == 0:
                if empty_state == "raise":
                    raise DegenerateClusterError(j)
                logger.debug("State %d has no observations; keeping mean %.4f", j, means[j])
                continue
            means[j] = rng.normal(np.mean(assigned), self.sigma[j] / np.sqrt(n_j))

        return means


class CategoricalEmission(EmissionModel):
    """Discrete emissions over ``n_symbols`` integer symbols.

    Parameters are a row-stochastic matrix of shape (n_states, n_symbols).
    Observations are symbol indices; an index outside ``0..n_symbols-1`` has
    zero probability. The posterior update draws each row from
    Dirichlet(symbol counts + 1).
    """

    def __init__(self, n_states: int, n_symbols: int):
        super().__init__(n_states)
        if n_symbols < 1:
            raise InvalidParameterError(f"n_symbols must be >= 1, got {n_symbols}")
        self.n_symbols = int(n_symbols)

    def validate_params(self, params: np.ndarray) -> np.ndarray:
        probs = check_stochastic(params, "emission_prob")
        if probs.shape != (self.n_states, self.n_symbols):
            raise InvalidParameterError(
                f"emission_prob shape {probs.shape} != ({self.n_states}, {self.n_symbols})"
            )
        return probs

    def log_density(self, observation: float, state: int, params: np.ndarray) -> float:
        state = self._check_state(state)
        idx = int(observation)
        if idx != observation or idx < 0 or idx >= self.n_symbols:
            return -np.inf
        with np.errstate(divide="ignore"):
            return float(np.log(params[state, idx]))

    def log_likelihoods(self, observations: np.ndarray, params: np.ndarray) -> np.ndarray:
        obs = np.asarray(observations, dtype=float)
        idx = obs.astype(int)
        valid = (idx == obs) & (idx >= 0) & (idx < self.n_symbols)
        out = np.full((len(obs), self.n_states), -np.inf)
        with np.errstate(divide="ignore"):
            out[valid] = np.log(np.asarray(params)[:, idx[valid]]).T
        return out

    def sample_observation(self, state: int, params: np.ndarray, rng: np.random.Generator) -> float:
        state = self._check_state(state)
        return float(rng.choice(self.n_symbols, p=params[state]))

    def sample_posterior(
        self,
        observations: np.ndarray,
        path: np.ndarray,
        params: np.ndarray,
        rng: np.random.Generator,
        empty_state: str = "keep",
    ) -> np.ndarray:
        _check_empty_state(empty_state)
        obs = np.asarray(observations).astype(int)
        path = np.asarray(path)
        probs = np.array(params, dtype=float)

        counts = np.zeros((self.n_states, self.n_symbols))
        np.add.at(counts, (path, obs), 1.0)

        for j in range(self.n_states):
            if counts[j].sum() == 0:
                if empty_state == "raise":
                    raise DegenerateClusterError(j)
                logger.debug("State %d has no observations; keeping emission row", j)
                continue
            probs[j] = sample_dirichlet(counts[j] + 1.0, rng)

        return probs
