"""Hidden Markov Model with pluggable emissions.

Provides Viterbi decoding, scaled forward filtering, forward-backward
smoothing, forward-filtering backward-sampling (FFBS) of state paths, and
simulation of state/observation sequences.

References:
    Rabiner, L. R. (1989). A tutorial on hidden Markov models and selected
    applications in speech recognition. Proceedings of the IEEE, 77(2), 257-286.
"""

from typing import Optional, Tuple

import numpy as np

from . import inference
from .emissions import EmissionModel
from .exceptions import ConfigurationError
from .params import HMMParams
from .utils import check_observations


class HiddenMarkovModel:
    """Discrete-state HMM with fixed parameters.

    Attributes:
        emission: Emission model evaluating p(y | state, params).
        params: Validated transition matrix, initial distribution and
            emission parameters.
        n_states: Number of hidden states.
    """

    def __init__(self, emission: EmissionModel, params: HMMParams):
        """Initialize HMM.

        Args:
            emission: Emission model.
            params: Model parameters. Their state count must match the
                emission model's.

        Raises:
            InvalidParameterError: If the parameters do not fit the emission model.
        """
        params.check_emission(emission)
        self.emission = emission
        self.params = params
        self.n_states = params.n_states

    @classmethod
    def from_arrays(
        cls,
        emission: EmissionModel,
        trans_mat,
        start_prob,
        emission_params,
    ) -> "HiddenMarkovModel":
        """Build a model straight from arrays (validated on construction)."""
        return cls(emission, HMMParams(trans_mat, start_prob, emission_params))

    @property
    def trans_mat(self) -> np.ndarray:
        return self.params.trans_mat

    @property
    def start_prob(self) -> np.ndarray:
        return self.params.start_prob

    def log_likelihoods(self, obs_seq: np.ndarray) -> np.ndarray:
        """Emission log-likelihood matrix, shape (T, n_states)."""
        obs_seq = check_observations(obs_seq)
        return self.emission.log_likelihoods(obs_seq, self.params.emission_params)

    def viterbi(self, obs_seq: np.ndarray) -> Tuple[np.ndarray, float]:
        """Viterbi algorithm: find most likely state sequence.

        Args:
            obs_seq: Observation sequence, shape (T,).

        Returns:
            Tuple of (path, log_prob) where:
            - path: shape (T,), most likely state sequence
            - log_prob: log-probability of this path jointly with obs_seq
        """
        log_lik = self.log_likelihoods(obs_seq)
        return inference.viterbi(log_lik, self.start_prob, self.trans_mat)

    def predict(self, obs_seq: np.ndarray) -> np.ndarray:
        """Predict most likely state sequence (Viterbi).

        Args:
            obs_seq: Observation sequence, shape (T,).

        Returns:
            Most likely state sequence, shape (T,).
        """
        path, _ = self.viterbi(obs_seq)
        return path

    def filter(self, obs_seq: np.ndarray) -> inference.ForwardLattice:
        """Run the scaled forward recursion.

        Args:
            obs_seq: Observation sequence, shape (T,).

        Returns:
            ForwardLattice with filtered probabilities and log scale factors.
        """
        log_lik = self.log_likelihoods(obs_seq)
        return inference.forward(log_lik, self.start_prob, self.trans_mat)

    def forward(self, obs_seq: np.ndarray) -> Tuple[np.ndarray, float]:
        """Forward algorithm: compute forward log-probabilities and log-likelihood.

        Args:
            obs_seq: Observation sequence, shape (T,).

        Returns:
            Tuple of (log_alpha, log_likelihood) where:
            - log_alpha: shape (T, n_states), log forward probabilities
            - log_likelihood: log P(obs_seq)
        """
        lattice = self.filter(obs_seq)
        return lattice.log_alpha, lattice.log_likelihood

    def posterior_marginals(self, obs_seq: np.ndarray) -> np.ndarray:
        """Forward-backward smoothing.

        Args:
            obs_seq: Observation sequence, shape (T,).

        Returns:
            gamma: shape (T, n_states), posterior P(state_t = s | obs_seq).
        """
        log_lik = self.log_likelihoods(obs_seq)
        return inference.smooth(log_lik, self.start_prob, self.trans_mat)

    def score(self, obs_seq: np.ndarray) -> float:
        """Compute log-likelihood of observation sequence."""
        return self.filter(obs_seq).log_likelihood

    def sample_path(self, obs_seq: np.ndarray, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Draw a state path from P(x | obs_seq) by forward filtering, backward sampling.

        Args:
            obs_seq: Observation sequence, shape (T,).
            rng: Random number generator. If None, uses default_rng(0).

        Returns:
            Sampled state path, shape (T,).
        """
        if rng is None:
            rng = np.random.default_rng(0)
        lattice = self.filter(obs_seq)
        return inference.backward_sample(lattice.filtered, self.trans_mat, rng)

    def sample(
        self, length: int, rng: Optional[np.random.Generator] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Sample state and observation sequences from the model.

        Args:
            length: Sequence length T.
            rng: Random number generator. If None, uses default_rng(0).

        Returns:
            Tuple of (states, observations) where both are shape (T,).
        """
        if rng is None:
            rng = np.random.default_rng(0)
        if length < 1:
            raise ConfigurationError(f"length must be >= 1, got {length}")

        theta = self.params.emission_params
        states = np.zeros(length, dtype=int)
        observations = np.zeros(length)

        states[0] = rng.choice(self.n_states, p=self.start_prob)
        observations[0] = self.emission.sample_observation(states[0], theta, rng)

        for t in range(1, length):
            states[t] = rng.choice(self.n_states, p=self.trans_mat[states[t - 1], :])
            observations[t] = self.emission.sample_observation(states[t], theta, rng)

        return states, observations
