"""Lattice algorithms over a precomputed emission log-likelihood matrix.

All functions are pure: they take the (T, M) matrix of emission
log-likelihoods together with the initial distribution and transition matrix
and return new arrays. :class:`~hmmgibbs.hmm.HiddenMarkovModel` and the Gibbs
sampler are thin callers of these.

References:
    Rabiner, L. R. (1989). A tutorial on hidden Markov models and selected
    applications in speech recognition. Proceedings of the IEEE, 77(2), 257-286.
    Chib, S. (1996). Calculating posterior distributions and modal estimates
    in Markov mixture models. Journal of Econometrics, 75(1), 79-97.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .exceptions import NumericalUnderflowError
from .utils import normalize_log_weights, sample_categorical


def _log(x: np.ndarray) -> np.ndarray:
    with np.errstate(divide="ignore"):
        return np.log(x)


@dataclass(frozen=True)
class ForwardLattice:
    """Scaled forward lattice.

    Row ``t`` of ``filtered`` is ``alpha[t] / sum(alpha[t])``, i.e. the
    filtering distribution ``P(x_t | y_0..y_t)``, and ``log_scale[t]`` is the
    log of the factor removed from that row (relative to the previous one).
    Together they represent the unnormalized lattice without underflow.

    Attributes:
        filtered: Row-normalized forward probabilities, shape (T, M).
        log_scale: Per-step log normalizers, shape (T,).
    """

    filtered: np.ndarray
    log_scale: np.ndarray

    @property
    def log_alpha(self) -> np.ndarray:
        """Unnormalized log forward lattice: log P(y_0..y_t, x_t = i)."""
        return _log(self.filtered) + np.cumsum(self.log_scale)[:, np.newaxis]

    @property
    def alpha(self) -> np.ndarray:
        """Unnormalized forward lattice. Underflows to zero for long sequences."""
        return np.exp(self.log_alpha)

    @property
    def log_likelihood(self) -> float:
        """log P(y_0..y_{T-1})."""
        return float(np.sum(self.log_scale))


def viterbi(
    log_lik: np.ndarray, start_prob: np.ndarray, trans_mat: np.ndarray
) -> Tuple[np.ndarray, float]:
    """Viterbi algorithm: most probable state path.

    Runs in log space with backpointers. Every argmax (over predecessors and
    at termination) resolves ties to the lowest state index.

    Args:
        log_lik: Emission log-likelihoods, shape (T, M).
        start_prob: Initial state distribution, shape (M,).
        trans_mat: Transition matrix, shape (M, M).

    Returns:
        Tuple of (path, log_prob) where:
        - path: shape (T,), most likely state sequence
        - log_prob: joint log-probability of the path and the observations

    Raises:
        NumericalUnderflowError: If every state has zero probability at some
            time step.
    """
    log_lik = np.asarray(log_lik, dtype=float)
    T, M = log_lik.shape
    log_start = _log(np.asarray(start_prob, dtype=float))
    log_trans = _log(np.asarray(trans_mat, dtype=float))

    log_delta = np.empty((T, M))
    psi = np.zeros((T, M), dtype=int)
    cols = np.arange(M)

    log_delta[0] = log_start + log_lik[0]
    _check_viterbi_row(log_delta[0], 0)

    for t in range(1, T):
        # scores[j, i] = log_delta[t-1, j] + log_trans[j, i]
        scores = log_delta[t - 1][:, np.newaxis] + log_trans
        psi[t] = np.argmax(scores, axis=0)
        log_delta[t] = scores[psi[t], cols] + log_lik[t]
        _check_viterbi_row(log_delta[t], t)

    path = np.zeros(T, dtype=int)
    path[T - 1] = int(np.argmax(log_delta[T - 1]))
    log_prob = float(log_delta[T - 1, path[T - 1]])

    for t in range(T - 2, -1, -1):
        path[t] = psi[t + 1, path[t + 1]]

    return path, log_prob


def _check_viterbi_row(row: np.ndarray, t: int) -> None:
    if not np.any(row > -np.inf):
        raise NumericalUnderflowError(
            f"All states have zero probability at time {t} during Viterbi decoding",
            time_index=t,
        )


def forward(log_lik: np.ndarray, start_prob: np.ndarray, trans_mat: np.ndarray) -> ForwardLattice:
    """Forward algorithm with per-step rescaling.

    alpha[0, i] = pi[i] * f(y_0 | i)
    alpha[t, i] = sum_j alpha[t-1, j] * nu[j, i] * f(y_t | i)

    Each row is normalized to sum to one as it is computed and the log of the
    normalizer is kept, so the recursion is stable for any sequence length.

    Args:
        log_lik: Emission log-likelihoods, shape (T, M).
        start_prob: Initial state distribution, shape (M,).
        trans_mat: Transition matrix, shape (M, M).

    Returns:
        ForwardLattice for the sequence.

    Raises:
        NumericalUnderflowError: If a lattice row has zero total mass.
    """
    log_lik = np.asarray(log_lik, dtype=float)
    start_prob = np.asarray(start_prob, dtype=float)
    trans_mat = np.asarray(trans_mat, dtype=float)
    T, M = log_lik.shape

    filtered = np.empty((T, M))
    log_scale = np.empty(T)

    for t in range(T):
        pred = start_prob if t == 0 else filtered[t - 1] @ trans_mat
        # logsumexp shifts by the row maximum, so tiny likelihoods do not vanish
        weights, log_norm = normalize_log_weights(_log(pred) + log_lik[t])
        if not np.isfinite(log_norm):
            raise NumericalUnderflowError(
                f"Forward lattice row {t} has zero total probability", time_index=t
            )
        filtered[t] = weights
        log_scale[t] = log_norm

    return ForwardLattice(filtered=filtered, log_scale=log_scale)


def backward(log_lik: np.ndarray, trans_mat: np.ndarray, lattice: ForwardLattice) -> np.ndarray:
    """Backward algorithm scaled with the forward pass's normalizers.

    Returns beta_hat with beta_hat[T-1] = 1 and

        beta_hat[t, i] = sum_k nu[i, k] f(y_{t+1} | k) beta_hat[t+1, k] / c_{t+1}

    where c_{t+1} = exp(log_scale[t+1]). With this scaling
    ``lattice.filtered * beta_hat`` is the smoothed posterior.

    Args:
        log_lik: Emission log-likelihoods, shape (T, M).
        trans_mat: Transition matrix, shape (M, M).
        lattice: Forward lattice computed from the same inputs.

    Returns:
        Scaled backward lattice, shape (T, M).
    """
    log_lik = np.asarray(log_lik, dtype=float)
    trans_mat = np.asarray(trans_mat, dtype=float)
    T, M = log_lik.shape

    beta = np.ones((T, M))
    for t in range(T - 2, -1, -1):
        weighted = np.exp(log_lik[t + 1] - lattice.log_scale[t + 1]) * beta[t + 1]
        beta[t] = trans_mat @ weighted
    return beta


def smooth(log_lik: np.ndarray, start_prob: np.ndarray, trans_mat: np.ndarray) -> np.ndarray:
    """Posterior state marginals P(x_t = i | y_0..y_{T-1}), shape (T, M)."""
    lattice = forward(log_lik, start_prob, trans_mat)
    beta = backward(log_lik, trans_mat, lattice)
    gamma = lattice.filtered * beta
    return gamma / np.sum(gamma, axis=1, keepdims=True)


def backward_sample(
    filtered: np.ndarray, trans_mat: np.ndarray, rng: np.random.Generator
) -> np.ndarray:
    """Draw a state path from its exact posterior (backward sampling step of FFBS).

    x[T-1] ~ Cat(alpha[T-1, :])
    x[t]   ~ Cat(alpha[t, i] * nu[i, x[t+1]])   for t = T-2, ..., 0

    Only proportionality within each row matters, so the row-normalized
    ``filtered`` lattice can be passed directly.

    Args:
        filtered: Forward probabilities (normalized or not), shape (T, M).
        trans_mat: Transition matrix, shape (M, M).
        rng: Random number generator.

    Returns:
        Sampled path, shape (T,).

    Raises:
        NumericalUnderflowError: If a conditional has zero total mass.
    """
    filtered = np.asarray(filtered, dtype=float)
    trans_mat = np.asarray(trans_mat, dtype=float)
    T = filtered.shape[0]

    u = rng.random(T)
    path = np.zeros(T, dtype=int)
    path[T - 1] = _draw(filtered[T - 1], u[T - 1], T - 1)
    for t in range(T - 2, -1, -1):
        path[t] = _draw(filtered[t] * trans_mat[:, path[t + 1]], u[t], t)
    return path


def _draw(weights: np.ndarray, u: float, t: int) -> int:
    if not np.sum(weights) > 0:
        raise NumericalUnderflowError(
            f"Backward sampling weights have zero mass at time {t}", time_index=t
        )
    return sample_categorical(weights, rng=None, u=u)
