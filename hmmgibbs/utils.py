"""Numerical utilities shared by the decoder, filter and Gibbs sampler.

Provides a stable log-sum-exp, log-weight normalization, inverse-CDF
categorical draws, and the input checks used across the package.
"""

from typing import Optional, Tuple

import numpy as np

from .exceptions import ConfigurationError, InvalidParameterError

# Tolerance for row sums of stochastic vectors and matrices
STOCHASTIC_ATOL = 1e-8


def logsumexp(a: np.ndarray, axis: Optional[int] = None) -> np.ndarray:
    """Compute log-sum-exp in a numerically stable way.

    Computes log(sum(exp(a))) avoiding overflow/underflow by subtracting
    the maximum before exponentiating. Slices that are entirely ``-inf``
    yield ``-inf`` rather than NaN.

    Args:
        a: Input array of log-values.
        axis: Axis along which to compute. If None, flattens array.

    Returns:
        Log-sum-exp result, same shape as input (with axis removed if specified).

    Examples:
        >>> logsumexp(np.array([-10, -11, -12]))
        -9.40760596444438...
        >>> logsumexp(np.array([[1, 2], [3, 4]]), axis=0)
        array([3.126928..., 4.126928...])
    """
    a = np.asarray(a, dtype=float)
    if axis is None:
        a = a.ravel()
        if a.size == 0:
            return np.array(-np.inf)
        axis = 0

    a_max = np.max(a, axis=axis, keepdims=True)
    a_max = np.where(np.isfinite(a_max), a_max, 0.0)
    with np.errstate(divide="ignore"):
        result = a_max + np.log(np.sum(np.exp(a - a_max), axis=axis, keepdims=True))
    return np.squeeze(result, axis=axis)


def normalize_log_weights(log_w: np.ndarray) -> Tuple[np.ndarray, float]:
    """Normalize log-weights and return normalized weights + log normalizer.

    Computes: w = exp(log_w - logsumexp(log_w))

    Args:
        log_w: Log-weights, shape (N,).

    Returns:
        Tuple of (normalized_weights, log_normalizer). If every weight is
        zero the normalizer is ``-inf`` and the weights are all NaN; callers
        must check the normalizer.

    Examples:
        >>> w, log_z = normalize_log_weights(np.array([-1.0, -2.0, -3.0]))
        >>> np.allclose(np.sum(w), 1.0)
        True
    """
    log_w = np.asarray(log_w, dtype=float)
    log_z = float(logsumexp(log_w))
    if not np.isfinite(log_z):
        return np.full_like(log_w, np.nan), log_z
    return np.exp(log_w - log_z), log_z


def sample_categorical(
    weights: np.ndarray, rng: Optional[np.random.Generator] = None, u: Optional[float] = None
) -> int:
    """Draw one index with probability proportional to ``weights``.

    Uses the inverse CDF of the normalized weights.

    Args:
        weights: Non-negative weights, shape (N,). Need not sum to one.
        rng: Random number generator used when ``u`` is not given. If None,
            uses default_rng(0).
        u: Optional pre-drawn uniform on [0, 1).

    Returns:
        Sampled index in ``0..N-1``.

    Raises:
        ValueError: If the weights have no positive mass.
    """
    weights = np.asarray(weights, dtype=float)
    cumsum = np.cumsum(weights)
    total = cumsum[-1]
    if not total > 0:
        raise ValueError("Cannot sample from weights with zero total mass")
    if u is None:
        if rng is None:
            rng = np.random.default_rng(0)
        u = rng.random()
    idx = int(np.searchsorted(cumsum, u * total, side="right"))
    return min(idx, len(weights) - 1)


def check_observations(observations) -> np.ndarray:
    """Return observations as a 1D float array, rejecting empty input.

    Raises:
        ConfigurationError: If the sequence is empty.
        InvalidParameterError: If the observations are not 1D or not finite.
    """
    obs = np.asarray(observations, dtype=float)
    if obs.ndim == 0:
        obs = obs.reshape(1)
    if obs.ndim != 1:
        raise InvalidParameterError(f"observations must be 1D, got shape {obs.shape}")
    if obs.size == 0:
        raise ConfigurationError("observation sequence must contain at least one value")
    if not np.all(np.isfinite(obs)):
        raise InvalidParameterError("observations contain NaN or Inf values")
    return obs


def check_stochastic(x: np.ndarray, name: str, atol: float = STOCHASTIC_ATOL) -> np.ndarray:
    """Validate a probability vector (1D) or row-stochastic matrix (2D).

    Args:
        x: Candidate vector or matrix.
        name: Name used in error messages.
        atol: Absolute tolerance on each sum.

    Returns:
        The input as a float array (a copy).

    Raises:
        InvalidParameterError: On NaN/Inf, negative entries, or sums off one.
    """
    x = np.array(x, dtype=float)
    if x.ndim not in (1, 2):
        raise InvalidParameterError(f"{name} must be 1D or 2D, got shape {x.shape}")
    if not np.all(np.isfinite(x)):
        raise InvalidParameterError(f"{name} contains NaN or Inf values")
    if np.any(x < 0):
        raise InvalidParameterError(f"{name} contains negative values")

    sums = np.sum(x, axis=-1)
    if not np.allclose(sums, 1.0, rtol=0.0, atol=atol):
        what = "rows do not" if x.ndim == 2 else "does not"
        raise InvalidParameterError(f"{name} {what} sum to 1 (sums: {np.atleast_1d(sums).tolist()})")
    return x


def sample_dirichlet(alpha: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Draw from a Dirichlet distribution via independent Gamma variates.

    Each component is drawn as Gamma(shape=alpha_k, scale=1) and the draws
    are normalized to sum to one. A 2D ``alpha`` is treated row-wise, giving
    one independent Dirichlet draw per row.

    Args:
        alpha: Positive concentration parameters, shape (K,) or (R, K).
        rng: Random number generator.

    Returns:
        Array with the same shape as ``alpha`` whose last axis sums to one.

    Raises:
        InvalidParameterError: If any concentration is not positive.
    """
    alpha = np.asarray(alpha, dtype=float)
    if np.any(~np.isfinite(alpha)) or np.any(alpha <= 0):
        raise InvalidParameterError("Dirichlet concentrations must be positive and finite")
    draws = rng.gamma(shape=alpha, scale=1.0)
    return draws / np.sum(draws, axis=-1, keepdims=True)
