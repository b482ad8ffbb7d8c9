"""Post-processing and convergence diagnostics for Gibbs chains.

Burn-in removal, multi-chain concatenation, thinning, autocorrelation,
Gelman-Rubin potential scale reduction, effective sample size and the
Ljung-Box test for residual autocorrelation of retained draws.

References:
    - Gelman, A. & Rubin, D. B. (1992): "Inference from iterative simulation
      using multiple sequences"
    - Geyer, C. J. (1992): "Practical Markov chain Monte Carlo"
    - Ljung & Box (1978): "On a measure of lack of fit in time series models"
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from .exceptions import ConfigurationError, InvalidParameterError
from .logging import get_logger
from .trace import ChainTrace

logger = get_logger(__name__)


def discard_burn_in(trace: ChainTrace, burn_in: int) -> ChainTrace:
    """Drop the first ``burn_in`` draws of a chain.

    Raises:
        ConfigurationError: If burn_in is negative or leaves no draws.
    """
    if burn_in < 0:
        raise ConfigurationError(f"burn_in must be >= 0, got {burn_in}")
    if burn_in >= len(trace):
        raise ConfigurationError(
            f"burn_in ({burn_in}) must be smaller than the chain length ({len(trace)})"
        )
    return trace.select(slice(burn_in, None))


def concatenate_chains(traces: Sequence[ChainTrace]) -> ChainTrace:
    """Stack the draws of several chains into one trace (chain order preserved).

    Raises:
        ConfigurationError: If no traces are given.
        InvalidParameterError: If the chains disagree in shape.
    """
    if len(traces) == 0:
        raise ConfigurationError("need at least one chain to concatenate")

    first = traces[0]
    for i, trace in enumerate(traces[1:], start=1):
        if trace.paths.shape[1:] != first.paths.shape[1:]:
            raise InvalidParameterError(
                f"chain {i} has {trace.n_timesteps} time steps, chain 0 has {first.n_timesteps}"
            )
        if trace.emission_params.shape[1:] != first.emission_params.shape[1:] or (
            trace.n_states != first.n_states
        ):
            raise InvalidParameterError(f"chain {i} parameter shapes differ from chain 0")

    return ChainTrace(
        paths=np.concatenate([t.paths for t in traces]),
        trans_mat=np.concatenate([t.trans_mat for t in traces]),
        start_prob=np.concatenate([t.start_prob for t in traces]),
        emission_params=np.concatenate([t.emission_params for t in traces]),
    )


def thin(trace: ChainTrace, stride: int) -> ChainTrace:
    """Keep every ``stride``-th draw, starting with the first."""
    if stride < 1:
        raise ConfigurationError(f"stride must be >= 1, got {stride}")
    return trace.select(slice(None, None, stride))


def autocorrelation(x: np.ndarray, max_lag: int) -> np.ndarray:
    """Compute the sample autocorrelation function of a 1D series.

    Uses the biased autocovariance estimate

        γ(k) = (1/n) * Σ_{t=k}^{n-1} (x_t - x̄)(x_{t-k} - x̄)

    and returns ρ(k) = γ(k) / γ(0) for k = 0, 1, ..., max_lag.

    Args:
        x: 1D series, shape (n,).
        max_lag: Maximum lag. Must satisfy 0 <= max_lag < n.

    Returns:
        Array [ρ(0), ..., ρ(max_lag)], shape (max_lag+1,). A constant series
        has no defined autocorrelation and yields all zeros.

    Example:
        >>> autocorrelation(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), max_lag=2)
        array([1. , 0.4, -0.1])
    """
    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise InvalidParameterError(f"x must be 1D array, got shape {x.shape}")
    n = len(x)
    if max_lag < 0:
        raise ConfigurationError(f"max_lag must be >= 0, got {max_lag}")
    if max_lag >= n:
        raise ConfigurationError(f"max_lag must be < n={n}, got {max_lag}")

    x_centered = x - np.mean(x)
    gamma = np.zeros(max_lag + 1)
    for k in range(max_lag + 1):
        gamma[k] = np.dot(x_centered[k:], x_centered[: n - k]) / n

    if abs(gamma[0]) < 1e-12:
        return np.zeros(max_lag + 1)
    return gamma / gamma[0]


def trace_autocorrelation(trace: ChainTrace, max_lag: int) -> Dict[str, np.ndarray]:
    """Autocorrelation of every scalar parameter in a trace.

    Args:
        trace: Chain (or post-processed) trace.
        max_lag: Maximum lag.

    Returns:
        Dict mapping "trans_mat", "start_prob" and "emission_params" to
        arrays of shape (max_lag+1, n_components), components flattened in
        row-major order.
    """
    result = {}
    for name, values in trace.scalar_parameters().items():
        result[name] = np.column_stack(
            [autocorrelation(values[:, j], max_lag) for j in range(values.shape[1])]
        )
    return result


def select_thinning(trace: ChainTrace, threshold: float = 0.1, max_lag: int = 50) -> int:
    """Smallest stride whose autocorrelation is below ``threshold`` for every parameter.

    Looks at the largest absolute autocorrelation across all scalar
    parameters at each lag 1..max_lag and returns the first lag where it
    falls below ``threshold``. If none does, returns ``max_lag`` and logs a
    warning.

    Args:
        trace: Post burn-in draws of a single chain.
        threshold: Autocorrelation considered negligible.
        max_lag: Largest stride considered (capped at len(trace) - 1).

    Returns:
        Thinning stride >= 1.
    """
    if not 0 < threshold < 1:
        raise ConfigurationError(f"threshold must be in (0, 1), got {threshold}")
    if len(trace) < 2:
        return 1
    max_lag = min(max_lag, len(trace) - 1)
    if max_lag < 1:
        raise ConfigurationError(f"max_lag must be >= 1, got {max_lag}")

    acfs = trace_autocorrelation(trace, max_lag)
    worst = np.max(np.abs(np.column_stack(list(acfs.values()))), axis=1)
    below = np.nonzero(worst[1:] < threshold)[0]
    if len(below) == 0:
        logger.warning(
            "Autocorrelation still %.3f at lag %d; using stride %d", worst[-1], max_lag, max_lag
        )
        return max_lag
    return int(below[0]) + 1


def postprocess(traces: Sequence[ChainTrace], burn_in: int, stride: int = 1) -> ChainTrace:
    """Discard burn-in from each chain, concatenate the chains, and thin.

    Args:
        traces: Raw per-chain traces.
        burn_in: Draws removed from the start of every chain.
        stride: Thinning stride applied after concatenation.

    Returns:
        The final posterior sample collection.
    """
    kept = [discard_burn_in(trace, burn_in) for trace in traces]
    combined = concatenate_chains(kept)
    result = thin(combined, stride)
    logger.info(
        "Posterior: %d chains, burn-in %d, stride %d -> %d draws",
        len(traces),
        burn_in,
        stride,
        len(result),
    )
    return result


def state_probability(paths: np.ndarray, label: int, n_states: Optional[int] = None) -> np.ndarray:
    """Fraction of sampled paths in state ``label`` at each time index.

    Args:
        paths: Sampled state paths, shape (K, T).
        label: State index.
        n_states: Number of states M. If given, ``label`` must be below it.

    Returns:
        Array of shape (T,) with values in [0, 1].
    """
    paths = np.asarray(paths)
    if paths.ndim != 2 or paths.shape[0] == 0:
        raise InvalidParameterError(f"paths must be a non-empty (K, T) array, got shape {paths.shape}")
    if label < 0 or (n_states is not None and label >= n_states):
        raise InvalidParameterError(f"label {label} out of range for {n_states} states")
    return np.mean(paths == label, axis=0)


def gelman_rubin(traces: Sequence[ChainTrace]) -> Dict[str, np.ndarray]:
    """Potential scale reduction factor R-hat for every scalar parameter.

    Compares between-chain and within-chain variance; values close to 1
    indicate that the chains sample the same distribution.

    Args:
        traces: Two or more chains of equal length (at least 2 draws each),
            normally with burn-in already removed.

    Returns:
        Dict mapping parameter block names to R-hat arrays of shape
        (n_components,). Components that are constant in every chain get 1.0.
    """
    if len(traces) < 2:
        raise ConfigurationError(f"gelman_rubin needs at least 2 chains, got {len(traces)}")
    n = len(traces[0])
    if any(len(t) != n for t in traces):
        raise InvalidParameterError("all chains must have the same number of draws")
    if n < 2:
        raise ConfigurationError(f"need at least 2 draws per chain, got {n}")

    blocks = [t.scalar_parameters() for t in traces]
    result = {}
    for name in blocks[0]:
        # (n_chains, n, n_components)
        values = np.stack([b[name] for b in blocks])
        chain_means = np.mean(values, axis=1)
        within = np.mean(np.var(values, axis=1, ddof=1), axis=0)
        between = n * np.var(chain_means, axis=0, ddof=1)
        var_hat = (n - 1) / n * within + between / n
        with np.errstate(divide="ignore", invalid="ignore"):
            r_hat = np.sqrt(var_hat / within)
        # np.var of a constant float column is rounding noise, not exactly 0
        constant = np.ptp(values, axis=(0, 1)) == 0
        r_hat = np.where(constant, 1.0, r_hat)
        result[name] = r_hat
    return result


def effective_sample_size(x: np.ndarray, max_lag: Optional[int] = None) -> float:
    """Effective sample size of a single chain's draws of one scalar.

    ESS = n / (1 + 2 Σ_k ρ(k)), truncating the sum with Geyer's initial
    positive sequence: lags are summed in pairs (ρ(2m-1) + ρ(2m)) until a
    pair becomes non-positive.

    Args:
        x: 1D series of draws, shape (n,).
        max_lag: Largest lag considered. Defaults to n - 1.

    Returns:
        Effective sample size. A constant series returns n.
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    if n < 2:
        return float(n)
    if max_lag is None:
        max_lag = n - 1
    max_lag = min(max_lag, n - 1)

    rho = autocorrelation(x, max_lag)
    if rho[0] == 0.0:
        return float(n)

    tau = 1.0
    for m in range(1, (max_lag + 1) // 2 + 1):
        lo = 2 * m - 1
        pair = rho[lo] + (rho[lo + 1] if lo + 1 <= max_lag else 0.0)
        if pair <= 0:
            break
        tau += 2.0 * pair
    return float(n / tau)


def ljung_box(x: np.ndarray, lags: Optional[int] = None) -> Tuple[float, float]:
    """Ljung-Box test for autocorrelation in a series of draws.

    Tests the null hypothesis that the series is independently distributed.
    Used on thinned draws to check that the chosen stride removed the serial
    dependence.

    Q = n(n+2) * Σ_{k=1}^m [ρ(k)² / (n-k)],   Q ~ χ²(m) under the null.

    Args:
        x: 1D series, shape (n,).
        lags: Number of lags m. If None, uses min(10, n // 5).

    Returns:
        Tuple of (statistic, pvalue).

    Example:
        >>> rng = np.random.default_rng(0)
        >>> stat, pval = ljung_box(rng.normal(size=200), lags=10)
        >>> pval > 0.05
        True
    """
    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise InvalidParameterError(f"x must be 1D array, got shape {x.shape}")
    n = len(x)
    if n < 2:
        raise ConfigurationError(f"Need at least 2 draws, got {n}")

    if lags is None:
        lags = min(10, n // 5)
    if lags < 1:
        raise ConfigurationError(f"lags must be >= 1, got {lags}")
    if lags >= n:
        raise ConfigurationError(f"lags must be < n={n}, got {lags}")

    rho = autocorrelation(x, lags)
    k = np.arange(1, lags + 1)
    q = float(n * (n + 2) * np.sum(rho[1:] ** 2 / (n - k)))
    pvalue = float(stats.chi2.sf(q, df=lags))
    return q, pvalue
