"""Forward-filtering backward-sampling (FFBS) Gibbs sampler.

Each iteration of a chain runs three blocks:

1. forward recursion under the current (nu, pi, theta);
2. backward sampling of a full state path x from P(x | y, nu, pi, theta);
3. conditional draws of nu, pi and theta given x:
   - nu[j, :] ~ Dirichlet(N[j, :] + 1), N the transition counts of x;
   - pi ~ Dirichlet(n + 1), n the state occupancy counts of x;
   - theta from the emission model's conditional posterior (for Gaussian
     emissions, mu_j ~ Normal(mean(y[x == j]), sigma_j**2 / n_j)).

Chains share nothing: each :class:`GibbsChain` owns its generator and its
current parameter record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import diagnostics, inference
from .config import SamplerConfig
from .emissions import EMPTY_STATE_POLICIES, EmissionModel
from .exceptions import ConfigurationError
from .logging import get_logger
from .params import HMMParams
from .trace import ChainTrace
from .utils import check_observations, sample_dirichlet

logger = get_logger(__name__)


def transition_counts(path: np.ndarray, n_states: int) -> np.ndarray:
    """Count transitions in a state path.

    Args:
        path: State path, shape (T,).
        n_states: Number of states M.

    Returns:
        Array N of shape (M, M) with N[j, k] = #{t >= 1 : x[t-1] = j, x[t] = k}.
    """
    path = np.asarray(path, dtype=int)
    counts = np.zeros((n_states, n_states))
    np.add.at(counts, (path[:-1], path[1:]), 1.0)
    return counts


def state_counts(path: np.ndarray, n_states: int) -> np.ndarray:
    """Number of time steps spent in each state, shape (M,)."""
    return np.bincount(np.asarray(path, dtype=int), minlength=n_states).astype(float)


def gibbs_update(
    observations: np.ndarray,
    path: np.ndarray,
    params: HMMParams,
    emission: EmissionModel,
    rng: np.random.Generator,
    empty_state: str = "keep",
) -> HMMParams:
    """Draw (nu, pi, theta) from their conditional posteriors given a path.

    Uses uniform Dirichlet(1) priors on the transition rows and the initial
    distribution and the emission model's own update for theta.

    Args:
        observations: Observation sequence, shape (T,).
        path: Sampled state path, shape (T,).
        params: Current parameters (theta is kept for empty states under
            ``empty_state="keep"``).
        emission: Emission model.
        rng: Random number generator.
        empty_state: "keep" or "raise" (see EmissionModel.sample_posterior).

    Returns:
        A new HMMParams record.

    Raises:
        DegenerateClusterError: If a state is empty and empty_state="raise".
    """
    n_states = params.n_states
    trans_mat = sample_dirichlet(transition_counts(path, n_states) + 1.0, rng)
    start_prob = sample_dirichlet(state_counts(path, n_states) + 1.0, rng)
    emission_params = emission.sample_posterior(
        observations, path, params.emission_params, rng, empty_state=empty_state
    )
    return HMMParams(trans_mat, start_prob, emission_params)


class GibbsChain:
    """One independent FFBS Gibbs chain.

    Attributes:
        observations: Observation sequence, shape (T,).
        emission: Emission model.
        params: Current parameter record (replaced every step).
        path: Most recently sampled state path, or None before the first step.
        n_steps: Number of completed iterations.
    """

    def __init__(
        self,
        observations: np.ndarray,
        emission: EmissionModel,
        initial_params: HMMParams,
        rng: Optional[np.random.Generator] = None,
        empty_state: str = "keep",
        chain_id: int = 0,
    ):
        """Initialize a chain.

        Args:
            observations: Observation sequence, shape (T,).
            emission: Emission model.
            initial_params: Starting values for (nu, pi, theta).
            rng: Random number generator. If None, uses default_rng(0).
            empty_state: Policy for states with no assigned observations.
            chain_id: Label used in log messages.
        """
        self.observations = check_observations(observations)
        initial_params.check_emission(emission)
        self.emission = emission
        self.params = initial_params
        self.rng = rng if rng is not None else np.random.default_rng(0)
        if empty_state not in EMPTY_STATE_POLICIES:
            raise ConfigurationError(
                f"empty_state must be one of {EMPTY_STATE_POLICIES}, got {empty_state!r}"
            )
        self.empty_state = empty_state
        self.chain_id = chain_id
        self.path: Optional[np.ndarray] = None
        self.n_steps = 0

    def step(self) -> Tuple[np.ndarray, HMMParams]:
        """Run one forward / backward-sample / update cycle.

        Returns:
            Tuple of (path, params): the sampled path and the parameters
            drawn given it.
        """
        params = self.params
        log_lik = self.emission.log_likelihoods(self.observations, params.emission_params)
        lattice = inference.forward(log_lik, params.start_prob, params.trans_mat)
        path = inference.backward_sample(lattice.filtered, params.trans_mat, self.rng)

        self.params = gibbs_update(
            self.observations, path, params, self.emission, self.rng, self.empty_state
        )
        self.path = path
        self.n_steps += 1
        return path, self.params

    def run(self, n_iter: int, log_every: int = 1000) -> ChainTrace:
        """Run ``n_iter`` iterations and return every draw.

        Args:
            n_iter: Number of iterations K.
            log_every: DEBUG progress interval.

        Returns:
            ChainTrace with K draws.
        """
        if n_iter < 1:
            raise ConfigurationError(f"n_iter must be >= 1, got {n_iter}")
        if log_every < 1:
            raise ConfigurationError(f"log_every must be >= 1, got {log_every}")

        T = len(self.observations)
        M = self.params.n_states
        theta_shape = self.params.emission_params.shape

        paths = np.zeros((n_iter, T), dtype=int)
        trans_mat = np.zeros((n_iter, M, M))
        start_prob = np.zeros((n_iter, M))
        emission_params = np.zeros((n_iter,) + theta_shape)

        logger.info("Chain %d: starting %d iterations (T=%d, M=%d)", self.chain_id, n_iter, T, M)
        for k in range(n_iter):
            path, params = self.step()
            paths[k] = path
            trans_mat[k] = params.trans_mat
            start_prob[k] = params.start_prob
            emission_params[k] = params.emission_params
            if (k + 1) % log_every == 0:
                logger.debug(
                    "Chain %d: iteration %d/%d, emission params %s",
                    self.chain_id,
                    k + 1,
                    n_iter,
                    np.array2string(params.emission_params, precision=3),
                )
        logger.info("Chain %d: finished", self.chain_id)

        return ChainTrace(
            paths=paths,
            trans_mat=trans_mat,
            start_prob=start_prob,
            emission_params=emission_params,
        )


@dataclass
class GibbsResult:
    """
    Raw output of a multi-chain run.

    Attributes:
        chains: One ChainTrace per chain, in chain order.
        config: Configuration the run used.
    """

    chains: List[ChainTrace]
    config: SamplerConfig

    def posterior(self, burn_in: Optional[int] = None, stride: Optional[int] = None) -> ChainTrace:
        """Burned-in, concatenated and thinned posterior draws.

        Args:
            burn_in: Draws dropped per chain. Defaults to config.burn_in.
            stride: Thinning stride. Defaults to config.thin.
        """
        burn_in = self.config.burn_in if burn_in is None else burn_in
        stride = self.config.thin if stride is None else stride
        return diagnostics.postprocess(self.chains, burn_in, stride)

    def gelman_rubin(self, burn_in: Optional[int] = None) -> Dict[str, np.ndarray]:
        """R-hat across chains after discarding burn-in."""
        burn_in = self.config.burn_in if burn_in is None else burn_in
        kept = [diagnostics.discard_burn_in(chain, burn_in) for chain in self.chains]
        return diagnostics.gelman_rubin(kept)


class GibbsSampler:
    """Multi-chain driver for the FFBS Gibbs sampler.

    Example:
        >>> from hmmgibbs import GaussianEmission
        >>> observations = np.array([2.8, 3.1, 3.3, 5.2, 4.9, 5.1])
        >>> emission = GaussianEmission(n_states=2, sigma=1.0)
        >>> config = SamplerConfig(n_iter=50, burn_in=10, seed=1)
        >>> starts = overdispersed_starts(observations, n_states=2, n_chains=2)
        >>> result = GibbsSampler(emission, config).run(observations, starts)
        >>> len(result.posterior())
        80
    """

    def __init__(self, emission: EmissionModel, config: SamplerConfig):
        self.emission = emission
        self.config = config

    def chains(
        self, observations: np.ndarray, initial_params: Sequence[HMMParams]
    ) -> List[GibbsChain]:
        """Build one independently seeded chain per starting point.

        Raises:
            ConfigurationError: If the number of starting points differs
                from config.n_chains or the observation sequence is empty.
        """
        observations = check_observations(observations)
        if len(initial_params) != self.config.n_chains:
            raise ConfigurationError(
                f"expected {self.config.n_chains} initial parameter sets, "
                f"got {len(initial_params)}"
            )

        seeds = np.random.SeedSequence(self.config.seed).spawn(self.config.n_chains)
        return [
            GibbsChain(
                observations,
                self.emission,
                params,
                rng=np.random.default_rng(seed),
                empty_state=self.config.empty_state,
                chain_id=i,
            )
            for i, (params, seed) in enumerate(zip(initial_params, seeds))
        ]

    def run(self, observations: np.ndarray, initial_params: Sequence[HMMParams]) -> GibbsResult:
        """Run every chain for config.n_iter iterations.

        Args:
            observations: Observation sequence, shape (T,).
            initial_params: One starting parameter record per chain;
                deliberately over-dispersed starts make the between-chain
                diagnostics meaningful.

        Returns:
            GibbsResult with one trace per chain.
        """
        chains = self.chains(observations, initial_params)
        if self.config.n_chains < 2:
            logger.warning("Running a single chain; between-chain diagnostics are unavailable")

        traces = [chain.run(self.config.n_iter, log_every=self.config.log_every) for chain in chains]
        return GibbsResult(chains=traces, config=self.config)


def overdispersed_starts(
    observations: np.ndarray,
    n_states: int,
    n_chains: int,
    rng: Optional[np.random.Generator] = None,
    self_bias: float = 1.0,
) -> List[HMMParams]:
    """Dispersed starting values for Gaussian-emission chains.

    Means start at evenly spaced quantiles of the data, spread away from the
    sample mean by a factor that grows with the chain index and jittered, so
    successive chains start progressively further apart. Transition rows are
    drawn from Dirichlet(1 + self_bias * e_j), favouring self-transitions,
    and the initial distribution from Dirichlet(1).

    Args:
        observations: Observation sequence, shape (T,).
        n_states: Number of states M.
        n_chains: Number of starting points.
        rng: Random number generator. If None, uses default_rng(0).
        self_bias: Extra Dirichlet mass on the diagonal of the transition matrix.

    Returns:
        List of n_chains HMMParams with means sorted ascending.
    """
    if rng is None:
        rng = np.random.default_rng(0)
    observations = check_observations(observations)
    if n_states < 1:
        raise ConfigurationError(f"n_states must be >= 1, got {n_states}")
    if n_chains < 1:
        raise ConfigurationError(f"n_chains must be >= 1, got {n_chains}")

    center = np.mean(observations)
    span = np.ptp(observations)
    if span == 0:
        span = 1.0
    base = np.quantile(observations, (np.arange(n_states) + 0.5) / n_states)

    starts = []
    for c in range(n_chains):
        spread = 1.0 + c / max(n_chains - 1, 1)
        means = center + spread * (base - center) + rng.normal(0.0, 0.1 * span, n_states)
        trans_mat = sample_dirichlet(np.ones((n_states, n_states)) + self_bias * np.eye(n_states), rng)
        start_prob = sample_dirichlet(np.ones(n_states), rng)
        starts.append(HMMParams(trans_mat, start_prob, np.sort(means)))
    return starts
