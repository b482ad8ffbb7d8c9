"""Run configuration for the Gibbs sampler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .emissions import EMPTY_STATE_POLICIES
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class SamplerConfig:
    """
    Configuration for a multi-chain FFBS Gibbs run.

    Attributes:
        n_iter: Gibbs iterations per chain (K).
        n_chains: Number of independent chains. At least two are needed for
            between-chain convergence diagnostics.
        burn_in: Draws discarded from the start of each chain by
            :meth:`GibbsResult.posterior`.
        thin: Keep every ``thin``-th draw after burn-in.
        seed: Seed for the root ``SeedSequence``; each chain gets an
            independent child stream. None draws fresh OS entropy.
        empty_state: Policy when a state has no assigned observations:
            ``"keep"`` retains its previous emission parameters,
            ``"raise"`` raises DegenerateClusterError.
        log_every: Emit a DEBUG progress line every this many iterations.
    """

    n_iter: int
    n_chains: int = 2
    burn_in: int = 0
    thin: int = 1
    seed: Optional[int] = None
    empty_state: str = "keep"
    log_every: int = 1000

    def __post_init__(self) -> None:
        """Validate SamplerConfig invariants."""
        if self.n_iter < 1:
            raise ConfigurationError(f"n_iter must be >= 1, got {self.n_iter}.")

        if self.n_chains < 1:
            raise ConfigurationError(f"n_chains must be >= 1, got {self.n_chains}.")

        if self.burn_in < 0:
            raise ConfigurationError(f"burn_in must be >= 0, got {self.burn_in}.")

        if self.burn_in >= self.n_iter:
            raise ConfigurationError(
                f"burn_in ({self.burn_in}) must be smaller than n_iter ({self.n_iter})."
            )

        if self.thin < 1:
            raise ConfigurationError(f"thin must be >= 1, got {self.thin}.")

        if self.empty_state not in EMPTY_STATE_POLICIES:
            raise ConfigurationError(
                f"empty_state must be one of {EMPTY_STATE_POLICIES}, got {self.empty_state!r}."
            )

        if self.log_every < 1:
            raise ConfigurationError(f"log_every must be >= 1, got {self.log_every}.")
