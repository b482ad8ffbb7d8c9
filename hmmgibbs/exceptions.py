"""Error types raised by hmmgibbs.

Every error derives from :class:`HMMError` and from the builtin exception a
caller would naturally catch, so ``except ValueError`` keeps working for
parameter and configuration problems.
"""

from __future__ import annotations

from typing import Optional


class HMMError(Exception):
    """Base class for all hmmgibbs errors."""


class InvalidParameterError(HMMError, ValueError):
    """Model parameters violate a structural invariant.

    Raised at construction time for non-stochastic transition rows or initial
    distributions, negative or non-finite entries, shapes that disagree with
    the number of states, and out-of-range state indices.
    """


class NumericalUnderflowError(HMMError, ArithmeticError):
    """Every state has zero probability at some time step.

    Attributes:
        time_index: Time step at which the all-zero row was found, if known.
    """

    def __init__(self, message: str, time_index: Optional[int] = None):
        super().__init__(message)
        self.time_index = time_index


class DegenerateClusterError(HMMError, RuntimeError):
    """A state has no observations assigned during an emission update.

    Attributes:
        state: Index of the empty state.
    """

    def __init__(self, state: int):
        super().__init__(
            f"State {state} has no assigned observations; its emission "
            f"parameters have no defined posterior update."
        )
        self.state = state


class ConfigurationError(HMMError, ValueError):
    """Sampler or input configuration is unusable (e.g. zero iterations)."""
