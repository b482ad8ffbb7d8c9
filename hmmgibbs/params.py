"""Validated parameter record for a discrete-state HMM."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .emissions import EmissionModel
from .exceptions import InvalidParameterError
from .utils import check_stochastic


@dataclass(frozen=True)
class HMMParams:
    """One complete set of HMM parameters.

    Instances are immutable: the Gibbs sampler builds a fresh record every
    iteration instead of mutating the current one, so a chain's history can
    hold references without copying.

    Attributes:
        trans_mat: Row-stochastic transition matrix, shape (M, M), where
            ``trans_mat[j, k] = P(x_t = k | x_{t-1} = j)``.
        start_prob: Initial state distribution, shape (M,).
        emission_params: Emission parameters (e.g. the per-state means for
            Gaussian emissions).
    """

    trans_mat: np.ndarray
    start_prob: np.ndarray
    emission_params: np.ndarray

    def __post_init__(self) -> None:
        """Validate HMMParams invariants."""
        trans_mat = check_stochastic(self.trans_mat, "trans_mat")
        start_prob = check_stochastic(self.start_prob, "start_prob")

        if trans_mat.ndim != 2 or trans_mat.shape[0] != trans_mat.shape[1]:
            raise InvalidParameterError(f"trans_mat must be square, got shape {trans_mat.shape}")
        n_states = trans_mat.shape[0]
        if start_prob.shape != (n_states,):
            raise InvalidParameterError(f"start_prob shape {start_prob.shape} != ({n_states},)")

        emission_params = np.array(self.emission_params, dtype=float)
        if emission_params.ndim == 0 or emission_params.shape[0] != n_states:
            raise InvalidParameterError(
                f"emission_params first dimension must be {n_states}, "
                f"got shape {emission_params.shape}"
            )

        for arr in (trans_mat, start_prob, emission_params):
            arr.setflags(write=False)
        object.__setattr__(self, "trans_mat", trans_mat)
        object.__setattr__(self, "start_prob", start_prob)
        object.__setattr__(self, "emission_params", emission_params)

    @property
    def n_states(self) -> int:
        return self.trans_mat.shape[0]

    @classmethod
    def create(
        cls,
        trans_mat,
        start_prob,
        emission_params,
        emission: Optional[EmissionModel] = None,
    ) -> "HMMParams":
        """Build a record, additionally checking it against an emission model.

        Raises:
            InvalidParameterError: If the parameters are invalid or the
                emission model's state count disagrees with ``trans_mat``.
        """
        params = cls(trans_mat, start_prob, emission_params)
        if emission is not None:
            params.check_emission(emission)
        return params

    def check_emission(self, emission: EmissionModel) -> None:
        """Check that ``emission`` is defined over this record's states."""
        if emission.n_states != self.n_states:
            raise InvalidParameterError(
                f"emission model has {emission.n_states} states, "
                f"trans_mat has {self.n_states}"
            )
        emission.validate_params(self.emission_params)

    def replace(self, **changes) -> "HMMParams":
        """Return a new record with the given fields replaced."""
        fields = {
            "trans_mat": self.trans_mat,
            "start_prob": self.start_prob,
            "emission_params": self.emission_params,
        }
        fields.update(changes)
        return HMMParams(**fields)

    def as_dict(self) -> dict:
        return {
            "trans_mat": self.trans_mat.copy(),
            "start_prob": self.start_prob.copy(),
            "emission_params": self.emission_params.copy(),
        }
