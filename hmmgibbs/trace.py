"""Containers for posterior draws produced by the Gibbs sampler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from .exceptions import InvalidParameterError
from .params import HMMParams


@dataclass(frozen=True)
class ChainTrace:
    """
    Sequence of Gibbs draws, indexed by iteration along the first axis.

    Used both for a single chain's raw output and for the post-processed
    (burned-in, concatenated, thinned) posterior sample collection.

    Attributes:
        paths: Sampled state paths, shape (K, T).
        trans_mat: Transition matrices, shape (K, M, M).
        start_prob: Initial distributions, shape (K, M).
        emission_params: Emission parameters, shape (K, M, ...).

    Example:
        >>> trace = ChainTrace(
        ...     paths=np.zeros((3, 5), dtype=int),
        ...     trans_mat=np.tile(np.eye(2), (3, 1, 1)),
        ...     start_prob=np.full((3, 2), 0.5),
        ...     emission_params=np.zeros((3, 2)),
        ... )
        >>> len(trace)
        3
    """

    paths: np.ndarray
    trans_mat: np.ndarray
    start_prob: np.ndarray
    emission_params: np.ndarray

    def __post_init__(self) -> None:
        """Validate ChainTrace invariants."""
        paths = np.asarray(self.paths, dtype=int)
        trans_mat = np.asarray(self.trans_mat, dtype=float)
        start_prob = np.asarray(self.start_prob, dtype=float)
        emission_params = np.asarray(self.emission_params, dtype=float)

        if paths.ndim != 2:
            raise InvalidParameterError(f"paths must be 2D (K, T), got shape {paths.shape}")
        if trans_mat.ndim != 3 or trans_mat.shape[1] != trans_mat.shape[2]:
            raise InvalidParameterError(
                f"trans_mat must have shape (K, M, M), got {trans_mat.shape}"
            )
        n_draws, n_states = trans_mat.shape[0], trans_mat.shape[1]
        if start_prob.shape != (n_draws, n_states):
            raise InvalidParameterError(
                f"start_prob shape {start_prob.shape} != ({n_draws}, {n_states})"
            )
        if emission_params.ndim < 2 or emission_params.shape[:2] != (n_draws, n_states):
            raise InvalidParameterError(
                f"emission_params must start with ({n_draws}, {n_states}), "
                f"got {emission_params.shape}"
            )
        if paths.shape[0] != n_draws:
            raise InvalidParameterError(
                f"paths has {paths.shape[0]} draws, parameters have {n_draws}"
            )

        object.__setattr__(self, "paths", paths)
        object.__setattr__(self, "trans_mat", trans_mat)
        object.__setattr__(self, "start_prob", start_prob)
        object.__setattr__(self, "emission_params", emission_params)

    def __len__(self) -> int:
        return self.paths.shape[0]

    @property
    def n_states(self) -> int:
        return self.trans_mat.shape[1]

    @property
    def n_timesteps(self) -> int:
        return self.paths.shape[1]

    def select(self, index) -> "ChainTrace":
        """Return a new trace holding the draws picked by ``index`` (slice or indices)."""
        return ChainTrace(
            paths=self.paths[index],
            trans_mat=self.trans_mat[index],
            start_prob=self.start_prob[index],
            emission_params=self.emission_params[index],
        )

    def draw(self, i: int) -> Tuple[np.ndarray, HMMParams]:
        """The state path and parameter record of draw ``i``."""
        params = HMMParams(self.trans_mat[i], self.start_prob[i], self.emission_params[i])
        return self.paths[i].copy(), params

    def scalar_parameters(self) -> Dict[str, np.ndarray]:
        """Each parameter block flattened to shape (K, n_components)."""
        k = len(self)
        return {
            "trans_mat": self.trans_mat.reshape(k, -1),
            "start_prob": self.start_prob.reshape(k, -1),
            "emission_params": self.emission_params.reshape(k, -1),
        }

    def posterior_mean(self) -> Dict[str, np.ndarray]:
        """Mean of every parameter block across draws."""
        return {
            "trans_mat": np.mean(self.trans_mat, axis=0),
            "start_prob": np.mean(self.start_prob, axis=0),
            "emission_params": np.mean(self.emission_params, axis=0),
        }

    def state_probability(self, label: int) -> np.ndarray:
        """Per time index, the fraction of draws whose path is in ``label``.

        Args:
            label: State index in ``0..M-1``.

        Returns:
            Array of shape (T,).
        """
        if label < 0 or label >= self.n_states:
            raise InvalidParameterError(f"label {label} out of range for {self.n_states} states")
        if len(self) == 0:
            raise InvalidParameterError("cannot compute state probabilities from an empty trace")
        return np.mean(self.paths == label, axis=0)
