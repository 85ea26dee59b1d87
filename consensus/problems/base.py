"""Problem interface consumed by the consensus engines."""

from abc import ABC, abstractmethod
from typing import Any, List, Sequence

import numpy as np


class SampleConsensusProblem(ABC):
    """
    Contract for a geometric estimation problem.

    Implementations capture their correspondence set at construction time and
    never mutate it. The engine only talks to the problem through indices.
    """

    @abstractmethod
    def minimal_sample_size(self) -> int:
        """Number of correspondences needed to generate a hypothesis."""

    @abstractmethod
    def correspondence_count(self) -> int:
        """Total number of correspondences N."""

    @abstractmethod
    def generate_hypotheses(self, sample: np.ndarray) -> List[Any]:
        """
        Solve for model hypotheses from a minimal sample.

        Args:
            sample: Array of k distinct correspondence indices

        Returns:
            Zero, one or several hypotheses. An empty list marks the sample
            as degenerate and makes the engine draw another one.
        """

    @abstractmethod
    def compute_residuals(self, hypothesis: Any) -> np.ndarray:
        """Residual per correspondence, shape (N,), 0 for a perfect fit."""

    def refine(self, hypothesis: Any, inliers: np.ndarray) -> Any:
        """Polish a hypothesis using only the given inliers."""
        return hypothesis

    def is_sample_good(self, sample: np.ndarray) -> bool:
        """Cheap degeneracy pre-check run before solving."""
        return True

    def is_valid_hypothesis(self, hypothesis: Any) -> bool:
        """Reject hypotheses with non-finite parameters."""
        return _all_finite(hypothesis)


def _all_finite(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (tuple, list)):
        return all(_all_finite(v) for v in value)
    if isinstance(value, dict):
        return all(_all_finite(v) for v in value.values())
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        # Opaque objects are trusted unless the problem overrides the check.
        return True
    return bool(np.all(np.isfinite(arr)))


def as_index_array(indices: Sequence[int]) -> np.ndarray:
    """Indices as a flat int array."""
    return np.asarray(indices, dtype=np.intp).reshape(-1)
