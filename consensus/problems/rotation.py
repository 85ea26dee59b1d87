"""Pure rotation between two sets of bearing vectors."""

import numpy as np
from typing import List

from consensus.problems.base import SampleConsensusProblem, as_index_array
from consensus.problems.point_cloud import kabsch
from consensus.threshold import bearing_residuals, normalize_rows


class RotationOnlyProblem(SampleConsensusProblem):
    """
    Estimate R with bearings_a ~= R @ bearings_b.

    Residuals are ``1 - dot(f_a, R f_b)``, so use a cutoff from
    `consensus.threshold.angular_threshold`.
    """

    def __init__(self, bearings_a: np.ndarray, bearings_b: np.ndarray,
                 min_sine: float = 1e-6):
        self.bearings_a = normalize_rows(bearings_a)
        self.bearings_b = normalize_rows(bearings_b)
        if self.bearings_a.shape != self.bearings_b.shape or self.bearings_a.shape[1] != 3:
            raise ValueError(
                f"Expected two (N, 3) arrays, got {self.bearings_a.shape} and {self.bearings_b.shape}"
            )
        self.min_sine = min_sine

    def minimal_sample_size(self) -> int:
        return 2

    def correspondence_count(self) -> int:
        return len(self.bearings_a)

    def is_sample_good(self, sample: np.ndarray) -> bool:
        f0, f1 = self.bearings_b[as_index_array(sample)[:2]]
        return bool(np.linalg.norm(np.cross(f0, f1)) > self.min_sine)

    def generate_hypotheses(self, sample: np.ndarray) -> List[np.ndarray]:
        idx = as_index_array(sample)
        R, _ = kabsch(self.bearings_b[idx], self.bearings_a[idx], with_translation=False)
        return [R]

    def compute_residuals(self, hypothesis: np.ndarray) -> np.ndarray:
        return bearing_residuals(self.bearings_a, self.bearings_b @ hypothesis.T)

    def refine(self, hypothesis: np.ndarray, inliers: np.ndarray) -> np.ndarray:
        idx = as_index_array(inliers)
        if len(idx) < 2:
            return hypothesis
        R, _ = kabsch(self.bearings_b[idx], self.bearings_a[idx], with_translation=False)
        return R
