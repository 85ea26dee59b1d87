"""2D line fitting."""

import numpy as np
from typing import List

from consensus.problems.base import SampleConsensusProblem, as_index_array


class LineFittingProblem(SampleConsensusProblem):
    """Line a*x + b*y + c = 0 with a^2 + b^2 = 1; residual is point-line distance."""

    def __init__(self, points: np.ndarray, min_separation: float = 1e-9):
        self.points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        self.min_separation = min_separation

    def minimal_sample_size(self) -> int:
        return 2

    def correspondence_count(self) -> int:
        return len(self.points)

    def generate_hypotheses(self, sample: np.ndarray) -> List[np.ndarray]:
        p1, p2 = self.points[as_index_array(sample)[:2]]
        direction = p2 - p1
        length = np.linalg.norm(direction)
        if length <= self.min_separation:
            return []
        a, b = -direction[1] / length, direction[0] / length
        return [np.array([a, b, -(a * p1[0] + b * p1[1])])]

    def compute_residuals(self, hypothesis: np.ndarray) -> np.ndarray:
        a, b, c = hypothesis
        return np.abs(self.points @ np.array([a, b]) + c)

    def refine(self, hypothesis: np.ndarray, inliers: np.ndarray) -> np.ndarray:
        """Total least squares over the inliers."""
        pts = self.points[as_index_array(inliers)]
        if len(pts) < 2:
            return hypothesis
        centroid = pts.mean(axis=0)
        _, _, Vt = np.linalg.svd(pts - centroid)
        a, b = Vt[-1]
        return np.array([a, b, -(a * centroid[0] + b * centroid[1])])
