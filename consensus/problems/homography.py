"""Planar homography between two sets of image points."""

import cv2
import numpy as np
from itertools import combinations
from scipy.optimize import least_squares
from typing import List

from consensus.problems.base import SampleConsensusProblem, as_index_array


def transform_points(points: np.ndarray, H: np.ndarray) -> np.ndarray:
    """Transform points using homography matrix."""
    points_h = np.hstack([points, np.ones((points.shape[0], 1))])
    transformed = (H @ points_h.T).T
    with np.errstate(divide='ignore', invalid='ignore'):
        return transformed[:, :2] / transformed[:, 2:]


class HomographyProblem(SampleConsensusProblem):
    """
    Estimate H with dst ~= H(src).

    Minimal samples of four points are solved with a plain DLT through
    OpenCV; residuals are reprojection errors in dst units.
    """

    def __init__(self, src_points: np.ndarray, dst_points: np.ndarray,
                 min_triangle_area: float = 1e-6, max_refine_iters: int = 100):
        self.src_points = np.asarray(src_points, dtype=np.float64).reshape(-1, 2)
        self.dst_points = np.asarray(dst_points, dtype=np.float64).reshape(-1, 2)
        if len(self.src_points) != len(self.dst_points):
            raise ValueError("src_points and dst_points must have the same length")
        self.min_triangle_area = min_triangle_area
        self.max_refine_iters = max_refine_iters

    def minimal_sample_size(self) -> int:
        return 4

    def correspondence_count(self) -> int:
        return len(self.src_points)

    def is_sample_good(self, sample: np.ndarray) -> bool:
        """Reject samples with three collinear points on either side."""
        idx = as_index_array(sample)
        for points in (self.src_points[idx], self.dst_points[idx]):
            for p0, p1, p2 in combinations(points, 3):
                d1, d2 = p1 - p0, p2 - p0
                if abs(d1[0] * d2[1] - d1[1] * d2[0]) * 0.5 <= self.min_triangle_area:
                    return False
        return True

    def generate_hypotheses(self, sample: np.ndarray) -> List[np.ndarray]:
        idx = as_index_array(sample)
        H, _ = cv2.findHomography(self.src_points[idx], self.dst_points[idx], 0)
        if H is None or abs(H[2, 2]) < 1e-12:
            return []
        return [H / H[2, 2]]

    def compute_residuals(self, hypothesis: np.ndarray) -> np.ndarray:
        projected = transform_points(self.src_points, hypothesis)
        errors = np.linalg.norm(projected - self.dst_points, axis=1)
        return np.where(np.isfinite(errors), errors, np.inf)

    def refine(self, hypothesis: np.ndarray, inliers: np.ndarray) -> np.ndarray:
        """Refine homography matrix with Levenberg-Marquardt over the inliers."""
        idx = as_index_array(inliers)
        if len(idx) < 4:
            return hypothesis
        src = self.src_points[idx]
        dst = self.dst_points[idx]

        def residuals(params):
            H_opt = self._params_to_matrix(params)
            return (transform_points(src, H_opt) - dst).flatten()

        h_params = (hypothesis / hypothesis[2, 2]).flatten()[:8]
        result = least_squares(residuals, h_params, method='lm', max_nfev=self.max_refine_iters)
        return self._params_to_matrix(result.x)

    def _params_to_matrix(self, params: np.ndarray) -> np.ndarray:
        """Convert parameter vector to 3x3 matrix."""
        return np.append(params, 1).reshape(3, 3)
