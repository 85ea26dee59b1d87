"""Rigid alignment of two 3D point clouds."""

import numpy as np
from scipy.optimize import least_squares
from scipy.spatial.transform import Rotation
from typing import List, Optional, Tuple

from consensus.problems.base import SampleConsensusProblem, as_index_array


def kabsch(src: np.ndarray, dst: np.ndarray,
           with_translation: bool = True) -> Tuple[np.ndarray, np.ndarray]:
    """
    Least-squares rotation (and translation) mapping src onto dst.

    Args:
        src: (M, 3) points or vectors
        dst: (M, 3) points or vectors
        with_translation: Center both sets before solving

    Returns:
        (R, t) with dst ~= src @ R.T + t
    """
    src = np.asarray(src, dtype=np.float64)
    dst = np.asarray(dst, dtype=np.float64)
    if with_translation:
        src_mean = src.mean(axis=0)
        dst_mean = dst.mean(axis=0)
    else:
        src_mean = np.zeros(3)
        dst_mean = np.zeros(3)

    cov = (dst - dst_mean).T @ (src - src_mean)
    U, _, Vt = np.linalg.svd(cov)
    # Reflection guard
    D = np.diag([1.0, 1.0, np.sign(np.linalg.det(U @ Vt)) or 1.0])
    R = U @ D @ Vt
    t = dst_mean - R @ src_mean
    return R, t


def compose(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Pack a rotation and translation into a 3x4 transform."""
    return np.hstack([R, np.asarray(t, dtype=np.float64).reshape(3, 1)])


class PointCloudAlignmentProblem(SampleConsensusProblem):
    """
    Estimate T = [R|t] with points_a ~= R @ points_b + t.

    Three non-collinear correspondences determine the transform.
    """

    def __init__(self, points_a: np.ndarray, points_b: np.ndarray,
                 min_triangle_area: float = 1e-9, max_refine_iters: int = 100):
        self.points_a = np.asarray(points_a, dtype=np.float64)
        self.points_b = np.asarray(points_b, dtype=np.float64)
        if self.points_a.shape != self.points_b.shape or self.points_a.ndim != 2 \
                or self.points_a.shape[1] != 3:
            raise ValueError(
                f"Expected two (N, 3) arrays, got {self.points_a.shape} and {self.points_b.shape}"
            )
        self.min_triangle_area = min_triangle_area
        self.max_refine_iters = max_refine_iters

    def minimal_sample_size(self) -> int:
        return 3

    def correspondence_count(self) -> int:
        return len(self.points_a)

    def is_sample_good(self, sample: np.ndarray) -> bool:
        p0, p1, p2 = self.points_b[as_index_array(sample)[:3]]
        area = 0.5 * np.linalg.norm(np.cross(p1 - p0, p2 - p0))
        return bool(area > self.min_triangle_area)

    def generate_hypotheses(self, sample: np.ndarray) -> List[np.ndarray]:
        idx = as_index_array(sample)
        R, t = kabsch(self.points_b[idx], self.points_a[idx])
        return [compose(R, t)]

    def transform(self, T: np.ndarray, points: Optional[np.ndarray] = None) -> np.ndarray:
        """Apply T to points (default: points_b)."""
        points = self.points_b if points is None else points
        return points @ T[:, :3].T + T[:, 3]

    def compute_residuals(self, hypothesis: np.ndarray) -> np.ndarray:
        return np.linalg.norm(self.points_a - self.transform(hypothesis), axis=1)

    def refine(self, hypothesis: np.ndarray, inliers: np.ndarray) -> np.ndarray:
        """Minimize point-to-point distances over the inliers."""
        idx = as_index_array(inliers)
        if len(idx) < 3:
            return hypothesis
        a = self.points_a[idx]
        b = self.points_b[idx]
        x0 = np.concatenate([Rotation.from_matrix(hypothesis[:, :3]).as_rotvec(), hypothesis[:, 3]])

        def residuals(params):
            R = Rotation.from_rotvec(params[:3]).as_matrix()
            return (a - (b @ R.T + params[3:])).ravel()

        result = least_squares(residuals, x0, max_nfev=self.max_refine_iters)
        return compose(Rotation.from_rotvec(result.x[:3]).as_matrix(), result.x[3:])
