"""Threshold model: error budgets to residual cutoffs."""

import numpy as np


def angular_threshold(q: float) -> float:
    """
    Convert an angular tolerance into a bearing-residual cutoff.

    A residual defined as ``1 - dot(measured, reprojected)`` over unit
    vectors is below ``1 - cos(q)`` exactly when the angle between them is
    below ``q``.

    Args:
        q: Angular tolerance in radians, in [0, pi]

    Returns:
        Cutoff comparable to bearing residuals
    """
    if not 0.0 <= q <= np.pi:
        raise ValueError(f"angular tolerance must be in [0, pi], got {q}")
    return float(1.0 - np.cos(q))


def angular_threshold_degrees(q_deg: float) -> float:
    """Same as angular_threshold with the tolerance in degrees."""
    return angular_threshold(np.deg2rad(q_deg))


def pixel_threshold(pixel_tolerance: float, focal_length: float) -> float:
    """
    Bearing-residual cutoff for a reprojection tolerance in pixels.

    Args:
        pixel_tolerance: Accepted reprojection error in pixels
        focal_length: Assumed focal length in pixels

    Returns:
        Cutoff comparable to bearing residuals
    """
    if focal_length <= 0:
        raise ValueError("focal_length must be > 0")
    if pixel_tolerance < 0:
        raise ValueError("pixel_tolerance must be >= 0")
    return angular_threshold(np.arctan(pixel_tolerance / focal_length))


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """Scale each row to unit length."""
    vectors = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    return vectors / np.where(norms > 0, norms, 1.0)


def bearing_residuals(measured: np.ndarray, reprojected: np.ndarray) -> np.ndarray:
    """Row-wise ``1 - dot`` between two sets of bearing vectors."""
    dots = np.sum(normalize_rows(measured) * normalize_rows(reprojected), axis=1)
    return 1.0 - np.clip(dots, -1.0, 1.0)


class ThresholdModel:
    """Scalar residual cutoff shared by every problem type."""

    def __init__(self, cutoff: float):
        if not np.isfinite(cutoff) or cutoff <= 0:
            raise ValueError(f"residual threshold must be a positive finite number, got {cutoff}")
        self.cutoff = float(cutoff)

    @classmethod
    def from_angle(cls, q: float) -> "ThresholdModel":
        return cls(angular_threshold(q))

    @classmethod
    def from_pixels(cls, pixel_tolerance: float, focal_length: float) -> "ThresholdModel":
        return cls(pixel_threshold(pixel_tolerance, focal_length))

    def inlier_mask(self, residuals: np.ndarray) -> np.ndarray:
        """Mask of residuals strictly below the cutoff; NaN never counts."""
        residuals = np.asarray(residuals, dtype=np.float64)
        with np.errstate(invalid='ignore'):
            return residuals < self.cutoff

    def consensus(self, residuals: np.ndarray) -> np.ndarray:
        """Indices of residuals strictly below the cutoff."""
        return np.flatnonzero(self.inlier_mask(residuals))
