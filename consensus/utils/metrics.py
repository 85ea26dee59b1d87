"""Run timing and consensus quality metrics."""

import numpy as np
from typing import Dict, Optional, Sequence
from time import perf_counter


class PerformanceMetrics:
    """Track named timers in milliseconds."""

    def __init__(self):
        self.start_times = {}
        self.durations = {}

    def start_timer(self, name: str):
        """Start timing an operation."""
        self.start_times[name] = perf_counter()

    def elapsed(self, name: str) -> float:
        """Seconds since the timer started, without stopping it."""
        if name not in self.start_times:
            return 0.0
        return perf_counter() - self.start_times[name]

    def stop_timer(self, name: str) -> float:
        """Stop timing and return duration in milliseconds."""
        if name not in self.start_times:
            return 0.0
        duration = self.elapsed(name) * 1000
        self.durations[name] = duration
        return duration

    def get_summary(self) -> Dict[str, float]:
        """Get summary of all timings."""
        return self.durations.copy()


class AccuracyMetrics:
    """Compare a recovered consensus set against known inliers."""

    @staticmethod
    def consensus_scores(recovered: Sequence[int], true_inliers: Sequence[int],
                         n: Optional[int] = None) -> Dict[str, float]:
        """
        Score a consensus set as a binary inlier classifier.

        Args:
            recovered: Indices the engine accepted
            true_inliers: Ground-truth inlier indices
            n: Number of correspondences; inferred from the indices when omitted

        Returns:
            Dictionary with precision, recall, f1_score and the miss counts
        """
        recovered = np.asarray(recovered, dtype=np.intp).ravel()
        true_inliers = np.asarray(true_inliers, dtype=np.intp).ravel()
        if n is None:
            n = int(max(recovered.max(initial=-1), true_inliers.max(initial=-1))) + 1

        accepted = np.zeros(n, dtype=bool)
        accepted[recovered] = True
        truth = np.zeros(n, dtype=bool)
        truth[true_inliers] = True

        hits = int(np.count_nonzero(accepted & truth))
        false_accepts = int(np.count_nonzero(accepted & ~truth))
        missed = int(np.count_nonzero(truth & ~accepted))

        precision = hits / accepted.sum() if accepted.any() else 0.0
        recall = hits / truth.sum() if truth.any() else 0.0
        f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0
        return {
            'precision': float(precision),
            'recall': float(recall),
            'f1_score': float(f1),
            'false_accepts': false_accepts,
            'missed_inliers': missed,
        }

    @staticmethod
    def residual_statistics(residuals: np.ndarray,
                            indices: Sequence[int] = None) -> Dict[str, float]:
        """Residual statistics, optionally restricted to a subset."""
        residuals = np.asarray(residuals, dtype=np.float64)
        if indices is not None:
            residuals = residuals[np.asarray(indices, dtype=np.intp)]
        if residuals.size == 0:
            return {'mean_error': 0.0, 'median_error': 0.0, 'max_error': 0.0, 'std_error': 0.0}
        return {
            'mean_error': float(np.mean(residuals)),
            'median_error': float(np.median(residuals)),
            'max_error': float(np.max(residuals)),
            'std_error': float(np.std(residuals))
        }

    @classmethod
    def evaluate_result(cls, result, true_inliers: Sequence[int]) -> Dict[str, float]:
        """Consensus scores of a ConsensusResult plus residuals over the true inliers."""
        n = None if result.residuals is None else len(result.residuals)
        report = cls.consensus_scores(result.consensus_set, true_inliers, n)
        if result.residuals is not None:
            report.update(cls.residual_statistics(result.residuals, true_inliers))
        return report
