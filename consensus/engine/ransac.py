"""RANSAC implementation for robust estimation."""

import logging
import math
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from consensus.config import DEFAULT_CONFIG, merge_config, resolve_threshold
from consensus.engine.sampling import UniformSampler
from consensus.errors import (
    ConfigurationError,
    ConsensusError,
    DegenerateDataError,
    InsufficientDataError,
    NoConsensusError,
    Status,
)
from consensus.problems.base import SampleConsensusProblem
from consensus.result import ConsensusResult
from consensus.threshold import ThresholdModel
from consensus.utils.metrics import PerformanceMetrics

logger = logging.getLogger(__name__)

_EMPTY = np.zeros(0, dtype=np.intp)


def adaptive_iteration_bound(inlier_ratio: float, sample_size: int,
                             probability: float) -> int:
    """
    Iterations needed to draw one all-inlier sample with the given probability.

    Computes ``ceil(log(1 - p) / log(1 - w**k))``. A zero ratio (or one so
    small that ``w**k`` vanishes) gives ``sys.maxsize``, i.e. no bound.

    Args:
        inlier_ratio: Current inlier-ratio estimate w in [0, 1]
        sample_size: Minimal sample size k
        probability: Desired success probability p in (0, 1)

    Returns:
        Required iteration count, at least 1
    """
    if not 0.0 < probability < 1.0:
        raise ValueError(f"probability must be in (0, 1), got {probability}")
    if not 0.0 <= inlier_ratio <= 1.0:
        raise ValueError(f"inlier ratio must be in [0, 1], got {inlier_ratio}")

    all_inlier = inlier_ratio ** sample_size
    if all_inlier >= 1.0:
        return 1
    denominator = math.log(1.0 - all_inlier)
    if denominator == 0.0:
        return sys.maxsize
    bound = math.ceil(math.log(1.0 - probability) / denominator)
    return max(1, min(bound, sys.maxsize))


@dataclass
class Candidate:
    """A scored hypothesis."""

    hypothesis: Any
    consensus: np.ndarray
    score: float
    residuals: np.ndarray

    @property
    def size(self) -> int:
        return int(len(self.consensus))

    def beats(self, size: int, score: float) -> bool:
        """Larger consensus wins; equal sizes go to the smaller summed residual."""
        if self.size == 0:
            return False
        if self.size != size:
            return self.size > size
        return self.score < score


@dataclass
class IterationState:
    """Mutable per-run bookkeeping owned by the engine."""

    max_iterations: int
    iteration: int = 0
    best: Optional[Candidate] = None
    consecutive_degenerate: int = 0
    degenerate_total: int = 0

    @property
    def best_consensus_size(self) -> int:
        return self.best.size if self.best is not None else 0

    @property
    def best_score(self) -> float:
        return self.best.score if self.best is not None else math.inf


class Ransac:
    """
    Generic RANSAC engine driven through a SampleConsensusProblem.

    Each call to `run` is one independent run: its iteration state is created
    at the start and dropped at the end. The random generator is owned by the
    engine, so concurrent runs need separate engines.
    """

    def __init__(self, problem: SampleConsensusProblem, threshold: float = 1.0,
                 probability: float = 0.99, max_iterations: int = 1000,
                 max_degenerate_samples: int = 50, time_budget: Optional[float] = None,
                 refine: bool = True, rng: Optional[np.random.Generator] = None,
                 seed: Optional[int] = None):
        """
        Initialize the engine.

        Args:
            problem: Problem adapter to estimate
            threshold: Residual cutoff; residuals strictly below it are inliers
            probability: Desired probability of drawing an all-inlier sample
            max_iterations: Upper bound on evaluated samples
            max_degenerate_samples: Consecutive degenerate draws tolerated
            time_budget: Optional wall-clock budget in seconds (soft stop)
            refine: Pass the winner once through problem.refine
            rng: Random generator; built from seed when omitted
            seed: Seed used when rng is not given
        """
        if not 0.0 < probability < 1.0:
            raise ConfigurationError(f"probability must be in (0, 1), got {probability}")
        if int(max_iterations) < 1:
            raise ConfigurationError(f"max_iterations must be positive, got {max_iterations}")
        if int(max_degenerate_samples) < 1:
            raise ConfigurationError(
                f"max_degenerate_samples must be positive, got {max_degenerate_samples}"
            )
        if time_budget is not None and time_budget <= 0:
            raise ConfigurationError(f"time_budget must be positive, got {time_budget}")
        try:
            self.threshold_model = ThresholdModel(threshold)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        self.problem = problem
        self.threshold = self.threshold_model.cutoff
        self.probability = float(probability)
        self.max_iterations = int(max_iterations)
        self.max_degenerate_samples = int(max_degenerate_samples)
        self.time_budget = time_budget
        self.refine = refine
        self.seed = seed
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    @classmethod
    def from_config(cls, problem: SampleConsensusProblem,
                    config: Optional[Dict[str, Any]] = None, **kwargs):
        """Build an engine from a config dictionary; kwargs win over config."""
        config = merge_config(DEFAULT_CONFIG, config or {})
        section = config["ransac"]
        params = dict(
            threshold=resolve_threshold(config),
            probability=section["probability"],
            max_iterations=section["max_iterations"],
            max_degenerate_samples=section["max_degenerate_samples"],
            time_budget=section["time_budget"],
            refine=section["refine"],
            seed=section["seed"],
        )
        params.update(cls._extra_config(config))
        params.update(kwargs)
        return cls(problem, **params)

    @classmethod
    def _extra_config(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def estimate(self) -> ConsensusResult:
        """Run and raise the matching ConsensusError on failure."""
        return self.run().raise_for_status()

    def run(self) -> ConsensusResult:
        """
        Execute one consensus run.

        Returns:
            ConsensusResult with a definite status; never raises ConsensusError
        """
        metrics = PerformanceMetrics()
        metrics.start_timer('run')

        n = int(self.problem.correspondence_count())
        k = int(self.problem.minimal_sample_size())
        state = IterationState(max_iterations=self.max_iterations)

        if n < k:
            error = InsufficientDataError(
                f"{n} correspondences, minimal sample needs {k}"
            )
            logger.warning("Aborting run: %s", error)
            return self._failure(state, error, metrics)

        sampler = self._make_sampler(n, k)
        logger.info("%s run: N=%d, k=%d, threshold=%g, max_iterations=%d",
                    type(self).__name__, n, k, self.threshold, self.max_iterations)

        try:
            self._search(state, sampler, n, k, metrics)
        except DegenerateDataError as e:
            logger.warning("Aborting run after %d iterations: %s", state.iteration, e)
            return self._failure(state, e, metrics)

        if state.best_consensus_size == 0:
            error = NoConsensusError(
                f"no hypothesis reached consensus in {state.iteration} iterations"
            )
            logger.warning("%s", error)
            return self._failure(state, error, metrics)

        return self._success(state, n, metrics)

    def _make_sampler(self, n: int, k: int):
        return UniformSampler(n, k)

    def _search(self, state: IterationState, sampler, n: int, k: int,
                metrics: PerformanceMetrics):
        while not self._should_stop(state, n, metrics):
            sample = sampler.draw(self.rng)
            degenerate, candidate = self._evaluate_sample(sample, n)
            self._record(state, degenerate, candidate, n, k)

    def _should_stop(self, state: IterationState, n: int,
                     metrics: PerformanceMetrics) -> bool:
        if state.iteration >= state.max_iterations:
            return True
        if state.best_consensus_size >= n:
            logger.debug("All %d correspondences agree, stopping early", n)
            return True
        if self.time_budget is not None and metrics.elapsed('run') >= self.time_budget:
            logger.info("Time budget of %.3fs reached after %d iterations",
                        self.time_budget, state.iteration)
            return True
        return False

    def _hypotheses_for(self, sample: np.ndarray) -> List[Any]:
        if not self.problem.is_sample_good(sample):
            return []
        try:
            hypotheses = self.problem.generate_hypotheses(sample)
        except np.linalg.LinAlgError as e:
            logger.debug("Solver failed on sample %s: %s", sample.tolist(), e)
            return []
        return list(hypotheses) if hypotheses is not None else []

    def _score(self, hypothesis: Any, n: int) -> Optional[Candidate]:
        if not self.problem.is_valid_hypothesis(hypothesis):
            return None
        residuals = np.asarray(self.problem.compute_residuals(hypothesis), dtype=np.float64)
        if residuals.shape != (n,):
            raise ValueError(
                f"compute_residuals returned shape {residuals.shape}, expected ({n},)"
            )
        consensus = self.threshold_model.consensus(residuals)
        return Candidate(hypothesis, consensus, float(np.sum(residuals[consensus])), residuals)

    def _evaluate_sample(self, sample: np.ndarray, n: int) -> Tuple[bool, Optional[Candidate]]:
        """
        Score every hypothesis from one sample.

        Returns:
            (degenerate, best candidate of the sample or None)
        """
        hypotheses = self._hypotheses_for(sample)
        if not hypotheses:
            return True, None

        best = None
        for hypothesis in hypotheses:
            candidate = self._score(hypothesis, n)
            if candidate is None:
                continue
            if best is None or candidate.beats(best.size, best.score):
                best = candidate
        return False, best

    def _record(self, state: IterationState, degenerate: bool,
                candidate: Optional[Candidate], n: int, k: int):
        if degenerate:
            state.consecutive_degenerate += 1
            state.degenerate_total += 1
            if state.consecutive_degenerate >= self.max_degenerate_samples:
                raise DegenerateDataError(
                    f"{state.consecutive_degenerate} consecutive degenerate samples"
                )
            return

        state.consecutive_degenerate = 0
        state.iteration += 1
        if candidate is not None:
            self.propose_candidate(state, candidate, n, k)

    def propose_candidate(self, state: IterationState, candidate: Candidate,
                          n: int, k: int) -> bool:
        """
        Offer a candidate to the iteration state.

        The adaptive iteration bound is recomputed whenever the best consensus
        grows and only ever lowered.

        Returns:
            True if the candidate replaced the best one
        """
        if not candidate.beats(state.best_consensus_size, state.best_score):
            return False

        grew = candidate.size > state.best_consensus_size
        state.best = candidate
        if grew:
            bound = adaptive_iteration_bound(candidate.size / n, k, self.probability)
            if bound < state.max_iterations:
                logger.debug("Iteration %d: %d/%d inliers, bound lowered %d -> %d",
                             state.iteration, candidate.size, n, state.max_iterations, bound)
                state.max_iterations = bound
        return True

    def _polish(self, best: Candidate, n: int) -> Candidate:
        if not self.refine:
            return best
        try:
            refined = self.problem.refine(best.hypothesis, best.consensus)
        except np.linalg.LinAlgError as e:
            logger.debug("Refinement failed, keeping unrefined hypothesis: %s", e)
            return best
        candidate = self._score(refined, n)
        if candidate is None or candidate.size < best.size:
            logger.debug("Refined hypothesis rejected")
            return best
        return candidate

    def _success(self, state: IterationState, n: int,
                 metrics: PerformanceMetrics) -> ConsensusResult:
        best = self._polish(state.best, n)
        result = ConsensusResult(
            hypothesis=best.hypothesis,
            consensus_set=best.consensus,
            iterations_used=state.iteration,
            status=Status.OK,
            residuals=best.residuals,
            elapsed_ms=metrics.stop_timer('run'),
            degenerate_samples=state.degenerate_total,
        )
        logger.info("Run finished: %d/%d inliers after %d iterations, "
                    "%d degenerate samples skipped (%.1f ms)",
                    result.num_inliers, n, result.iterations_used,
                    result.degenerate_samples, result.elapsed_ms)
        return self._annotate(result)

    def _failure(self, state: IterationState, error: ConsensusError,
                 metrics: PerformanceMetrics) -> ConsensusResult:
        best = state.best
        result = ConsensusResult(
            hypothesis=best.hypothesis if best is not None else None,
            consensus_set=best.consensus if best is not None else _EMPTY,
            iterations_used=state.iteration,
            status=error.status,
            residuals=best.residuals if best is not None else None,
            message=str(error),
            elapsed_ms=metrics.stop_timer('run'),
            degenerate_samples=state.degenerate_total,
        )
        return self._annotate(result)

    def _annotate(self, result: ConsensusResult) -> ConsensusResult:
        return result
