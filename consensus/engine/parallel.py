"""Multi-threaded RANSAC with reproducible per-iteration random streams."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

import numpy as np

from consensus.engine.grouped import GroupedRansac
from consensus.engine.ransac import Candidate, IterationState, Ransac
from consensus.errors import ConfigurationError
from consensus.problems.base import SampleConsensusProblem
from consensus.utils.metrics import PerformanceMetrics

logger = logging.getLogger(__name__)


class ParallelRansac(Ransac):
    """
    RANSAC whose samples are evaluated on a thread pool.

    Draw slot ``i`` always uses ``default_rng([seed, i])`` and outcomes are
    merged in slot order, so a fixed seed gives the same result for any
    number of workers. The iteration bound is read once per batch.
    """

    def __init__(self, problem: SampleConsensusProblem, workers: int = 4,
                 batch_size: int = 16, **kwargs):
        super().__init__(problem, **kwargs)
        if int(workers) < 1:
            raise ConfigurationError(f"workers must be positive, got {workers}")
        if int(batch_size) < 1:
            raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
        self.workers = int(workers)
        self.batch_size = int(batch_size)

    @classmethod
    def _extra_config(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        params = super()._extra_config(config)
        section = config.get("parallel", {})
        params.update(workers=section.get("workers", 4), batch_size=section.get("batch_size", 16))
        return params

    def _base_seed(self) -> int:
        if self.seed is not None:
            return int(self.seed)
        return int(self.rng.integers(0, 2 ** 63 - 1))

    def _evaluate_slot(self, slot: int, base_seed: int, sampler,
                       n: int) -> Tuple[bool, Optional[Candidate]]:
        rng = np.random.default_rng([base_seed, slot])
        return self._evaluate_sample(sampler.draw(rng), n)

    def _search(self, state: IterationState, sampler, n: int, k: int,
                metrics: PerformanceMetrics):
        base_seed = self._base_seed()
        next_slot = 0

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            while not self._should_stop(state, n, metrics):
                batch = min(self.batch_size, state.max_iterations - state.iteration)
                slots = range(next_slot, next_slot + batch)
                next_slot += batch

                outcomes = pool.map(
                    lambda slot: self._evaluate_slot(slot, base_seed, sampler, n), slots
                )
                # Workers only score samples; state is merged on this thread.
                for degenerate, candidate in outcomes:
                    self._record(state, degenerate, candidate, n, k)
                    if (state.iteration >= state.max_iterations
                            or state.best_consensus_size >= n):
                        break

        logger.debug("Parallel search used %d draw slots", next_slot)


class ParallelGroupedRansac(ParallelRansac, GroupedRansac):
    """Grouped sampling evaluated on a thread pool."""
