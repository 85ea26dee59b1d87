"""Least Median of Squares estimation."""

import logging
from typing import Any, Dict, Optional, Tuple

import numpy as np

from consensus.engine.ransac import Candidate, IterationState, Ransac

logger = logging.getLogger(__name__)


class LeastMedianSquares(Ransac):
    """
    LMedS: keep the hypothesis with the smallest median residual.

    Needs no inlier threshold to rank hypotheses, but always spends its full
    iteration budget. The threshold only selects the final consensus set.
    """

    @classmethod
    def _extra_config(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        params = super()._extra_config(config)
        section = config.get("lmeds", {})
        if section.get("max_iterations") is not None:
            params["max_iterations"] = section["max_iterations"]
        return params

    def _score(self, hypothesis: Any, n: int) -> Optional[Candidate]:
        candidate = super()._score(hypothesis, n)
        if candidate is None:
            return None
        finite = np.where(np.isfinite(candidate.residuals), candidate.residuals, np.inf)
        candidate.score = float(np.median(finite))
        return candidate

    def _evaluate_sample(self, sample: np.ndarray, n: int) -> Tuple[bool, Optional[Candidate]]:
        hypotheses = self._hypotheses_for(sample)
        if not hypotheses:
            return True, None

        best = None
        for hypothesis in hypotheses:
            candidate = self._score(hypothesis, n)
            if candidate is not None and (best is None or candidate.score < best.score):
                best = candidate
        return False, best

    def propose_candidate(self, state: IterationState, candidate: Candidate,
                          n: int, k: int) -> bool:
        if state.best is not None and candidate.score >= state.best.score:
            return False
        logger.debug("Iteration %d: median residual %.6g", state.iteration, candidate.score)
        state.best = candidate
        return True
