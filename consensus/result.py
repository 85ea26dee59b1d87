"""Result container returned by every consensus engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional

import numpy as np

from consensus.errors import ERRORS_BY_STATUS, Status


@dataclass
class ConsensusResult:
    """Outcome of a single run.

    Failed runs still carry the best hypothesis found so far (possibly None),
    so callers can tell a weak success from finding nothing.
    """

    hypothesis: Any
    consensus_set: np.ndarray
    iterations_used: int
    status: Status
    residuals: Optional[np.ndarray] = None
    message: str = ""
    elapsed_ms: float = 0.0
    degenerate_samples: int = 0
    group_inliers: Dict[Hashable, int] = field(default_factory=dict)
    starved_groups: List[Hashable] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

    @property
    def num_inliers(self) -> int:
        return int(len(self.consensus_set))

    def inlier_mask(self, n: int) -> np.ndarray:
        """Boolean mask of length n marking the consensus set."""
        mask = np.zeros(n, dtype=bool)
        mask[self.consensus_set] = True
        return mask

    def raise_for_status(self) -> "ConsensusResult":
        """Raise the error matching a failed status, otherwise return self."""
        if self.status != Status.OK:
            raise ERRORS_BY_STATUS[self.status](self.message or self.status.value)
        return self
