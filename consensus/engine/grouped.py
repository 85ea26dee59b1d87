"""RANSAC over correspondences partitioned into groups."""

import logging
from typing import Any, Dict, Hashable, Mapping, Optional, Sequence

import numpy as np

from consensus.engine.ransac import Ransac
from consensus.engine.sampling import GroupedSampler, validate_partition
from consensus.errors import ConfigurationError
from consensus.problems.base import SampleConsensusProblem
from consensus.result import ConsensusResult

logger = logging.getLogger(__name__)


class GroupedRansac(Ransac):
    """
    RANSAC with stratified sampling across correspondence groups.

    Groups are typically one per camera or camera pair. Minimal samples are
    spread over the groups as evenly as their sizes allow, and the result
    reports how many inliers each group contributed.
    """

    def __init__(self, problem: SampleConsensusProblem,
                 group_partition: Optional[Mapping[Hashable, Sequence[int]]] = None,
                 **kwargs):
        """
        Initialize the grouped engine.

        Args:
            problem: Problem adapter to estimate
            group_partition: Group id -> indices; must be a disjoint cover of [0, N)
            **kwargs: Forwarded to Ransac
        """
        super().__init__(problem, **kwargs)
        if group_partition is None:
            raise ConfigurationError("GroupedRansac requires a group partition")
        self.groups = validate_partition(group_partition, int(problem.correspondence_count()))

    @classmethod
    def _extra_config(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        params = super()._extra_config(config)
        partition = config.get("grouped", {}).get("partition")
        if partition is not None:
            params["group_partition"] = partition
        return params

    def _make_sampler(self, n: int, k: int) -> GroupedSampler:
        sampler = GroupedSampler(self.groups, n, k)
        if sampler.effective_groups <= 1:
            logger.debug("Single effective group, sampling uniformly")
        return sampler

    def group_inliers(self, consensus_set: np.ndarray) -> Dict[Hashable, int]:
        """Number of consensus-set members falling in each group."""
        mask = np.zeros(int(self.problem.correspondence_count()), dtype=bool)
        mask[np.asarray(consensus_set, dtype=np.intp)] = True
        return {gid: int(np.count_nonzero(mask[idx])) for gid, idx in self.groups.items()}

    def _annotate(self, result: ConsensusResult) -> ConsensusResult:
        if result.num_inliers == 0:
            return result
        result.group_inliers = self.group_inliers(result.consensus_set)
        result.starved_groups = [
            gid for gid, count in result.group_inliers.items()
            if count == 0 and self.groups[gid].size > 0
        ]
        if result.starved_groups:
            logger.warning("Groups without inliers: %s", result.starved_groups)
        return result
