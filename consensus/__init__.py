"""
Consensus - robust model estimation from outlier-contaminated correspondences.
"""

from consensus.engine import (
    GroupedRansac,
    LeastMedianSquares,
    ParallelGroupedRansac,
    ParallelRansac,
    Ransac,
    adaptive_iteration_bound,
)
from consensus.errors import (
    ConfigurationError,
    ConsensusError,
    DegenerateDataError,
    InsufficientDataError,
    NoConsensusError,
    Status,
)
from consensus.problems import SampleConsensusProblem
from consensus.result import ConsensusResult
from consensus.threshold import ThresholdModel, angular_threshold, pixel_threshold

__version__ = "1.0.0"

__all__ = [
    "Ransac",
    "GroupedRansac",
    "ParallelRansac",
    "ParallelGroupedRansac",
    "LeastMedianSquares",
    "adaptive_iteration_bound",
    "SampleConsensusProblem",
    "ConsensusResult",
    "Status",
    "ConsensusError",
    "InsufficientDataError",
    "DegenerateDataError",
    "NoConsensusError",
    "ConfigurationError",
    "ThresholdModel",
    "angular_threshold",
    "pixel_threshold",
]
