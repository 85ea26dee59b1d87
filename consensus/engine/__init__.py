from .ransac import Ransac, IterationState, adaptive_iteration_bound
from .grouped import GroupedRansac
from .parallel import ParallelRansac, ParallelGroupedRansac
from .lmeds import LeastMedianSquares
from .sampling import UniformSampler, GroupedSampler

__all__ = [
    'Ransac', 'IterationState', 'adaptive_iteration_bound',
    'GroupedRansac', 'ParallelRansac', 'ParallelGroupedRansac',
    'LeastMedianSquares', 'UniformSampler', 'GroupedSampler',
]
