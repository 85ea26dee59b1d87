from .base import SampleConsensusProblem
from .point_cloud import PointCloudAlignmentProblem
from .rotation import RotationOnlyProblem
from .homography import HomographyProblem
from .line import LineFittingProblem

__all__ = [
    'SampleConsensusProblem',
    'PointCloudAlignmentProblem',
    'RotationOnlyProblem',
    'HomographyProblem',
    'LineFittingProblem',
]
