"""
Pose preprocessing: keypoint models, smoothing and joint-angle features.
"""

from .keypoints import Keypoint, PoseSnapshot, JointSmoother, KEYPOINT_NAMES
from .angles import PoseAngleVector, calculate_angle, extract_pose_angles

__all__ = [
    'Keypoint',
    'PoseSnapshot',
    'JointSmoother',
    'KEYPOINT_NAMES',
    'PoseAngleVector',
    'calculate_angle',
    'extract_pose_angles',
]
