"""
FormCoach: real-time exercise form coaching from pose keypoints.
"""

__version__ = "1.0.0"
