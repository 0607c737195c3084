"""
Joint-angle feature extraction.

Turns one pose snapshot into the fixed 8-dimension angle vector used by the
similarity matcher:

    [L shoulder, R shoulder, L elbow, R elbow, L hip, R hip,
     L arm elevation, R arm elevation]

Angles are in degrees (0-180), elevations in pixels. A snapshot missing any
shoulder, elbow or wrist yields no vector at all.
"""

import math
from typing import Optional, Protocol

import numpy as np
from pydantic import BaseModel, ConfigDict

from .keypoints import ARM_JOINTS, DEFAULT_CONFIDENCE_THRESHOLD, PoseSnapshot


ANGLE_VECTOR_DIM: int = 8

ANGLE_FEATURE_NAMES: tuple[str, ...] = (
    "left_shoulder_angle",
    "right_shoulder_angle",
    "left_elbow_angle",
    "right_elbow_angle",
    "left_hip_angle",
    "right_hip_angle",
    "left_arm_elevation",
    "right_arm_elevation",
)

# Offset of the virtual "straight down" point used when a hip is missing
_VERTICAL_PROBE_PX: float = 100.0
UPRIGHT_HIP_ANGLE: float = 180.0


class _Point(Protocol):
    x: float
    y: float


class _XY:
    __slots__ = ("x", "y")

    def __init__(self, x: float, y: float):
        self.x = x
        self.y = y


def calculate_angle(a: _Point, b: _Point, c: _Point) -> float:
    """Interior angle at *b* formed by a-b-c, in degrees within [0, 180].

    Uses the difference of the two direction angles (atan2) rather than the
    dot product, then reflects anything above 180 back into range.
    """
    radians = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    angle = abs(math.degrees(radians))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


class PoseAngleVector(BaseModel):
    """Geometric signature of one pose."""
    model_config = ConfigDict(frozen=True)

    left_shoulder_angle: float
    right_shoulder_angle: float
    left_elbow_angle: float
    right_elbow_angle: float
    left_hip_angle: float
    right_hip_angle: float
    left_arm_elevation: float
    right_arm_elevation: float

    def to_array(self) -> np.ndarray:
        """Components in ``ANGLE_FEATURE_NAMES`` order, shape (8,)."""
        return np.array(
            [getattr(self, name) for name in ANGLE_FEATURE_NAMES],
            dtype=np.float64,
        )

    @classmethod
    def from_array(cls, values) -> "PoseAngleVector":
        arr = np.asarray(values, dtype=np.float64).ravel()
        if arr.shape[0] != ANGLE_VECTOR_DIM:
            raise ValueError(
                f"Angle vector must have {ANGLE_VECTOR_DIM} components, "
                f"got {arr.shape[0]}."
            )
        return cls(**{name: float(v) for name, v in zip(ANGLE_FEATURE_NAMES, arr)})


def extract_pose_angles(
    snapshot: PoseSnapshot,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Optional[PoseAngleVector]:
    """Compute the 8-dimension angle vector for *snapshot*.

    Args:
        snapshot: One frame of keypoints.
        confidence_threshold: Keypoints at or below this score count as missing.

    Returns:
        PoseAngleVector, or None when any shoulder, elbow or wrist is missing.
        Missing hips do not fail extraction: the torso is assumed upright.
    """
    arm = {name: snapshot.visible(name, confidence_threshold) for name in ARM_JOINTS}
    if any(kp is None for kp in arm.values()):
        return None

    ls, rs = arm["left_shoulder"], arm["right_shoulder"]
    le, re = arm["left_elbow"], arm["right_elbow"]
    lw, rw = arm["left_wrist"], arm["right_wrist"]
    lh = snapshot.visible("left_hip", confidence_threshold)
    rh = snapshot.visible("right_hip", confidence_threshold)

    def shoulder_angle(shoulder, elbow, hip) -> float:
        anchor = hip if hip is not None else _XY(shoulder.x, shoulder.y + _VERTICAL_PROBE_PX)
        return calculate_angle(anchor, shoulder, elbow)

    def hip_angle(shoulder, hip) -> float:
        if hip is None:
            return UPRIGHT_HIP_ANGLE
        return calculate_angle(shoulder, hip, _XY(hip.x, hip.y + _VERTICAL_PROBE_PX))

    return PoseAngleVector(
        left_shoulder_angle=shoulder_angle(ls, le, lh),
        right_shoulder_angle=shoulder_angle(rs, re, rh),
        left_elbow_angle=calculate_angle(ls, le, lw),
        right_elbow_angle=calculate_angle(rs, re, rw),
        left_hip_angle=hip_angle(ls, lh),
        right_hip_angle=hip_angle(rs, rh),
        left_arm_elevation=ls.y - lw.y,
        right_arm_elevation=rs.y - rw.y,
    )
