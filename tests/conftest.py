"""Synthetic pose builders shared by the test modules.

All coordinates are image pixels (y grows downwards) for a subject facing the
camera, shoulders 120 px apart.
"""

import math
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from formcoach.preprocessing.keypoints import KEYPOINT_NAMES, Keypoint, PoseSnapshot


# Standing, arms hanging at the sides
BASE_POSE = {
    "nose": (320, 200),
    "left_eye": (310, 190),
    "right_eye": (330, 190),
    "left_ear": (290, 200),
    "right_ear": (350, 200),
    "left_shoulder": (260, 300),
    "right_shoulder": (380, 300),
    "left_elbow": (255, 380),
    "right_elbow": (385, 380),
    "left_wrist": (250, 450),
    "right_wrist": (390, 450),
    "left_hip": (270, 500),
    "right_hip": (370, 500),
    "left_knee": (270, 650),
    "right_knee": (370, 650),
    "left_ankle": (270, 800),
    "right_ankle": (370, 800),
}


def make_pose(timestamp=0.0, overrides=None, scores=None, missing=(), score=0.9):
    """Build a PoseSnapshot from BASE_POSE.

    Args:
        overrides: {joint: (x, y)} replacing BASE_POSE positions.
        scores: {joint: score} replacing the default keypoint score.
        missing: Joints left out of the snapshot entirely.
    """
    positions = dict(BASE_POSE)
    positions.update(overrides or {})
    scores = scores or {}
    keypoints = tuple(
        Keypoint(name=name, x=positions[name][0], y=positions[name][1],
                 score=scores.get(name, score))
        for name in KEYPOINT_NAMES
        if name not in missing
    )
    return PoseSnapshot(timestamp=timestamp, keypoints=keypoints, score=score)


def press_overrides(wrist_y, bent=False):
    """Arm positions for an overhead press with both wrists at *wrist_y*.

    Straight arms keep shoulder, elbow and wrist collinear. Bent arms flare the
    elbows out to roughly 100 degrees.
    """
    if bent:
        return {
            "left_elbow": (200, wrist_y + 30),
            "left_wrist": (204.45, wrist_y),
            "right_elbow": (440, wrist_y + 30),
            "right_wrist": (435.55, wrist_y),
        }
    mid_y = (300 + wrist_y) / 2.0
    return {
        "left_elbow": (262, mid_y),
        "left_wrist": (264, wrist_y),
        "right_elbow": (378, mid_y),
        "right_wrist": (376, wrist_y),
    }


def press_rep(n_frames=45, start_ms=0.0, step_ms=66.0, low_y=400.0, high_y=250.0,
              bent=False, end_y=None):
    """One overhead press cycle: wrists rise from *low_y* to *high_y* and back.

    *end_y* lets the wrists settle off the starting height; the offset builds
    up linearly over the cycle.
    """
    drift = (end_y - low_y) if end_y is not None else 0.0
    frames = []
    for i in range(n_frames):
        phase = i / (n_frames - 1)
        lift = math.sin(math.pi * phase)
        wrist_y = low_y - (low_y - high_y) * lift + drift * phase
        frames.append(make_pose(start_ms + i * step_ms, press_overrides(wrist_y, bent)))
    return frames


def press_set(reps, n_frames=45, step_ms=66.0, rest_frames=0, start_ms=0.0, **kwargs):
    """*reps* back-to-back press cycles, each followed by *rest_frames* at rest."""
    frames = []
    t = start_ms
    for _ in range(reps):
        frames.extend(press_rep(n_frames, start_ms=t, step_ms=step_ms, **kwargs))
        t += n_frames * step_ms
        for _ in range(rest_frames):
            frames.append(make_pose(t, press_overrides(400.0)))
            t += step_ms
    return frames


@pytest.fixture
def pose_factory():
    return make_pose


@pytest.fixture
def press_cycle():
    return press_rep
