"""
Keypoint and pose snapshot models for the 17-point MoveNet / COCO skeleton.

Pose estimates arrive from an external model in image-pixel coordinates
(y grows downwards). Snapshots are immutable; the only rolling state kept
here is the per-joint smoothing ring buffer.
"""

from collections import deque
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Skeleton definition (MoveNet order)
# ---------------------------------------------------------------------------
KEYPOINT_NAMES: tuple[str, ...] = (
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
)

KEYPOINT_INDICES: dict[str, int] = {name: i for i, name in enumerate(KEYPOINT_NAMES)}

NUM_KEYPOINTS: int = len(KEYPOINT_NAMES)

# Joints the angle vector and the form rules cannot do without
ARM_JOINTS: tuple[str, ...] = (
    "left_shoulder", "right_shoulder",
    "left_elbow", "right_elbow",
    "left_wrist", "right_wrist",
)

DEFAULT_CONFIDENCE_THRESHOLD: float = 0.3


class Keypoint(BaseModel):
    """One named anatomical landmark."""
    model_config = ConfigDict(frozen=True)

    name: str
    x: float
    y: float
    score: float = Field(ge=0.0, le=1.0)


class PoseSnapshot(BaseModel):
    """All keypoints of one frame, stamped in milliseconds."""
    model_config = ConfigDict(frozen=True)

    timestamp: float = Field(description="Capture time in milliseconds")
    keypoints: tuple[Keypoint, ...]
    score: float = Field(default=1.0, ge=0.0, le=1.0)

    def get(self, name: str) -> Optional[Keypoint]:
        """Return the keypoint called *name*, or None."""
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None

    def visible(
        self, name: str, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    ) -> Optional[Keypoint]:
        """Return the keypoint only if its score is above *threshold*."""
        kp = self.get(name)
        if kp is None or kp.score <= threshold:
            return None
        return kp

    def joint_count(self) -> int:
        """Number of distinct skeleton joints present in the snapshot."""
        return len({kp.name for kp in self.keypoints if kp.name in KEYPOINT_INDICES})

    @classmethod
    def from_arrays(
        cls,
        timestamp: float,
        xy: Iterable[Iterable[float]],
        scores: Optional[Iterable[float]] = None,
        pose_score: float = 1.0,
    ) -> "PoseSnapshot":
        """Build a snapshot from (17, 2) coordinates in MoveNet order."""
        coords = [tuple(p) for p in xy]
        if len(coords) != NUM_KEYPOINTS:
            raise ValueError(
                f"Expected {NUM_KEYPOINTS} keypoints, got {len(coords)}."
            )
        score_list = list(scores) if scores is not None else [1.0] * NUM_KEYPOINTS
        keypoints = tuple(
            Keypoint(name=name, x=float(x), y=float(y), score=float(s))
            for name, (x, y), s in zip(KEYPOINT_NAMES, coords, score_list)
        )
        return cls(timestamp=timestamp, keypoints=keypoints, score=pose_score)


# ---------------------------------------------------------------------------
# Smoothing
# ---------------------------------------------------------------------------

class JointSmoother:
    """Moving average over the last *window* confident positions of every joint.

    Each joint owns a ``deque(maxlen=window)``, so memory is fixed no matter
    how long the session runs. Confidence is not averaged; the latest score
    is kept so visibility gating reacts immediately. A joint that drops out
    (missing, or scored at or below *confidence_threshold*) loses its history
    and is passed through unsmoothed, so stale or garbage positions never
    leak into later frames.
    """

    def __init__(
        self,
        window: int = 3,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        if window < 1:
            raise ValueError(f"Smoothing window must be >= 1, got {window}.")
        self.window = window
        self.confidence_threshold = confidence_threshold
        self._history: dict[str, deque] = {}

    def smooth(self, snapshot: PoseSnapshot) -> PoseSnapshot:
        if self.window == 1:
            return snapshot

        present = {kp.name for kp in snapshot.keypoints}
        for name in [n for n in self._history if n not in present]:
            del self._history[name]

        smoothed = []
        for kp in snapshot.keypoints:
            if kp.score <= self.confidence_threshold:
                self._history.pop(kp.name, None)
                smoothed.append(kp)
                continue

            ring = self._history.get(kp.name)
            if ring is None:
                ring = deque(maxlen=self.window)
                self._history[kp.name] = ring
            ring.append((kp.x, kp.y))
            n = len(ring)
            x = sum(p[0] for p in ring) / n
            y = sum(p[1] for p in ring) / n
            smoothed.append(Keypoint(name=kp.name, x=x, y=y, score=kp.score))

        return PoseSnapshot(
            timestamp=snapshot.timestamp,
            keypoints=tuple(smoothed),
            score=snapshot.score,
        )

    def reset(self) -> None:
        self._history.clear()
