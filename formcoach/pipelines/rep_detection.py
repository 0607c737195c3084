"""
Repetition boundary detection over a sliding window of poses.

The detector keeps the last N snapshots and, after every push, re-evaluates a
stateless predicate on the averaged wrist height:

    1. enough frames carry both wrists,
    2. the vertical excursion exceeds a pixel threshold,
    3. the highest point (smallest image y) lies in the middle of the window,
    4. the last frames have returned close to where the first frames started.

Because the predicate looks only at the window, it can hold on several
consecutive frames for one physical rep. The detector does not debounce;
callers consume the window on completion (see ``CoachingSession``).
"""

import logging
from collections import deque
from typing import Optional, Sequence

import numpy as np

from ..preprocessing.keypoints import PoseSnapshot
from .config import DetectorConfig

logger = logging.getLogger(__name__)


def wrist_height_series(window: Sequence[PoseSnapshot]) -> np.ndarray:
    """Mean of left/right wrist y for every frame that has both wrists."""
    heights = []
    for snapshot in window:
        left = snapshot.get("left_wrist")
        right = snapshot.get("right_wrist")
        if left is None or right is None:
            continue
        heights.append((left.y + right.y) / 2.0)
    return np.asarray(heights, dtype=np.float64)


def is_rep_complete(
    window: Sequence[PoseSnapshot],
    config: Optional[DetectorConfig] = None,
) -> bool:
    """Whether *window* contains one full down-up-down wrist cycle."""
    cfg = config or DetectorConfig()
    if len(window) < cfg.min_rep_frames:
        return False

    positions = wrist_height_series(window)
    n = len(positions)
    if n < cfg.min_rep_frames:
        return False

    low, high = float(positions.min()), float(positions.max())
    if high - low < cfg.excursion_threshold_px:
        return False

    # np.argmin returns the first occurrence, same as scanning for the minimum
    peak_idx = int(np.argmin(positions))
    if not (n * cfg.peak_margin < peak_idx < n * (1.0 - cfg.peak_margin)):
        return False

    k = cfg.baseline_frames
    start_avg = float(positions[:k].mean())
    end_avg = float(positions[-k:].mean())
    return abs(end_avg - start_avg) < cfg.baseline_tolerance_px


class RepCycleDetector:
    """Fixed-capacity FIFO of poses with a per-frame completion check."""

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        self._window: deque = deque(maxlen=self.config.buffer_capacity)

    @property
    def capacity(self) -> int:
        return self.config.buffer_capacity

    def __len__(self) -> int:
        return len(self._window)

    def push(self, snapshot: PoseSnapshot) -> bool:
        """Add *snapshot* (evicting the oldest) and report rep completion.

        The window is left untouched on completion; use ``window()`` to take
        the frames for analysis and ``clear()`` to start over.
        """
        self._window.append(snapshot)
        complete = is_rep_complete(self._window, self.config)
        if complete:
            logger.debug(
                "Rep predicate satisfied (%d frames buffered)", len(self._window)
            )
        return complete

    def window(self) -> tuple[PoseSnapshot, ...]:
        """Snapshot copy of the current window, oldest first."""
        return tuple(self._window)

    def clear(self) -> None:
        self._window.clear()
