"""
Rep pacing: classify the time between reps and escalate on streaks.

Bands (defaults):

    < 1000 ms         hard fast
    1000 - 1500 ms    soft fast
    1500 - 4000 ms    ideal
    4000 - 6000 ms    soft slow
    > 6000 ms         hard slow

Soft and hard deviations share one counter per direction, so three "a bit
fast" reps escalate exactly like three "too fast" ones. The band is still
reported on every assessment for consumers that want to tell them apart.
"""

import logging
from typing import Optional

from ..agents.state import PaceAssessment, PaceBand, PaceEscalation, PaceState
from .config import PaceConfig

logger = logging.getLogger(__name__)

PACE_MESSAGES: dict[PaceBand, str] = {
    PaceBand.HARD_FAST: "Too fast!",
    PaceBand.SOFT_FAST: "A bit fast",
    PaceBand.IDEAL: "Good pace",
    PaceBand.SOFT_SLOW: "A bit slow",
    PaceBand.HARD_SLOW: "Too slow!",
}


def classify_duration(duration_ms: float, config: Optional[PaceConfig] = None) -> PaceBand:
    """Map an inter-rep duration to its pace band."""
    cfg = config or PaceConfig()
    if duration_ms < cfg.hard_fast_ms:
        return PaceBand.HARD_FAST
    if duration_ms > cfg.hard_slow_ms:
        return PaceBand.HARD_SLOW
    if duration_ms < cfg.ideal_min_ms:
        return PaceBand.SOFT_FAST
    if duration_ms > cfg.ideal_max_ms:
        return PaceBand.SOFT_SLOW
    return PaceBand.IDEAL


class PaceTracker:
    """Per-session pace counters."""

    def __init__(self, config: Optional[PaceConfig] = None):
        self.config = config or PaceConfig()
        self.state = PaceState()

    def record(self, duration_ms: float) -> PaceAssessment:
        """Classify *duration_ms*, update the counters and check escalation."""
        band = classify_duration(duration_ms, self.config)

        if band.is_fast:
            self.state.consecutive_fast += 1
            self.state.consecutive_slow = 0
            streak = self.state.consecutive_fast
        elif band.is_slow:
            self.state.consecutive_slow += 1
            self.state.consecutive_fast = 0
            streak = self.state.consecutive_slow
        else:
            self.state.consecutive_fast = 0
            self.state.consecutive_slow = 0
            streak = 0

        escalation = None
        message = PACE_MESSAGES[band]
        direction = "fast" if band.is_fast else "slow"
        if streak >= self.config.restart_reps:
            escalation = PaceEscalation.RESTART_SUGGESTED
            message = (
                f"{streak} reps too {direction}. Consider restarting with guidance."
            )
        elif streak >= self.config.warning_reps:
            escalation = PaceEscalation.WARNING
            action = "slow down" if band.is_fast else "speed up"
            message = f"{streak} reps too {direction} - please {action}."

        if escalation is not None:
            logger.warning(
                "Pace escalation %s: %d consecutive %s reps (last %.0f ms)",
                escalation.value, streak, direction, duration_ms,
            )
        else:
            logger.debug("Pace %s (%.0f ms)", band.value, duration_ms)

        return PaceAssessment(
            duration_ms=duration_ms,
            band=band,
            consecutive_fast=self.state.consecutive_fast,
            consecutive_slow=self.state.consecutive_slow,
            escalation=escalation,
            message=message,
        )

    def reset(self) -> None:
        self.state = PaceState()
