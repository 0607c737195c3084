"""
Result models produced per repetition.

FormFeedback is the form verdict for one rep; RepAnalysis bundles it with
pacing and the similarity cross-check for downstream display and speech.
All models are frozen: once a rep has been evaluated its verdict does not
change.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .exercise_criteria import ExerciseType

MAX_CORRECTIONS: int = 3


class FormQuality(str, Enum):
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs_improvement"
    POOR = "poor"

    @property
    def rank(self) -> int:
        """0 = best. Used to assert that tiers only ever move down."""
        return _QUALITY_ORDER.index(self)

    def downgrade(self) -> "FormQuality":
        """Next tier down, floored at POOR."""
        return _QUALITY_ORDER[min(self.rank + 1, len(_QUALITY_ORDER) - 1)]


_QUALITY_ORDER: tuple[FormQuality, ...] = (
    FormQuality.GOOD,
    FormQuality.NEEDS_IMPROVEMENT,
    FormQuality.POOR,
)

# Spoken labels, matching what the overlay shows
QUALITY_LABELS: dict[FormQuality, str] = {
    FormQuality.GOOD: "Good",
    FormQuality.NEEDS_IMPROVEMENT: "Fair",
    FormQuality.POOR: "Poor",
}


class FormFeedback(BaseModel):
    """Form verdict for a single repetition."""
    model_config = ConfigDict(frozen=True)

    exercise: Optional[ExerciseType] = None
    quality: FormQuality
    summary: str
    corrections: tuple[str, ...] = Field(default=(), max_length=MAX_CORRECTIONS)
    is_performing_exercise: bool


class PaceBand(str, Enum):
    HARD_FAST = "hard_fast"
    SOFT_FAST = "soft_fast"
    IDEAL = "ideal"
    SOFT_SLOW = "soft_slow"
    HARD_SLOW = "hard_slow"

    @property
    def is_fast(self) -> bool:
        return self in (PaceBand.HARD_FAST, PaceBand.SOFT_FAST)

    @property
    def is_slow(self) -> bool:
        return self in (PaceBand.SOFT_SLOW, PaceBand.HARD_SLOW)


class PaceEscalation(str, Enum):
    WARNING = "warning"
    RESTART_SUGGESTED = "restart_suggested"


class PaceState(BaseModel):
    """Consecutive same-direction deviation counters for one session."""
    consecutive_fast: int = 0
    consecutive_slow: int = 0


class PaceAssessment(BaseModel):
    """Classification of one inter-rep duration."""
    model_config = ConfigDict(frozen=True)

    duration_ms: float
    band: PaceBand
    consecutive_fast: int
    consecutive_slow: int
    escalation: Optional[PaceEscalation] = None
    message: str


class ReferenceMatch(BaseModel):
    """Similarity cross-check of the rep's peak frame."""
    model_config = ConfigDict(frozen=True)

    exercise: ExerciseType
    phase: Optional[str] = None
    similarity: float = Field(ge=0.0, le=1.0)
    identified_exercise: Optional[ExerciseType] = None
    identity_confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def identity_mismatch(self) -> bool:
        """True when the closest catalog exercise is not the selected one."""
        return (
            self.identified_exercise is not None
            and self.identified_exercise != self.exercise
        )


class RepAnalysis(BaseModel):
    """Everything known about one completed repetition."""
    model_config = ConfigDict(frozen=True)

    rep_number: int = Field(description="1-indexed rep number")
    exercise: ExerciseType
    frame_count: int
    duration_ms: Optional[float] = None
    feedback: FormFeedback
    pace: Optional[PaceAssessment] = None
    match: Optional[ReferenceMatch] = None
    speech_text: str = ""
