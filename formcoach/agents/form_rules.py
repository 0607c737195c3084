"""
Deterministic form scoring, one rule set per exercise.

Every exercise follows the same contract:

1. Gate: a pass/fail test that the gross movement pattern is present. A
   failed gate ends the evaluation with ``is_performing_exercise=False`` and
   exercise-specific guidance.
2. Checks: an ordered list of threshold tests. Each failure adds one
   correction (first detected first, at most three) and drops the quality one
   tier: good -> needs_improvement -> poor. Quality never goes back up.
3. Summary: fixed text chosen only by the final quality tier.

Coordinates are image pixels, so "above" means a smaller y.
"""

import logging
from typing import Iterator, Optional, Sequence, Union

from ..preprocessing.angles import calculate_angle
from ..preprocessing.keypoints import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    NUM_KEYPOINTS,
    Keypoint,
    PoseSnapshot,
)
from .exercise_criteria import ExerciseType, resolve_exercise
from .state import MAX_CORRECTIONS, FormFeedback, FormQuality

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------
PRESS_LOCKOUT_MIN_DEG = 160.0
PRESS_MAX_LEAN_RATIO = 0.3
PRESS_SYMMETRY_RATIO = 0.2

LATERAL_LOCKED_ELBOW_DEG = 175.0
LATERAL_SHRUG_RATIO = 0.25

FRONT_MAX_LEAN_RATIO = 0.3
FRONT_SYMMETRY_RATIO = 0.15

ROTATION_ELBOW_TARGET_DEG = 90.0
ROTATION_ELBOW_TOLERANCE_DEG = 30.0
ROTATION_PINNED_RATIO = 0.3
ROTATION_MIN_FOREARM_OFFSET_PX = 20.0

CRITICAL_JOINTS = ("left_shoulder", "right_shoulder", "left_elbow", "right_elbow")


class _Joints:
    """Keypoint access for one snapshot with the engine's visibility threshold."""

    def __init__(self, snapshot: PoseSnapshot, threshold: float):
        self.snapshot = snapshot
        self.threshold = threshold

    def __getitem__(self, name: str) -> Keypoint:
        kp = self.snapshot.get(name)
        if kp is None:
            raise KeyError(name)
        return kp

    def visible(self, name: str) -> Optional[Keypoint]:
        return self.snapshot.visible(name, self.threshold)

    def elbow_angles(self) -> tuple[float, float]:
        left = calculate_angle(self["left_shoulder"], self["left_elbow"], self["left_wrist"])
        right = calculate_angle(self["right_shoulder"], self["right_elbow"], self["right_wrist"])
        return left, right

    def shoulder_width(self) -> float:
        return abs(self["right_shoulder"].x - self["left_shoulder"].x)

    def lean_ratio(self) -> Optional[float]:
        """Mean horizontal hip-shoulder offset over shoulder width.

        None when either hip is not visible or the shoulders coincide.
        """
        lh, rh = self.visible("left_hip"), self.visible("right_hip")
        width = self.shoulder_width()
        if lh is None or rh is None or width < 1e-6:
            return None
        lean = (
            abs(lh.x - self["left_shoulder"].x) + abs(rh.x - self["right_shoulder"].x)
        ) / 2.0
        return lean / width

    def wrist_height_gap(self) -> float:
        return abs(self["left_wrist"].y - self["right_wrist"].y)


class _Verdict:
    """Accumulates corrections; quality only moves down."""

    def __init__(self):
        self.quality = FormQuality.GOOD
        self.corrections: list[str] = []

    def flag(self, correction: str) -> None:
        if len(self.corrections) < MAX_CORRECTIONS:
            self.corrections.append(correction)
        self.quality = self.quality.downgrade()


class GateFailure:
    """Early result when the movement pattern is not present."""

    def __init__(self, summary: str, corrections: Sequence[str],
                 quality: FormQuality = FormQuality.NEEDS_IMPROVEMENT):
        self.summary = summary
        self.corrections = tuple(corrections)[:MAX_CORRECTIONS]
        self.quality = quality


# ============================================================================
# Per-exercise rule sets
# ============================================================================

class ExerciseRules:
    """Base rule set; subclasses define the gate, checks and summaries."""

    exercise: ExerciseType
    summaries: dict[FormQuality, str]

    def gate(self, joints: _Joints) -> Optional[GateFailure]:
        raise NotImplementedError

    def failed_checks(self, joints: _Joints) -> Iterator[str]:
        """Yield one correction per failed check, in priority order."""
        raise NotImplementedError


class OverheadPressRules(ExerciseRules):
    exercise = ExerciseType.OVERHEAD_PRESS
    summaries = {
        FormQuality.GOOD: "Great form! Your press looks solid.",
        FormQuality.NEEDS_IMPROVEMENT: "Good effort, but let's tighten up a few things.",
        FormQuality.POOR: "Let's work on your form - focus on control.",
    }

    def gate(self, joints):
        left_up = joints["left_wrist"].y < joints["left_shoulder"].y
        right_up = joints["right_wrist"].y < joints["right_shoulder"].y
        if left_up or right_up:
            return None
        return GateFailure(
            "Raise your arms overhead to perform the press.",
            ["Press your arms straight up", "Extend fully at the top"],
        )

    def failed_checks(self, joints):
        left, right = joints.elbow_angles()
        if min(left, right) < PRESS_LOCKOUT_MIN_DEG:
            yield "Fully extend your elbows at the top"

        lean = joints.lean_ratio()
        if lean is not None and lean > PRESS_MAX_LEAN_RATIO:
            yield "Engage your core - you're arching your back"

        if joints.wrist_height_gap() > joints.shoulder_width() * PRESS_SYMMETRY_RATIO:
            yield "Keep both arms at the same height"


class SideLateralRaiseRules(ExerciseRules):
    exercise = ExerciseType.SIDE_LATERAL_RAISE
    summaries = {
        FormQuality.GOOD: "Excellent! Your lateral raises look controlled.",
        FormQuality.NEEDS_IMPROVEMENT: "Not bad, but let's refine your technique.",
        FormQuality.POOR: "Let's focus on proper form.",
    }

    def gate(self, joints):
        def arm_out(side: str) -> bool:
            wrist, shoulder = joints[f"{side}_wrist"], joints[f"{side}_shoulder"]
            return abs(wrist.x - shoulder.x) > abs(wrist.y - shoulder.y)

        if arm_out("left") or arm_out("right"):
            return None
        return GateFailure(
            "Raise your arms out to the sides.",
            ["Lift arms laterally", "Go to shoulder height"],
        )

    def failed_checks(self, joints):
        left_high = joints["left_wrist"].y <= joints["left_shoulder"].y
        right_high = joints["right_wrist"].y <= joints["right_shoulder"].y
        if not (left_high and right_high):
            yield "Raise arms to shoulder height"

        # Shrugging lifts the shoulders towards the ears
        width = joints.shoulder_width()
        for side in ("left", "right"):
            ear = joints.visible(f"{side}_ear")
            if ear is None or width < 1e-6:
                continue
            if joints[f"{side}_shoulder"].y - ear.y < width * LATERAL_SHRUG_RATIO:
                yield "Relax your shoulders - don't shrug"
                break

        left, right = joints.elbow_angles()
        if max(left, right) > LATERAL_LOCKED_ELBOW_DEG:
            yield "Keep a slight bend in your elbows"


class FrontLateralRaiseRules(ExerciseRules):
    exercise = ExerciseType.FRONT_LATERAL_RAISE
    summaries = {
        FormQuality.GOOD: "Great job! Your form is on point.",
        FormQuality.NEEDS_IMPROVEMENT: "Good attempt, but let's adjust a bit.",
        FormQuality.POOR: "Let's work on maintaining better form.",
    }

    def gate(self, joints):
        left_up = joints["left_wrist"].y < joints["left_shoulder"].y
        right_up = joints["right_wrist"].y < joints["right_shoulder"].y
        if left_up or right_up:
            return None
        return GateFailure(
            "Raise your arms forward to shoulder height.",
            ["Lift arms in front", "Go to shoulder height"],
        )

    def failed_checks(self, joints):
        lean = joints.lean_ratio()
        if lean is not None and lean > FRONT_MAX_LEAN_RATIO:
            yield "Keep your torso upright - don't lean back"

        if joints.wrist_height_gap() > joints.shoulder_width() * FRONT_SYMMETRY_RATIO:
            yield "Keep both arms at the same height"


class ExternalRotationRules(ExerciseRules):
    exercise = ExerciseType.EXTERNAL_ROTATION
    summaries = {
        FormQuality.GOOD: "Perfect! Your elbow is staying at your side.",
        FormQuality.NEEDS_IMPROVEMENT: "Good attempt, but your elbow is drifting.",
        FormQuality.POOR: "Pin that elbow to your side.",
    }

    def gate(self, joints):
        lh, rh = joints.visible("left_hip"), joints.visible("right_hip")
        if lh is None or rh is None:
            return GateFailure(
                "Step back so I can see your elbows against your torso.",
                ["Step back from camera", "Keep your hips in frame"],
            )

        shoulder_y = (joints["left_shoulder"].y + joints["right_shoulder"].y) / 2.0
        hip_y = (lh.y + rh.y) / 2.0
        torso_mid_y = (shoulder_y + hip_y) / 2.0
        tolerance = abs(hip_y - shoulder_y) * ROTATION_PINNED_RATIO

        left_pinned = abs(joints["left_elbow"].y - torso_mid_y) < tolerance
        right_pinned = abs(joints["right_elbow"].y - torso_mid_y) < tolerance
        if left_pinned or right_pinned:
            return None
        return GateFailure(
            "That looks like a bicep curl, not external rotation.",
            [
                "Pin your elbow to your side",
                "Only rotate your forearm",
                "Keep upper arm still",
            ],
            quality=FormQuality.POOR,
        )

    def failed_checks(self, joints):
        left, right = joints.elbow_angles()
        if any(abs(a - ROTATION_ELBOW_TARGET_DEG) > ROTATION_ELBOW_TOLERANCE_DEG for a in (left, right)):
            yield "Keep your elbow at 90 degrees"

        # Selfie-mirrored frames: outward is smaller x for the left arm, larger x for the right
        left_out = joints["left_wrist"].x < joints["left_elbow"].x - ROTATION_MIN_FOREARM_OFFSET_PX
        right_out = joints["right_wrist"].x > joints["right_elbow"].x + ROTATION_MIN_FOREARM_OFFSET_PX
        if not (left_out or right_out):
            yield "Rotate your forearm outward"


RULES_REGISTRY: dict[ExerciseType, ExerciseRules] = {
    rules.exercise: rules
    for rules in (
        OverheadPressRules(),
        SideLateralRaiseRules(),
        FrontLateralRaiseRules(),
        ExternalRotationRules(),
    )
}


# ============================================================================
# Engine
# ============================================================================

class FormRuleEngine:
    """
    Single entry point for form evaluation across all exercises.

    Example usage:
        engine = FormRuleEngine()
        feedback = engine.evaluate_window(detector.window(), "overhead_press")
    """

    def __init__(
        self,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        registry: Optional[dict[ExerciseType, ExerciseRules]] = None,
    ):
        self.confidence_threshold = confidence_threshold
        self.registry = registry if registry is not None else RULES_REGISTRY

    def evaluate(
        self,
        snapshot: PoseSnapshot,
        exercise: Union[str, ExerciseType],
    ) -> FormFeedback:
        """Score one pose against *exercise*'s rules.

        Raises:
            ValueError: If the exercise is unknown or has no rule set.
        """
        exercise = resolve_exercise(exercise)
        rules = self.registry.get(exercise)
        if rules is None:
            raise ValueError(f"No form rules registered for '{exercise.value}'")

        visibility = self._check_visibility(snapshot, exercise)
        if visibility is not None:
            return visibility

        joints = _Joints(snapshot, self.confidence_threshold)

        failure = rules.gate(joints)
        if failure is not None:
            logger.info("Gate failed for %s: %s", exercise.value, failure.summary)
            return FormFeedback(
                exercise=exercise,
                quality=failure.quality,
                summary=failure.summary,
                corrections=failure.corrections,
                is_performing_exercise=False,
            )

        verdict = _Verdict()
        for correction in rules.failed_checks(joints):
            verdict.flag(correction)

        return FormFeedback(
            exercise=exercise,
            quality=verdict.quality,
            summary=rules.summaries[verdict.quality],
            corrections=tuple(verdict.corrections),
            is_performing_exercise=True,
        )

    def evaluate_window(
        self,
        window: Sequence[PoseSnapshot],
        exercise: Union[str, ExerciseType],
    ) -> FormFeedback:
        """Score the peak frame (highest wrists) of a rep window.

        Falls back to the middle frame when no frame carries both wrists.

        Raises:
            ValueError: If *window* is empty or the exercise is unknown.
        """
        if not window:
            raise ValueError("Cannot evaluate an empty pose window")
        return self.evaluate(window[select_peak_frame(window)], exercise)

    def _check_visibility(
        self, snapshot: PoseSnapshot, exercise: ExerciseType
    ) -> Optional[FormFeedback]:
        if snapshot.joint_count() < NUM_KEYPOINTS:
            return FormFeedback(
                exercise=exercise,
                quality=FormQuality.NEEDS_IMPROVEMENT,
                summary="I can't see you clearly - adjust your camera.",
                corrections=(
                    "Step back from camera",
                    "Ensure good lighting",
                    "Face the camera",
                ),
                is_performing_exercise=False,
            )

        if any(snapshot.visible(name, self.confidence_threshold) is None for name in CRITICAL_JOINTS):
            return FormFeedback(
                exercise=exercise,
                quality=FormQuality.NEEDS_IMPROVEMENT,
                summary="Make sure your upper body is fully visible.",
                corrections=("Step back from camera", "Frame yourself properly"),
                is_performing_exercise=False,
            )
        return None


def select_peak_frame(window: Sequence[PoseSnapshot]) -> int:
    """Index of the frame with the highest averaged wrists (middle if none)."""
    best_idx, best_y = None, None
    for i, snapshot in enumerate(window):
        left, right = snapshot.get("left_wrist"), snapshot.get("right_wrist")
        if left is None or right is None:
            continue
        y = (left.y + right.y) / 2.0
        if best_y is None or y < best_y:
            best_idx, best_y = i, y
    return best_idx if best_idx is not None else len(window) // 2
