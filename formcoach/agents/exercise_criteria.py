"""
Exercise catalog for the form coach.

Lists the supported exercises in declaration order (this order also breaks
ties when the similarity matcher guesses which exercise is being performed)
together with the user-facing name, description and the form criteria the
rule engine checks.
"""

from enum import Enum
from typing import Union


class ExerciseType(str, Enum):
    OVERHEAD_PRESS = "overhead_press"
    SIDE_LATERAL_RAISE = "side_lateral_raise"
    FRONT_LATERAL_RAISE = "front_lateral_raise"
    EXTERNAL_ROTATION = "external_rotation"


# Maps exercise -> (display name, description, list of criteria)
EXERCISE_CRITERIA: dict[ExerciseType, tuple[str, str, list[str]]] = {
    ExerciseType.OVERHEAD_PRESS: (
        "Overhead Press",
        "A shoulder strengthening exercise where you press weight overhead "
        "from shoulder height to full arm extension.",
        [
            "Gate: wrists rise above the shoulders",
            "Lockout: elbows extended past 160° at the top",
            "Core: no back arch (torso lean under 30% of shoulder width)",
            "Symmetry: both wrists at the same height",
        ],
    ),
    ExerciseType.SIDE_LATERAL_RAISE: (
        "Side Lateral Raise",
        "A deltoid exercise where you raise your arms out to the sides up to "
        "shoulder height with a slight bend in the elbows.",
        [
            "Gate: arms travel out to the sides",
            "Raise height: wrists reach shoulder level",
            "Traps: shoulders stay down, no shrug",
            "Elbows: slight bend, not locked",
        ],
    ),
    ExerciseType.FRONT_LATERAL_RAISE: (
        "Front Lateral Raise",
        "A front deltoid exercise where you raise your arms straight in front "
        "of you to shoulder height.",
        [
            "Gate: wrists rise to shoulder level in front",
            "Torso: upright, no leaning back",
            "Symmetry: both arms at the same height",
        ],
    ),
    ExerciseType.EXTERNAL_ROTATION: (
        "External Rotation",
        "A rotator cuff exercise where you rotate your forearm outward while "
        "keeping your elbow at your side.",
        [
            "Gate: elbow pinned to the side of the torso",
            "Elbow angle: held near 90°",
            "Rotation: forearm swings outward",
        ],
    ),
}


def resolve_exercise(exercise: Union[str, ExerciseType]) -> ExerciseType:
    """Coerce an exercise id (e.g. ``"overhead_press"``) to ExerciseType.

    Raises:
        ValueError: If the exercise is not supported.
    """
    if isinstance(exercise, ExerciseType):
        return exercise
    try:
        return ExerciseType(str(exercise).strip().lower())
    except ValueError:
        valid = [e.value for e in ExerciseType]
        raise ValueError(f"Exercise '{exercise}' not found. Valid: {valid}") from None


def get_exercise_criteria(exercise: Union[str, ExerciseType]) -> tuple[str, list[str]]:
    """Get display name and criteria for *exercise*."""
    name, _, criteria = EXERCISE_CRITERIA[resolve_exercise(exercise)]
    return name, criteria


def get_all_exercises() -> list[dict[str, str]]:
    """Catalog entries in declaration order."""
    return [
        {"id": ex.value, "name": name, "description": description}
        for ex, (name, description, _) in EXERCISE_CRITERIA.items()
    ]
