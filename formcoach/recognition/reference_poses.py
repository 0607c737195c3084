"""
Reference poses: canonical angle signatures of good form.

Each exercise is described by three phases (start, mid, peak). The catalog is
static and built once per process; declaration order matters because it
breaks ties in exercise identification.
"""

from typing import Iterator, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..agents.exercise_criteria import ExerciseType, resolve_exercise
from ..preprocessing.angles import PoseAngleVector


class ReferencePose(BaseModel):
    """Canonical angle vector for one phase of one exercise."""
    model_config = ConfigDict(frozen=True)

    exercise: ExerciseType
    phase: str
    angles: PoseAngleVector


def _symmetric(shoulder: float, elbow: float, elevation: float, hip: float = 180.0) -> PoseAngleVector:
    return PoseAngleVector(
        left_shoulder_angle=shoulder,
        right_shoulder_angle=shoulder,
        left_elbow_angle=elbow,
        right_elbow_angle=elbow,
        left_hip_angle=hip,
        right_hip_angle=hip,
        left_arm_elevation=elevation,
        right_arm_elevation=elevation,
    )


# exercise -> [(phase, shoulder°, elbow°, elevation px)]
_REFERENCE_TABLE: dict[ExerciseType, list[tuple[str, float, float, float]]] = {
    # Weights at shoulders -> halfway -> lockout overhead
    ExerciseType.OVERHEAD_PRESS: [
        ("start", 90.0, 90.0, 0.0),
        ("mid", 120.0, 135.0, 100.0),
        ("lockout", 160.0, 170.0, 200.0),
    ],
    # Arms at sides -> 45° -> parallel to the floor, slight elbow bend kept
    ExerciseType.SIDE_LATERAL_RAISE: [
        ("start", 30.0, 160.0, -50.0),
        ("mid", 60.0, 155.0, 25.0),
        ("peak", 90.0, 150.0, 50.0),
    ],
    ExerciseType.FRONT_LATERAL_RAISE: [
        ("start", 30.0, 165.0, -50.0),
        ("mid", 60.0, 160.0, 30.0),
        ("peak", 90.0, 155.0, 60.0),
    ],
    # Elbow stays at the side and at 90°, only the forearm rotates
    ExerciseType.EXTERNAL_ROTATION: [
        ("start", 45.0, 90.0, -20.0),
        ("mid", 50.0, 90.0, -10.0),
        ("end", 55.0, 90.0, 0.0),
    ],
}


class ReferencePoseLibrary:
    """Read-only catalog of reference poses grouped by exercise."""

    def __init__(self, references: Optional[list[ReferencePose]] = None):
        if references is None:
            references = [
                ReferencePose(
                    exercise=exercise,
                    phase=phase,
                    angles=_symmetric(shoulder, elbow, elevation),
                )
                for exercise, phases in _REFERENCE_TABLE.items()
                for phase, shoulder, elbow, elevation in phases
            ]
        self._by_exercise: dict[ExerciseType, list[ReferencePose]] = {}
        for ref in references:
            self._by_exercise.setdefault(ref.exercise, []).append(ref)

    def exercises(self) -> list[ExerciseType]:
        """Exercises in declaration order."""
        return list(self._by_exercise)

    def for_exercise(self, exercise: Union[str, ExerciseType]) -> list[ReferencePose]:
        """Phases of *exercise* in order; empty when it has no references."""
        return list(self._by_exercise.get(resolve_exercise(exercise), []))

    def __iter__(self) -> Iterator[ReferencePose]:
        for refs in self._by_exercise.values():
            yield from refs

    def __len__(self) -> int:
        return sum(len(refs) for refs in self._by_exercise.values())


_DEFAULT_LIBRARY: Optional[ReferencePoseLibrary] = None


def get_reference_library() -> ReferencePoseLibrary:
    """Lazy-load and cache the built-in library."""
    global _DEFAULT_LIBRARY
    if _DEFAULT_LIBRARY is None:
        _DEFAULT_LIBRARY = ReferencePoseLibrary()
    return _DEFAULT_LIBRARY
