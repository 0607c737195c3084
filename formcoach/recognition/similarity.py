"""
Cosine-similarity matching of pose angle vectors against reference poses.

Scores are rescaled from cosine's [-1, 1] to [0, 1]; 1.0 means the two
normalized vectors point the same way. Used as a sanity check that the user
is performing the selected exercise, not as a form score.
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np
from pydantic import BaseModel, ConfigDict

from ..agents.exercise_criteria import ExerciseType
from ..preprocessing.angles import ANGLE_VECTOR_DIM, PoseAngleVector
from .reference_poses import ReferencePose, ReferencePoseLibrary, get_reference_library

logger = logging.getLogger(__name__)

ANGLE_SCALE_DEG: float = 180.0
DEFAULT_ELEVATION_RANGE_PX: float = 200.0

# Components 0-5 are angles, 6-7 are arm elevations
_N_ANGLE_COMPONENTS: int = 6


class ExerciseMatch(BaseModel):
    """Best-guess exercise identity for one pose."""
    model_config = ConfigDict(frozen=True)

    exercise: ExerciseType
    confidence: float
    mean_scores: dict[ExerciseType, float]


def normalize_vector(
    angles: Union[PoseAngleVector, np.ndarray],
    elevation_range_px: float = DEFAULT_ELEVATION_RANGE_PX,
) -> np.ndarray:
    """Scale angles by 180° and elevations by *elevation_range_px*.

    Elevations are clipped to ±elevation_range_px first, so every component
    ends up within [-1, 1].
    """
    vec = angles.to_array() if isinstance(angles, PoseAngleVector) else np.asarray(angles, dtype=np.float64)
    if vec.shape != (ANGLE_VECTOR_DIM,):
        raise ValueError(
            f"Expected a {ANGLE_VECTOR_DIM}-dim angle vector, got shape {vec.shape}."
        )
    out = np.empty(ANGLE_VECTOR_DIM, dtype=np.float64)
    out[:_N_ANGLE_COMPONENTS] = vec[:_N_ANGLE_COMPONENTS] / ANGLE_SCALE_DEG
    elev = np.clip(vec[_N_ANGLE_COMPONENTS:], -elevation_range_px, elevation_range_px)
    out[_N_ANGLE_COMPONENTS:] = elev / elevation_range_px
    return out


def cosine_similarity(vec1: np.ndarray, vec2: np.ndarray) -> Optional[float]:
    """Cosine of the angle between two vectors.

    Returns:
        Value in [-1, 1], or None when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors differ in length.
    """
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vectors must have same length: {a.shape} vs {b.shape}")

    mag_a = np.linalg.norm(a)
    mag_b = np.linalg.norm(b)
    if mag_a < 1e-12 or mag_b < 1e-12:
        return None

    cos = float(np.dot(a, b) / (mag_a * mag_b))
    return float(np.clip(cos, -1.0, 1.0))


class SimilarityMatcher:
    """Compares pose angle vectors with a reference library."""

    def __init__(
        self,
        library: Optional[ReferencePoseLibrary] = None,
        elevation_range_px: float = DEFAULT_ELEVATION_RANGE_PX,
    ):
        if elevation_range_px <= 0:
            raise ValueError("elevation_range_px must be positive")
        self.library = library if library is not None else get_reference_library()
        self.elevation_range_px = elevation_range_px

    def match_score(self, pose1: PoseAngleVector, pose2: PoseAngleVector) -> float:
        """Similarity in [0, 1]; a zero-magnitude vector scores 0 (no match)."""
        cos = cosine_similarity(
            normalize_vector(pose1, self.elevation_range_px),
            normalize_vector(pose2, self.elevation_range_px),
        )
        if cos is None:
            return 0.0
        return (cos + 1.0) / 2.0

    def best_match(
        self,
        angles: PoseAngleVector,
        references: Sequence[ReferencePose],
    ) -> Optional[tuple[ReferencePose, float]]:
        """Highest-scoring reference (first one wins ties), or None if empty."""
        best: Optional[tuple[ReferencePose, float]] = None
        for ref in references:
            score = self.match_score(angles, ref.angles)
            if best is None or score > best[1]:
                best = (ref, score)
        return best

    def identify_exercise(self, angles: PoseAngleVector) -> Optional[ExerciseMatch]:
        """Exercise whose phases match *angles* best on average.

        Ties keep the exercise declared first in the library; no secondary
        metric is consulted.
        """
        mean_scores: dict[ExerciseType, float] = {}
        for exercise in self.library.exercises():
            refs = self.library.for_exercise(exercise)
            if not refs:
                continue
            scores = [self.match_score(angles, ref.angles) for ref in refs]
            mean_scores[exercise] = float(np.mean(scores))

        if not mean_scores:
            return None

        best_exercise = None
        best_score = -1.0
        for exercise, score in mean_scores.items():
            if score > best_score:
                best_exercise, best_score = exercise, score

        logger.debug("Exercise identity: %s (%.3f)", best_exercise, best_score)
        return ExerciseMatch(
            exercise=best_exercise,
            confidence=best_score,
            mean_scores=mean_scores,
        )
