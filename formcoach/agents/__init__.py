"""
Coaching logic for the form coach.

This module contains the exercise catalog, the deterministic per-exercise
form rules and the spoken feedback text built from their verdicts.
"""

from .exercise_criteria import ExerciseType, get_exercise_criteria, get_all_exercises
from .state import FormFeedback, FormQuality, RepAnalysis
from .form_rules import FormRuleEngine
from .feedback import generate_speech_text

__all__ = [
    "ExerciseType",
    "get_exercise_criteria",
    "get_all_exercises",
    "FormFeedback",
    "FormQuality",
    "RepAnalysis",
    "FormRuleEngine",
    "generate_speech_text",
]
