"""
Reference-pose library and cosine-similarity exercise matching.
"""

from .reference_poses import ReferencePose, ReferencePoseLibrary, get_reference_library
from .similarity import SimilarityMatcher, ExerciseMatch, cosine_similarity

__all__ = [
    'ReferencePose',
    'ReferencePoseLibrary',
    'get_reference_library',
    'SimilarityMatcher',
    'ExerciseMatch',
    'cosine_similarity',
]
