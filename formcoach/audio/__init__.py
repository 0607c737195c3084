"""
Serialized playback of spoken feedback.
"""

from .queue import AudioPlayer, FeedbackAudioQueue

__all__ = ['AudioPlayer', 'FeedbackAudioQueue']
