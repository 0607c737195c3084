"""
Spoken feedback text.

The utterance mirrors what the overlay shows: the quality label followed by
the most important correction, plus the pace escalation when one fired.
"""

from typing import Optional

from .state import QUALITY_LABELS, FormFeedback, PaceAssessment

NOT_PERFORMING_TEXT = (
    "I don't see you performing the exercise. "
    "Please position yourself in view of the camera."
)


def generate_speech_text(
    feedback: FormFeedback,
    pace: Optional[PaceAssessment] = None,
) -> str:
    """Plain-text coaching utterance for external speech synthesis.

    Args:
        feedback: Form verdict for the rep.
        pace: Pace assessment; only an escalation is spoken.

    Returns:
        Text such as ``"Fair. Fully extend your elbows at the top"``.
    """
    if not feedback.is_performing_exercise:
        # Lead with the gate guidance when there is some
        if feedback.corrections:
            speech = f"{feedback.summary} {feedback.corrections[0]}."
        else:
            speech = NOT_PERFORMING_TEXT
    else:
        speech = QUALITY_LABELS[feedback.quality]
        if feedback.corrections:
            speech += f". {feedback.corrections[0]}"

    if pace is not None and pace.escalation is not None:
        speech = f"{speech.rstrip('.')}. {pace.message}"
    return speech
