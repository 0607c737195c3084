"""
Per-session coaching context.

One CoachingSession owns all mutable state of one user's workout: the
smoothing buffers, the rep window, the pace counters and the audio queue.
Nothing is shared between sessions, so several can run side by side.

Frame loop (called by the pose source, 15-30 times per second):

    on_frame(snapshot)
        -> smooth -> RepCycleDetector.push
        -> rep complete? -> clear window
        -> cooldown elapsed and no speech in flight?
            -> FormRuleEngine.evaluate_window   (form verdict)
            -> SimilarityMatcher                (exercise identity check)
            -> PaceTracker.record               (pacing)
            -> speech text -> synthesizer -> FeedbackAudioQueue

State is only touched from the frame callback. Speech synthesis may be
handed to an executor; frames keep accumulating while it runs.
"""

import logging
from concurrent.futures import Executor, Future
from typing import Callable, Optional, Protocol, Union

from ..agents.exercise_criteria import ExerciseType, resolve_exercise
from ..agents.feedback import generate_speech_text
from ..agents.form_rules import FormRuleEngine, select_peak_frame
from ..agents.state import RepAnalysis, ReferenceMatch
from ..audio.queue import AudioPlayer, FeedbackAudioQueue
from ..preprocessing.angles import extract_pose_angles
from ..preprocessing.keypoints import JointSmoother, PoseSnapshot
from ..recognition.similarity import SimilarityMatcher
from .config import CoachConfig
from .pace import PaceTracker
from .rep_detection import RepCycleDetector

logger = logging.getLogger(__name__)


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str) -> Optional[str]:
        """Return an audio reference for *text*, or None if none was produced."""
        ...


class CoachingSession:
    """
    Real-time coaching for one user and one selected exercise.

    Example usage:
        session = CoachingSession("overhead_press", synthesizer=tts, player=speaker)
        for snapshot in pose_stream:
            analysis = session.on_frame(snapshot)
            if analysis is not None:
                show(analysis.feedback)
    """

    def __init__(
        self,
        exercise: Union[str, ExerciseType],
        config: Optional[CoachConfig] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        player: Optional[AudioPlayer] = None,
        executor: Optional[Executor] = None,
        on_analysis: Optional[Callable[[RepAnalysis], None]] = None,
        matcher: Optional[SimilarityMatcher] = None,
    ):
        self.config = config or CoachConfig()
        self.exercise = resolve_exercise(exercise)
        self.synthesizer = synthesizer
        self.executor = executor
        self.on_analysis = on_analysis

        self.smoother = JointSmoother(
            self.config.pose.smoothing_window, self.config.pose.confidence_threshold
        )
        self.detector = RepCycleDetector(self.config.detector)
        self.engine = FormRuleEngine(self.config.pose.confidence_threshold)
        self.matcher = matcher or SimilarityMatcher(
            elevation_range_px=self.config.similarity.elevation_range_px
        )
        self.pace = PaceTracker(self.config.pace)
        self.audio_queue = (
            FeedbackAudioQueue(player, dedup_window_s=self.config.audio.dedup_window_s)
            if player is not None else None
        )

        self.enabled = True
        self.rep_count = 0
        self._session_start_ms: Optional[float] = None
        self._last_rep_ms: Optional[float] = None
        self._pending_speech: Optional[Future] = None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        """Stop detection and drop the window and pace state.

        An in-flight speech request is not cancelled.
        """
        self.enabled = False
        self._reset_tracking()
        logger.info("Detection disabled for %s", self.exercise.value)

    def set_exercise(self, exercise: Union[str, ExerciseType]) -> None:
        """Switch exercise: reset tracking and flush queued audio."""
        self.exercise = resolve_exercise(exercise)
        self._reset_tracking()
        if self.audio_queue is not None:
            self.audio_queue.clear()
        logger.info("Exercise switched to %s", self.exercise.value)

    def _reset_tracking(self) -> None:
        self.detector.clear()
        self.smoother.reset()
        self.pace.reset()
        self.rep_count = 0
        self._session_start_ms = None
        self._last_rep_ms = None

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def on_frame(self, snapshot: PoseSnapshot) -> Optional[RepAnalysis]:
        """Feed one pose; return the analysis when it completes a rep."""
        if not self.enabled:
            return None

        if self._session_start_ms is None:
            self._session_start_ms = snapshot.timestamp

        smoothed = self.smoother.smooth(snapshot)
        if not self.detector.push(smoothed):
            return None

        # A completed cycle is consumed whether it is accepted or not, so the
        # same frames can never complete a second rep
        window = self.detector.window()
        self.detector.clear()

        now = snapshot.timestamp
        if self._last_rep_ms is not None and now - self._last_rep_ms < self.config.session.rep_cooldown_ms:
            logger.debug("Rep ignored: %.0fms after the previous one", now - self._last_rep_ms)
            return None
        if self._pending_speech is not None and not self._pending_speech.done():
            logger.debug("Rep ignored: previous feedback still in flight")
            return None

        analysis = self._analyze(window, now)
        if self.on_analysis is not None:
            self.on_analysis(analysis)
        self.deliver(analysis)
        return analysis

    def _analyze(self, window: tuple[PoseSnapshot, ...], now: float) -> RepAnalysis:
        previous = self._last_rep_ms if self._last_rep_ms is not None else self._session_start_ms
        duration = now - previous
        self._last_rep_ms = now
        self.rep_count += 1

        feedback = self.engine.evaluate_window(window, self.exercise)
        pace = self.pace.record(duration)
        match = self._cross_check(window) if self.config.session.identity_check else None
        speech = generate_speech_text(feedback, pace)

        logger.info(
            "Rep #%d (%s): quality=%s performing=%s duration=%.0fms pace=%s",
            self.rep_count, self.exercise.value, feedback.quality.value,
            feedback.is_performing_exercise, duration, pace.band.value,
        )
        if match is not None and match.identity_mismatch:
            logger.warning(
                "Rep #%d looks more like %s than %s (%.2f)",
                self.rep_count, match.identified_exercise.value,
                self.exercise.value, match.identity_confidence,
            )

        return RepAnalysis(
            rep_number=self.rep_count,
            exercise=self.exercise,
            frame_count=len(window),
            duration_ms=duration,
            feedback=feedback,
            pace=pace,
            match=match,
            speech_text=speech,
        )

    def _cross_check(self, window: tuple[PoseSnapshot, ...]) -> Optional[ReferenceMatch]:
        peak = window[select_peak_frame(window)]
        angles = extract_pose_angles(peak, self.config.pose.confidence_threshold)
        if angles is None:
            return None

        best = self.matcher.best_match(angles, self.matcher.library.for_exercise(self.exercise))
        identity = self.matcher.identify_exercise(angles)
        return ReferenceMatch(
            exercise=self.exercise,
            phase=best[0].phase if best else None,
            similarity=best[1] if best else 0.0,
            identified_exercise=identity.exercise if identity else None,
            identity_confidence=identity.confidence if identity else 0.0,
        )

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    def deliver(self, analysis: RepAnalysis) -> None:
        """Synthesize and queue the spoken feedback for *analysis*."""
        if self.synthesizer is None or self.audio_queue is None:
            return
        if self.executor is not None:
            self._pending_speech = self.executor.submit(self._speak, analysis.speech_text)
        else:
            self._speak(analysis.speech_text)

    def _speak(self, text: str) -> bool:
        """Run synthesis and enqueue the clip; failures only cost the audio."""
        try:
            audio_ref = self.synthesizer.synthesize(text)
        except Exception as exc:
            logger.warning("Speech synthesis failed - continuing without audio: %s", exc)
            return False

        if not audio_ref:
            logger.warning("Speech unavailable: synthesizer returned no audio")
            return False

        return self.audio_queue.enqueue(audio_ref, dedup_key=text)
