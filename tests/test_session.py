"""End-to-end tests for the per-session coaching loop.

A synthetic overhead press cycle is streamed frame by frame through smoothing,
rep detection, form rules, pace tracking and the audio queue.
"""

import logging
from concurrent.futures import Executor, Future

import pytest

from conftest import make_pose, press_overrides, press_rep, press_set

from formcoach.agents.exercise_criteria import ExerciseType
from formcoach.agents.state import FormQuality, PaceBand, PaceEscalation
from formcoach.pipelines.config import CoachConfig, SessionConfig
from formcoach.pipelines.session import CoachingSession


class EchoSynthesizer:
    def __init__(self):
        self.texts = []

    def synthesize(self, text):
        self.texts.append(text)
        return f"audio:{text}"


class BrokenSynthesizer:
    def synthesize(self, text):
        raise ConnectionError("TTS service unavailable")


class SilentSynthesizer:
    def synthesize(self, text):
        return None


class InstantPlayer:
    def __init__(self):
        self.played = []

    def play(self, audio_ref, on_complete):
        self.played.append(audio_ref)
        on_complete(None)


class DeferredExecutor(Executor):
    """Holds submitted work until run_pending() is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            future.set_result(fn(*args, **kwargs))


def _stream(session, frames):
    return [a for a in (session.on_frame(f) for f in frames) if a is not None]


def _config(**session):
    return CoachConfig(session=SessionConfig(**session))


def _rest(n, start_ms, step_ms=66.0):
    return [make_pose(start_ms + i * step_ms, press_overrides(400.0)) for i in range(n)]


# ============================================================================
# Test: Rep flow
# ============================================================================

class TestCoachingSession:
    def test_good_rep(self):
        synth, player = EchoSynthesizer(), InstantPlayer()
        session = CoachingSession("overhead_press", synthesizer=synth, player=player)
        analyses = _stream(session, press_rep())

        assert len(analyses) == 1
        rep = analyses[0]
        assert rep.rep_number == 1
        assert rep.exercise == ExerciseType.OVERHEAD_PRESS
        assert rep.feedback.quality == FormQuality.GOOD
        assert rep.feedback.is_performing_exercise
        assert rep.speech_text == "Good"
        assert player.played == ["audio:Good"]

    def test_first_rep_timed_from_first_frame(self):
        session = CoachingSession("overhead_press")
        rep = _stream(session, press_rep(start_ms=10_000))[0]
        assert 2000 < rep.duration_ms < 3000
        assert rep.pace.band == PaceBand.IDEAL

    def test_bent_elbows_are_corrected(self):
        synth, player = EchoSynthesizer(), InstantPlayer()
        session = CoachingSession("overhead_press", synthesizer=synth, player=player)
        rep = _stream(session, press_rep(bent=True))[0]
        assert rep.feedback.quality == FormQuality.NEEDS_IMPROVEMENT
        assert rep.feedback.corrections[0] == "Fully extend your elbows at the top"
        assert synth.texts == ["Fair. Fully extend your elbows at the top"]

    def test_cross_check_attached(self):
        rep = _stream(CoachingSession("overhead_press"), press_rep())[0]
        assert rep.match is not None
        assert rep.match.exercise == ExerciseType.OVERHEAD_PRESS
        assert rep.match.phase in ("start", "mid", "lockout")
        assert 0.0 <= rep.match.similarity <= 1.0
        assert rep.match.identified_exercise in set(ExerciseType)

    def test_identity_check_disabled(self):
        session = CoachingSession("overhead_press", config=_config(identity_check=False))
        rep = _stream(session, press_rep())[0]
        assert rep.match is None

    def test_on_analysis_callback(self):
        seen = []
        session = CoachingSession("overhead_press", on_analysis=seen.append)
        analyses = _stream(session, press_rep())
        assert seen == analyses

    def test_wrong_exercise_still_reported(self):
        # Press motion scored as an external rotation fails the gate but is not dropped
        rep = _stream(CoachingSession("external_rotation"), press_rep())[0]
        assert rep.feedback.is_performing_exercise is False


# ============================================================================
# Test: Rep counting
# ============================================================================

class TestRepCounting:
    def test_one_rep_then_rest_counts_once(self):
        session = CoachingSession("overhead_press")
        frames = press_rep(n_frames=30) + _rest(120, start_ms=30 * 66)
        assert len(_stream(session, frames)) == 1
        assert session.rep_count == 1

    def test_accepted_rep_consumes_window(self):
        session = CoachingSession("overhead_press")
        _stream(session, press_rep())
        assert len(session.detector) < 10

    @pytest.mark.parametrize("rest_frames", [0, 10])
    def test_consecutive_reps_at_15hz(self, rest_frames):
        session = CoachingSession("overhead_press")
        frames = press_set(5, n_frames=45, step_ms=66, rest_frames=rest_frames)
        frames += _rest(15, start_ms=frames[-1].timestamp + 66)
        analyses = _stream(session, frames)
        assert [a.rep_number for a in analyses] == [1, 2, 3, 4, 5]

    def test_cooldown_must_stay_below_fast_band(self):
        with pytest.raises(ValueError, match="rep_cooldown_ms"):
            _config(rep_cooldown_ms=2000)

    def test_in_flight_speech_blocks_next_rep(self):
        executor = DeferredExecutor()
        synth, player = EchoSynthesizer(), InstantPlayer()
        session = CoachingSession(
            "overhead_press", synthesizer=synth, player=player, executor=executor,
        )
        analyses = _stream(session, press_set(2, rest_frames=10))
        assert len(analyses) == 1
        assert player.played == []

        executor.run_pending()
        assert player.played == ["audio:Good"]


# ============================================================================
# Test: Pace through the session
# ============================================================================

class TestSessionPace:
    def test_fast_reps_escalate(self):
        synth, player = EchoSynthesizer(), InstantPlayer()
        session = CoachingSession("overhead_press", synthesizer=synth, player=player)
        # ~0.9 s per rep at 30 FPS
        frames = press_set(6, n_frames=27, step_ms=33)
        frames += _rest(15, start_ms=frames[-1].timestamp + 33)
        analyses = _stream(session, frames)

        assert len(analyses) == 6
        assert all(a.pace.band.is_fast for a in analyses)
        assert [a.pace.escalation for a in analyses] == [
            None, None, PaceEscalation.WARNING, PaceEscalation.WARNING,
            PaceEscalation.RESTART_SUGGESTED, PaceEscalation.RESTART_SUGGESTED,
        ]
        assert analyses[2].speech_text == "Good. 3 reps too fast - please slow down."
        assert "Good. 3 reps too fast - please slow down." in synth.texts

    def test_slow_reps_escalate(self):
        session = CoachingSession("overhead_press")
        # ~6.75 s per rep
        frames = press_set(3, n_frames=45, step_ms=150)
        frames += _rest(15, start_ms=frames[-1].timestamp + 150)
        analyses = _stream(session, frames)

        assert len(analyses) == 3
        assert all(a.pace.band.is_slow for a in analyses)
        assert analyses[2].pace.escalation == PaceEscalation.WARNING
        assert analyses[2].speech_text == "Good. 3 reps too slow - please speed up."

    def test_rep_settling_off_baseline(self):
        # Wrists start at 400, peak at 250 and settle at 410
        analyses = _stream(CoachingSession("overhead_press"), press_rep(end_y=410.0))
        assert len(analyses) == 1
        assert analyses[0].feedback.quality == FormQuality.GOOD
        assert analyses[0].feedback.is_performing_exercise


# ============================================================================
# Test: Degraded speech
# ============================================================================

class TestSpeechFailures:
    def test_synthesis_error_is_not_fatal(self, caplog):
        player = InstantPlayer()
        session = CoachingSession("overhead_press", synthesizer=BrokenSynthesizer(), player=player)
        with caplog.at_level(logging.WARNING, logger="formcoach.pipelines.session"):
            analyses = _stream(session, press_rep())
        assert len(analyses) == 1
        assert analyses[0].speech_text == "Good"
        assert player.played == []
        assert any("Speech synthesis failed" in r.message for r in caplog.records)

    def test_no_audio_returned(self):
        player = InstantPlayer()
        session = CoachingSession("overhead_press", synthesizer=SilentSynthesizer(), player=player)
        assert len(_stream(session, press_rep())) == 1
        assert player.played == []

    def test_no_synthesizer(self):
        session = CoachingSession("overhead_press")
        assert session.audio_queue is None
        assert len(_stream(session, press_rep())) == 1


# ============================================================================
# Test: Control
# ============================================================================

class TestSessionControl:
    def test_disable_clears_window_and_pace(self):
        session = CoachingSession("overhead_press")
        _stream(session, press_rep()[:30])
        session.pace.state.consecutive_fast = 2
        session.disable()
        assert len(session.detector) == 0
        assert session.pace.state.consecutive_fast == 0
        assert session.on_frame(make_pose(5000)) is None
        assert len(session.detector) == 0

    def test_reenabled_session_detects_again(self):
        session = CoachingSession("overhead_press")
        _stream(session, press_rep()[:30])
        session.disable()
        session.enable()
        analyses = _stream(session, press_rep(start_ms=20_000))
        assert len(analyses) == 1
        assert analyses[0].rep_number == 1

    def test_set_exercise_flushes_audio(self):
        class HoldingPlayer(InstantPlayer):
            def play(self, audio_ref, on_complete):
                self.played.append(audio_ref)

            def stop(self):
                self.stopped = True

        player = HoldingPlayer()
        session = CoachingSession("overhead_press", synthesizer=EchoSynthesizer(), player=player)
        _stream(session, press_rep())
        assert session.audio_queue.is_playing

        session.set_exercise("side_lateral_raise")
        assert session.exercise == ExerciseType.SIDE_LATERAL_RAISE
        assert not session.audio_queue.is_playing
        assert player.stopped is True
        assert len(session.detector) == 0

    def test_unknown_exercise(self):
        with pytest.raises(ValueError, match="not found"):
            CoachingSession("deadlift")
