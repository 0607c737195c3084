"""
FastAPI entry point for the form coach.

Endpoints:
    GET  /health
    GET  /api/exercises
    POST /api/analyze-pose
        Receives the pose window of one repetition, scores it with the
        deterministic rule engine and returns the form feedback, the spoken
        text and the reference-pose cross-check.

Run:
    cd <project_root>
    uvicorn formcoach.pipelines.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
import time
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..agents.exercise_criteria import ExerciseType, get_all_exercises
from ..agents.feedback import generate_speech_text
from ..agents.form_rules import FormRuleEngine, select_peak_frame
from ..agents.state import FormFeedback
from ..preprocessing.angles import extract_pose_angles
from ..preprocessing.keypoints import Keypoint, PoseSnapshot
from ..recognition.similarity import SimilarityMatcher
from ..utils.io_utils import configure_logging
from .config import load_coach_config

logger = logging.getLogger("formcoach")
configure_logging()


# ============================================================================
# Request / response models
# ============================================================================

class KeypointIn(BaseModel):
    name: str
    x: float
    y: float
    score: float = Field(ge=0.0, le=1.0)


class PoseSnapshotIn(BaseModel):
    timestamp: float
    keypoints: list[KeypointIn]
    score: float = Field(default=1.0, ge=0.0, le=1.0)


class AnalyzePoseRequest(BaseModel):
    exercise_type: ExerciseType
    pose_sequence: list[PoseSnapshotIn] = Field(
        ..., description="Frames of one repetition, oldest first"
    )


class PoseMatch(BaseModel):
    phase: Optional[str] = None
    similarity: float
    identified_exercise: Optional[ExerciseType] = None
    identity_confidence: float


class AnalyzePoseResponse(BaseModel):
    success: bool = True
    form_feedback: FormFeedback
    speech_text: str
    match: Optional[PoseMatch] = None


class ErrorResponse(BaseModel):
    error_code: str
    message: str


# ============================================================================
# App
# ============================================================================

config = load_coach_config()
engine = FormRuleEngine(config.pose.confidence_threshold)
matcher = SimilarityMatcher(elevation_range_px=config.similarity.elevation_range_px)

app = FastAPI(title="FormCoach API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/exercises")
async def exercises():
    return {"exercises": get_all_exercises()}


@app.post(
    "/api/analyze-pose",
    response_model=AnalyzePoseResponse,
    responses={400: {"model": ErrorResponse}},
)
def analyze_pose(request: AnalyzePoseRequest):
    """Score one repetition's pose window."""
    t0 = time.time()
    logger.info(
        "Received pose analysis request: exercise=%s poses=%d",
        request.exercise_type.value, len(request.pose_sequence),
    )

    if not request.pose_sequence:
        return JSONResponse(
            status_code=400,
            content={"error_code": "NO_POSE_DATA", "message": "Missing pose sequence data"},
        )

    window = [
        PoseSnapshot(
            timestamp=frame.timestamp,
            keypoints=tuple(Keypoint(**kp.model_dump()) for kp in frame.keypoints),
            score=frame.score,
        )
        for frame in request.pose_sequence
    ]

    feedback = engine.evaluate_window(window, request.exercise_type)

    match = None
    angles = extract_pose_angles(window[select_peak_frame(window)], config.pose.confidence_threshold)
    if angles is not None:
        best = matcher.best_match(angles, matcher.library.for_exercise(request.exercise_type))
        identity = matcher.identify_exercise(angles)
        match = PoseMatch(
            phase=best[0].phase if best else None,
            similarity=best[1] if best else 0.0,
            identified_exercise=identity.exercise if identity else None,
            identity_confidence=identity.confidence if identity else 0.0,
        )

    logger.info(
        "Pose analysis complete in %.0fms: quality=%s performing=%s",
        (time.time() - t0) * 1000, feedback.quality.value, feedback.is_performing_exercise,
    )
    return AnalyzePoseResponse(
        form_feedback=feedback,
        speech_text=generate_speech_text(feedback),
        match=match,
    )
