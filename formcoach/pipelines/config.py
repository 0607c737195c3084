"""
Configuration for the real-time form coach.

Every tunable is a field with a default; values are layered as
defaults <- YAML file <- environment variables. Environment overrides are
named ``FORMCOACH_<SECTION>_<FIELD>`` (e.g. ``FORMCOACH_DETECTOR_BUFFER_CAPACITY``)
and can be placed in a ``.env`` file at the project root.
"""

import os
import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from ..utils.io_utils import load_config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(_ENV_PATH)

DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "coach.yaml"
ENV_PREFIX = "FORMCOACH_"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

class PoseConfig(BaseModel):
    source: str = Field(default="movenet", description="Upstream pose model id")
    confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    smoothing_window: int = Field(default=3, ge=1, description="Frames per joint moving average")


class DetectorConfig(BaseModel):
    buffer_capacity: int = Field(default=60, ge=1)
    min_rep_frames: int = Field(default=20, ge=1)
    excursion_threshold_px: float = Field(default=80.0, gt=0.0)
    baseline_frames: int = Field(default=10, ge=1)
    baseline_tolerance_px: float = Field(default=60.0, gt=0.0)
    peak_margin: float = Field(
        default=0.2, ge=0.0, lt=0.5,
        description="Peak must lie inside (margin, 1 - margin) of the window",
    )

    @model_validator(mode="after")
    def _check_sizes(self) -> "DetectorConfig":
        if self.min_rep_frames > self.buffer_capacity:
            raise ValueError(
                f"min_rep_frames ({self.min_rep_frames}) cannot exceed "
                f"buffer_capacity ({self.buffer_capacity})"
            )
        return self


class PaceConfig(BaseModel):
    hard_fast_ms: float = 1000.0
    ideal_min_ms: float = 1500.0
    ideal_max_ms: float = 4000.0
    hard_slow_ms: float = 6000.0
    warning_reps: int = Field(default=3, ge=1)
    restart_reps: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def _check_bands(self) -> "PaceConfig":
        if not (0 <= self.hard_fast_ms <= self.ideal_min_ms <= self.ideal_max_ms <= self.hard_slow_ms):
            raise ValueError(
                "Pace bands must satisfy 0 <= hard_fast_ms <= ideal_min_ms "
                "<= ideal_max_ms <= hard_slow_ms"
            )
        if self.restart_reps < self.warning_reps:
            raise ValueError("restart_reps must be >= warning_reps")
        return self


class AudioConfig(BaseModel):
    dedup_window_s: float = Field(default=30.0, ge=0.0)


class SimilarityConfig(BaseModel):
    elevation_range_px: float = Field(default=200.0, gt=0.0)


class SessionConfig(BaseModel):
    rep_cooldown_ms: float = Field(
        default=500.0, ge=0.0,
        description="Minimum gap between two accepted rep completions; must stay "
                    "below pace.hard_fast_ms so fast reps are still counted",
    )
    identity_check: bool = True


class CoachConfig(BaseModel):
    pose: PoseConfig = Field(default_factory=PoseConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    pace: PaceConfig = Field(default_factory=PaceConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    @model_validator(mode="after")
    def _check_cooldown(self) -> "CoachConfig":
        if 0 < self.pace.hard_fast_ms <= self.session.rep_cooldown_ms:
            raise ValueError(
                f"session.rep_cooldown_ms ({self.session.rep_cooldown_ms}) must be "
                f"below pace.hard_fast_ms ({self.pace.hard_fast_ms})"
            )
        return self


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _env_overrides(environ: Mapping[str, str]) -> dict:
    """Collect ``FORMCOACH_<SECTION>_<FIELD>`` variables into a nested dict."""
    overrides: dict[str, dict[str, str]] = {}
    for section, section_field in CoachConfig.model_fields.items():
        section_model = section_field.annotation
        for field_name in section_model.model_fields:
            key = f"{ENV_PREFIX}{section}_{field_name}".upper()
            if key in environ:
                overrides.setdefault(section, {})[field_name] = environ[key]
    return overrides


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_coach_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> CoachConfig:
    """Build a CoachConfig from defaults, a YAML file and the environment.

    Args:
        config_path: YAML file to read. Defaults to ``config/coach.yaml`` when
            that file exists; an explicitly given path must exist.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated CoachConfig.

    Raises:
        FileNotFoundError: If an explicit *config_path* does not exist.
        pydantic.ValidationError: If any value is out of range.
    """
    data: dict = {}
    if config_path is not None:
        data = load_config(config_path)
    elif DEFAULT_CONFIG_PATH.exists():
        data = load_config(DEFAULT_CONFIG_PATH)

    overrides = _env_overrides(os.environ if environ is None else environ)
    if overrides:
        logger.info("Applying environment overrides: %s", sorted(overrides))
        data = _merge(data, overrides)

    return CoachConfig.model_validate(data)
