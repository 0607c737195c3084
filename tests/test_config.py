"""Tests for YAML config loading and environment overrides."""

import pytest
import yaml
from pydantic import ValidationError

from formcoach.pipelines.config import (
    DEFAULT_CONFIG_PATH,
    CoachConfig,
    load_coach_config,
)
from formcoach.utils.io_utils import load_config


# ============================================================================
# Test: YAML loading
# ============================================================================

class TestLoadConfig:
    def test_shipped_defaults_match_models(self):
        shipped = load_coach_config(DEFAULT_CONFIG_PATH, environ={})
        assert shipped == CoachConfig()

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "coach.yaml"
        path.write_text(yaml.safe_dump({"detector": {"buffer_capacity": 90}}))
        cfg = load_coach_config(path, environ={})
        assert cfg.detector.buffer_capacity == 90
        assert cfg.detector.min_rep_frames == 20
        assert cfg.pace.hard_fast_ms == 1000

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_coach_config(tmp_path / "nope.yaml", environ={})

    def test_out_of_range_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"pose": {"confidence_threshold": 1.5}}))
        with pytest.raises(ValidationError):
            load_coach_config(path, environ={})


# ============================================================================
# Test: Environment overrides
# ============================================================================

class TestEnvOverrides:
    def test_env_beats_file(self, tmp_path):
        path = tmp_path / "coach.yaml"
        path.write_text(yaml.safe_dump({"audio": {"dedup_window_s": 10}}))
        cfg = load_coach_config(path, environ={"FORMCOACH_AUDIO_DEDUP_WINDOW_S": "45"})
        assert cfg.audio.dedup_window_s == 45.0

    def test_values_are_coerced(self):
        env = {
            "FORMCOACH_DETECTOR_BUFFER_CAPACITY": "90",
            "FORMCOACH_SESSION_IDENTITY_CHECK": "false",
            "FORMCOACH_POSE_SOURCE": "blazepose",
        }
        cfg = load_coach_config(DEFAULT_CONFIG_PATH, environ=env)
        assert cfg.detector.buffer_capacity == 90
        assert cfg.session.identity_check is False
        assert cfg.pose.source == "blazepose"

    def test_unrelated_variables_ignored(self):
        cfg = load_coach_config(DEFAULT_CONFIG_PATH, environ={"FORMCOACH_UNKNOWN": "1", "PATH": "/bin"})
        assert cfg == CoachConfig()

    def test_invalid_override(self):
        with pytest.raises(ValidationError):
            load_coach_config(DEFAULT_CONFIG_PATH, environ={"FORMCOACH_DETECTOR_MIN_REP_FRAMES": "100"})


# ============================================================================
# Test: Cross-section validation
# ============================================================================

class TestCooldownValidation:
    def test_default_cooldown_below_fast_band(self):
        cfg = CoachConfig()
        assert cfg.session.rep_cooldown_ms < cfg.pace.hard_fast_ms

    def test_cooldown_at_fast_band_rejected(self):
        with pytest.raises(ValidationError, match="rep_cooldown_ms"):
            CoachConfig.model_validate({"session": {"rep_cooldown_ms": 1000}})

    def test_env_cooldown_checked(self):
        with pytest.raises(ValidationError):
            load_coach_config(DEFAULT_CONFIG_PATH, environ={"FORMCOACH_SESSION_REP_COOLDOWN_MS": "2000"})
