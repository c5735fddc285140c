"""Tests for the engine configuration record and environment settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mindstate.config import DEFAULT_TIER_THRESHOLDS, EngineConfig, Settings, TierThresholds, get_settings
from mindstate.models import StateCategory


class TestEngineConfig:
    def test_defaults(self, config):
        assert config.tick_interval_ms == 250
        assert config.smoothing_window_size == 8
        assert config.min_hold_ms == 6_000
        assert config.cooldown_ms == 8_000
        assert config.promotion_threshold == 62
        assert config.takeover_margin == 12
        assert config.emergency_drop_threshold == 25
        assert config.emergency_drop_duration_ms == 1_500
        assert config.variance_ceiling == 15
        assert set(config.tier_thresholds) == set(StateCategory)

    def test_partial_tier_override_keeps_other_categories(self):
        cfg = EngineConfig(
            tier_thresholds={
                "ordinary": {"detected": 1_000, "candidate": 2_000, "confirmed": 3_000, "locked": 4_000},
            }
        )
        assert cfg.thresholds_for(StateCategory.ORDINARY).locked == 4_000
        assert cfg.thresholds_for(StateCategory.TRANSCENDENT) == DEFAULT_TIER_THRESHOLDS[StateCategory.TRANSCENDENT]

    def test_non_increasing_tiers_rejected(self):
        with pytest.raises(ValidationError):
            TierThresholds(detected=5_000, candidate=4_000, confirmed=10_000, locked=20_000)

    def test_emergency_threshold_must_be_below_promotion(self):
        with pytest.raises(ValidationError):
            EngineConfig(emergency_drop_threshold=70)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(min_hold=1)

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(min_hold_ms=-1)

    def test_config_is_frozen(self, config):
        with pytest.raises(ValidationError):
            config.min_hold_ms = 1

    def test_dump_round_trips_through_overrides(self, config):
        again = EngineConfig.model_validate(config.model_dump())
        assert again == config


class TestSettings:
    def test_nested_env_override(self, monkeypatch):
        monkeypatch.setenv("MINDSTATE_ENGINE__MIN_HOLD_MS", "4000")
        monkeypatch.setenv("MINDSTATE_LOG_LEVEL", "DEBUG")
        settings = Settings()
        assert settings.engine.min_hold_ms == 4_000
        assert settings.engine.cooldown_ms == 8_000
        assert settings.log_level == "DEBUG"

    def test_engine_config_overrides(self):
        settings = Settings()
        assert settings.engine_config() is settings.engine
        assert settings.engine_config(sleep_mode=True).sleep_mode is True

    def test_engine_config_overrides_are_validated(self):
        with pytest.raises(ValidationError):
            Settings().engine_config(promotion_threshold=10)

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()
