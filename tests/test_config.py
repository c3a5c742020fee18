"""EngineSettings: persisted-document sanitizing and environment parsing."""

import pytest

from focus_engine.config import EngineSettings
from focus_engine.errors import ConfigError


class TestFromMapping:
    def test_defaults(self):
        settings = EngineSettings.from_mapping({})
        assert (settings.work_minutes, settings.short_break_minutes, settings.long_break_minutes) == (25, 5, 15)
        assert settings.long_break_interval == 4
        assert settings.adaptive_enabled is False

    def test_reads_camel_case_keys(self):
        settings = EngineSettings.from_mapping({
            "workDuration": 50,
            "shortBreakDuration": 10,
            "longBreakDuration": "30",
            "longBreakInterval": 3,
            "enableAdaptiveTimer": True,
        })
        assert settings.work_minutes == 50
        assert settings.short_break_minutes == 10
        assert settings.long_break_minutes == 30
        assert settings.long_break_interval == 3
        assert settings.adaptive_enabled is True

    @pytest.mark.parametrize("bad", [0, -10, "abc", None, True, float("nan"), float("inf")])
    def test_bad_duration_falls_back(self, bad):
        assert EngineSettings.from_mapping({"workDuration": bad}).work_minutes == 25

    def test_overlays_base(self):
        base = EngineSettings(work_minutes=1, estimator_url="http://est")
        settings = EngineSettings.from_mapping({"shortBreakDuration": 2}, base=base)
        assert settings.work_minutes == 1
        assert settings.short_break_minutes == 2
        assert settings.estimator_url == "http://est"
        assert base.short_break_minutes == 5

    def test_patch_round_trip(self):
        settings = EngineSettings(work_minutes=45, adaptive_enabled=True)
        assert EngineSettings.from_mapping(settings.to_settings_patch()) == settings


class TestFromEnv:
    def test_empty_env(self):
        assert EngineSettings.from_env({}) == EngineSettings()

    def test_reads_prefixed_vars(self):
        settings = EngineSettings.from_env({
            "FOCUS_ENGINE_WORK_MINUTES": "50",
            "FOCUS_ENGINE_AUTO_START_BREAKS": "yes",
            "FOCUS_ENGINE_ESTIMATOR_URL": "http://localhost:9000/estimate",
            "FOCUS_ENGINE_SERVICE_TIMEOUT_SECONDS": "2.5",
            "FOCUS_ENGINE_MAX_GOLD_COINS": "20",
        })
        assert settings.work_minutes == 50
        assert settings.auto_start_breaks is True
        assert settings.estimator_url == "http://localhost:9000/estimate"
        assert settings.service_timeout_seconds == 2.5
        assert settings.max_gold_coins == 20

    @pytest.mark.parametrize("env", [
        {"FOCUS_ENGINE_WORK_MINUTES": "0"},
        {"FOCUS_ENGINE_LONG_BREAK_INTERVAL": "many"},
        {"FOCUS_ENGINE_ADAPTIVE_ENABLED": "maybe"},
        {"FOCUS_ENGINE_MIN_GOLD_COINS": "15"},
        {"FOCUS_ENGINE_SERVICE_TIMEOUT_SECONDS": "soon"},
    ])
    def test_invalid_values_raise(self, env):
        with pytest.raises(ConfigError):
            EngineSettings.from_env(env)
