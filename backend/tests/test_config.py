"""
AudioScholar Backend — Settings Unit Tests
===========================================
"""

import pytest
from pydantic import ValidationError

from audioscholar.config import Settings


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.key_cooldown_seconds == 60
        assert settings.gemini_rotation_base_backoff_ms == 2000
        assert settings.gemini_rotation_max_backoff_ms == 60000
        assert settings.gemini_rotation_backoff_multiplier == 2.0
        assert settings.retry_initial_delay_ms == 2000
        assert settings.convertapi_max_attempts == 3

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEYS", "k1,k2")
        monkeypatch.setenv("CONVERTAPI_SECRET", "legacy-secret")
        monkeypatch.setenv("GEMINI_MODEL_HIERARCHY", "m1, m2 ,")

        settings = Settings(_env_file=None)
        assert settings.gemini_api_keys == "k1,k2"
        assert settings.convertapi_secret == "legacy-secret"
        assert settings.gemini_model_hierarchy_list == ["m1", "m2"]

    def test_blank_hierarchy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, gemini_model_hierarchy=" , ")

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="LOUD")

    def test_max_backoff_below_base_rejected(self):
        with pytest.raises(ValidationError):
            Settings(
                _env_file=None,
                gemini_rotation_base_backoff_ms=5000,
                gemini_rotation_max_backoff_ms=1000,
            )
