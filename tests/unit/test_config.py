"""Settings loading and validation."""

import pytest
from pydantic import ValidationError

from pfg.config import Settings, get_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.daily_challenge_duration_hours == 24
        assert settings.weekly_challenge_duration_days == 7
        assert settings.email_provider == "smtp"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PFG_BASE_GAME_XP", "25")
        monkeypatch.setenv("PFG_LOG_FORMAT", "Console")
        settings = get_settings()
        assert settings.base_game_xp == 25
        assert settings.log_format == "console"

    def test_cached(self):
        assert get_settings() is get_settings()

    @pytest.mark.parametrize("field", [{"log_format": "xml"}, {"score_per_bonus_xp": 0}])
    def test_rejects_invalid(self, field):
        with pytest.raises(ValidationError):
            Settings(**field)
