"""
Unit tests for application settings.
"""
import pytest

from src.config import Settings


class TestSettings:

    @pytest.mark.unit
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.DEDUP_WINDOW_SECONDS == 30
        assert settings.INTENT_CONFIDENCE_THRESHOLD == 0.4
        assert settings.CHAT_HISTORY_LIMIT == 4

    @pytest.mark.unit
    def test_unknown_environment_variables_are_ignored(self, monkeypatch):
        # The listening port belongs to the uvicorn command line, not to the app
        monkeypatch.setenv("PORT", "9999")

        settings = Settings(_env_file=None)

        assert "PORT" not in Settings.model_fields
        assert not hasattr(settings, "PORT")
