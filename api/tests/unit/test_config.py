"""Unit tests for settings loading."""

import pytest

from portfolio_api.config import clear_settings_cache, get_settings


@pytest.mark.unit
class TestSettings:
    """Tests for get_settings caching."""

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_clear_cache_reloads_environment(self, monkeypatch):
        assert get_settings().lockout_seconds == 30

        monkeypatch.setenv("PORTFOLIO_LOCKOUT_SECONDS", "45")
        assert get_settings().lockout_seconds == 30

        clear_settings_cache()
        assert get_settings().lockout_seconds == 45

    def test_secret_rate_window_is_separate(self, monkeypatch):
        monkeypatch.setenv("PORTFOLIO_SECRET_RATE_WINDOW_SECONDS", "60")
        clear_settings_cache()

        settings = get_settings()

        assert settings.secret_rate_window_seconds == 60
        assert settings.ceremony_rate_window_seconds == 300

    def test_trusted_proxy_count_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("PORTFOLIO_TRUSTED_PROXY_COUNT", "0")
        clear_settings_cache()

        with pytest.raises(ValueError):
            get_settings()
