"""Tests for core/config.py settings validation."""

from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from core.config import Settings, clear_settings_cache, get_settings

pytestmark = pytest.mark.unit


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.default_goal == 50
        assert settings.max_prestige == 10
        assert settings.badges_revocable is True

    def test_timezone_is_resolved(self):
        settings = Settings(_env_file=None, timezone="America/New_York")
        assert settings.tzinfo == ZoneInfo("America/New_York")

    def test_invalid_timezone(self):
        with pytest.raises(ValidationError, match="TIMEZONE"):
            Settings(_env_file=None, timezone="Mars/Olympus_Mons")

    @pytest.mark.parametrize("max_prestige", [1, 8, 11])
    def test_max_prestige_must_be_nine_or_ten(self, max_prestige):
        with pytest.raises(ValidationError, match="MAX_PRESTIGE"):
            Settings(_env_file=None, max_prestige=max_prestige)

    def test_negative_default_goal(self):
        with pytest.raises(ValidationError, match="DEFAULT_GOAL"):
            Settings(_env_file=None, default_goal=-1)

    @pytest.mark.parametrize(
        ("field", "value", "match"),
        [
            ("pipeline_idle_seconds", 0, "PIPELINE_IDLE_SECONDS"),
            ("inbox_ttl_seconds", -1, "INBOX_TTL_SECONDS"),
            ("max_cached_users", 0, "MAX_CACHED_USERS"),
        ],
    )
    def test_per_user_cache_limits(self, field, value, match):
        with pytest.raises(ValidationError, match=match):
            Settings(_env_file=None, **{field: value})

    def test_settings_are_frozen(self):
        settings = Settings(_env_file=None)
        with pytest.raises(ValidationError):
            settings.default_goal = 10

    def test_is_sqlite(self):
        assert Settings(_env_file=None, database_url="sqlite+aiosqlite:///x.db").is_sqlite
        assert not Settings(
            _env_file=None, database_url="postgresql+asyncpg://u:p@localhost/db"
        ).is_sqlite

    def test_allowed_origins(self):
        settings = Settings(
            _env_file=None,
            frontend_url="https://app.example.com",
            cors_allowed_origins="https://a.example.com, https://app.example.com,",
        )
        assert settings.allowed_origins == [
            "https://app.example.com",
            "https://a.example.com",
        ]

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("BADGES_REVOCABLE", "false")
        monkeypatch.setenv("DEFAULT_GOAL", "75")
        clear_settings_cache()

        settings = get_settings()
        assert settings.badges_revocable is False
        assert settings.default_goal == 75
        assert get_settings() is settings
