"""Tests for environment-driven settings."""

import pytest

from civilyst.config import Settings


class TestSettings:
    """Test settings defaults and overrides."""

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.cache_backend == "redis"
        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.default_user_id == ""

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CACHE_BACKEND", "memory")
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///civilyst.db")
        monkeypatch.setenv("CIVILYST_PORT", "9090")

        settings = Settings(_env_file=None)

        assert settings.cache_backend == "memory"
        assert settings.database_url == "sqlite+aiosqlite:///civilyst.db"
        assert settings.port == 9090

    def test_app_settings_use_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CIVILYST_DEFAULT_USER_ID", "mayor")
        monkeypatch.setenv("CIVILYST_CACHE_SCAN_COUNT", "500")

        settings = Settings(_env_file=None)

        assert settings.default_user_id == "mayor"
        assert settings.cache_scan_count == 500
