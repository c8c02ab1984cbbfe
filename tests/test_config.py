"""Tests for config module."""
from pathlib import Path

from puremark.config import DEFAULT_DB_PATH, Config


class TestConfig:
    def test_default_values(self):
        config = Config()
        assert config.db_path == DEFAULT_DB_PATH
        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.allow_export is True
        assert config.allow_import is True
        assert config.db_prefill is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PUREMARK_DB_PATH", "/tmp/test.db")
        monkeypatch.setenv("PUREMARK_PORT", "8080")
        monkeypatch.setenv("PUREMARK_API_URL", "http://bookmarks.local")
        monkeypatch.setenv("PUREMARK_API_TIMEOUT", "2.5")

        config = Config.from_env()
        assert config.db_path == Path("/tmp/test.db")
        assert config.port == 8080
        assert config.client.base_url == "http://bookmarks.local"
        assert config.client.timeout == 2.5

    def test_transfer_flags_only_disabled_by_false(self, monkeypatch):
        monkeypatch.setenv("DB_ALLOW_EXPORT", "false")
        monkeypatch.setenv("DB_ALLOW_IMPORT", "no")
        config = Config.from_env()
        assert config.allow_export is False
        assert config.allow_import is True

    def test_prefill_only_enabled_by_true(self, monkeypatch):
        monkeypatch.setenv("DB_PREFILL", "1")
        assert Config.from_env().db_prefill is False
        monkeypatch.setenv("DB_PREFILL", "true")
        assert Config.from_env().db_prefill is True

    def test_defaults_without_env(self, monkeypatch):
        for name in ("PUREMARK_DB_PATH", "PUREMARK_PORT", "DB_ALLOW_EXPORT", "DB_PREFILL"):
            monkeypatch.delenv(name, raising=False)
        config = Config.from_env()
        assert config.db_path == DEFAULT_DB_PATH
        assert config.port == 3000
