"""Unit tests for configuration loading and the global config accessors."""

import pytest
from pydantic import ValidationError

from acrostic_core.config import (
    AppConfig,
    CacheConfig,
    LoggingConfig,
    StorageConfig,
    SyncConfig,
    get_config,
    reset_config,
    set_config,
)


@pytest.fixture(autouse=True)
def clean_config():
    reset_config()
    yield
    reset_config()


class TestDefaults:
    def test_cache_windows(self):
        config = CacheConfig()

        assert config.default_max_age_seconds == 86400
        assert config.stale_after_seconds == 3600
        assert config.retention_seconds == 604800

    def test_sync_defaults(self):
        config = SyncConfig()

        assert config.page_size == 100
        assert config.record_queries is False

    def test_page_size_is_bounded(self):
        with pytest.raises(ValidationError):
            SyncConfig(page_size=101)


class TestEnvironment:
    def test_storage_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ACROSTIC_LOCAL_STORE_URL", "sqlite:///tmp/local.db")
        monkeypatch.setenv("ACROSTIC_SYNCED_STORE_URL", "postgresql+psycopg://u:p@h/db")

        config = StorageConfig()

        assert config.local_store_url == "sqlite:///tmp/local.db"
        assert config.synced_store_url == "postgresql+psycopg://u:p@h/db"

    def test_synced_store_defaults_to_unavailable(self, monkeypatch):
        monkeypatch.delenv("ACROSTIC_SYNCED_STORE_URL", raising=False)

        assert StorageConfig().synced_store_url == ""

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert LoggingConfig().level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_environment_name(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "production")

        assert AppConfig.from_env().environment == "production"


class TestGlobalConfig:
    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_and_reset(self):
        custom = AppConfig(environment="test", custom={"feature": True})
        set_config(custom)

        assert get_config() is custom
        assert get_config().get_custom("feature") is True
        assert get_config().get_custom("missing", "default") == "default"

        reset_config()
        assert get_config() is not custom
