"""
Unit tests for configuration management.

Tests file loading, environment overlays, environment variable
overrides and typed access.
"""

import pytest

from movie_api.clients.redis_client import RedisSettings
from movie_api.core.config import Config
from movie_api.core.exceptions import ConfigurationError


BASE = """
redis:
  host: cache.internal
  port: 6380
rate_limit:
  api:
    max: 100
admin:
  require_admin: "yes"
"""


class TestConfigLoading:
    """Tests for reading configuration files."""

    def test_dot_notation(self, config_file):
        """Test nested access and typed conversion."""
        cfg = config_file(BASE)

        assert cfg.get("redis.host") == "cache.internal"
        assert cfg.get("redis.port", expected_type=int) == 6380
        assert cfg.get("admin.require_admin", expected_type=bool) is True

    def test_default_and_missing(self, config_file):
        """Test defaults, None defaults and missing keys."""
        cfg = config_file(BASE)

        assert cfg.get("search.host", default="http://localhost:7700") == "http://localhost:7700"
        assert cfg.get("search.api_key", default=None) is None
        with pytest.raises(ConfigurationError):
            cfg.get("search.api_key")

    def test_type_mismatch(self, config_file):
        """Test that an unconvertible value raises TypeError."""
        cfg = config_file(BASE)

        with pytest.raises(TypeError):
            cfg.get("redis.host", expected_type=int)

    def test_explicit_missing_file(self, tmp_path):
        """Test that a requested but absent file is an error."""
        with pytest.raises(ConfigurationError):
            Config(config_path=str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, config_file):
        """Test that malformed YAML is an error."""
        with pytest.raises(ConfigurationError):
            config_file("redis: [unclosed\n")

    def test_environment_overlay(self, tmp_path):
        """Test that config.{env}.yaml is merged over the base file."""
        (tmp_path / "config.yaml").write_text(BASE)
        (tmp_path / "config.production.yaml").write_text("redis:\n  port: 6390\n")

        cfg = Config(config_path=str(tmp_path / "config.yaml"), env="production")

        assert cfg.get("redis.port") == 6390
        assert cfg.get("redis.host") == "cache.internal"

    def test_environment_variables(self, config_file, monkeypatch):
        """Test that deployment variables override the file."""
        monkeypatch.setenv("REDIS_HOST", "redis.prod")
        monkeypatch.setenv("ADMIN_API_TOKEN", "secret")

        cfg = config_file(BASE)

        assert cfg.get("redis.host") == "redis.prod"
        assert cfg.get("admin.api_token") == "secret"
        assert RedisSettings.from_config(cfg).port == 6380


class TestRuntimeOverrides:
    """Tests for set/remove_override."""

    def test_override_wins(self, config_file):
        """Test that runtime overrides shadow file values until removed."""
        cfg = config_file(BASE)

        cfg.set("rate_limit.api.max", 5)
        assert cfg.get("rate_limit.api.max") == 5
        assert cfg.to_dict()["rate_limit"]["api"]["max"] == 5

        assert cfg.remove_override("rate_limit.api.max") is True
        assert cfg.get("rate_limit.api.max") == 100
        assert cfg.remove_override("rate_limit.api.max") is False

    def test_reload_keeps_overrides(self, config_file):
        """Test that reloading from disk preserves overrides."""
        cfg = config_file(BASE)
        cfg.set("redis.db", 3)

        cfg.reload()

        assert cfg.get("redis.db") == 3
        cfg.clear_overrides()
        assert cfg.get("redis.db", default=0) == 0
