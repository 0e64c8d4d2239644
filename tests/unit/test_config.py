"""
Unit tests for configuration management.
"""

import os
from unittest.mock import patch

import pytest

from edge_router.config import DEFAULT_REDIRECTS, RouterSettings, build_settings, get_config, validate_config


class TestGetConfig:
    """Test configuration loading from environment variables."""

    def test_get_config_defaults(self):
        config = get_config()

        assert config["FLASK_ENV"] == "testing"  # Set in conftest
        assert config["APEX_DOMAINS"] == ["divine.video", "dvine.video"]
        assert config["RESERVED_SUBDOMAINS"] == ["www", "admin", "api"]
        assert config["ORIGINAL_HOST_HEADER"] == "X-Original-Host"
        assert config["UPSTREAM_TIMEOUT"] == 5
        assert config["APP_NAME"] == "Divine"

    def test_get_config_custom_values(self):
        with patch.dict(os.environ, {"APEX_DOMAINS": "Example.com, example.org", "PUBLISH_ID": "prod"}):
            config = get_config()

            assert config["APEX_DOMAINS"] == ["example.com", "example.org"]
            assert config["PUBLISH_ID"] == "prod"

    def test_get_config_boolean_parsing(self):
        with patch.dict(os.environ, {"RATE_LIMIT_ENABLED": "yes"}):
            assert get_config()["RATE_LIMIT_ENABLED"] is True
        with patch.dict(os.environ, {"RATE_LIMIT_ENABLED": "off"}):
            assert get_config()["RATE_LIMIT_ENABLED"] is False

    def test_get_config_integer_parsing(self):
        with patch.dict(os.environ, {"PROFILE_CACHE_SECONDS": "30", "REDIS_PORT": "6380"}):
            config = get_config()

            assert config["PROFILE_CACHE_SECONDS"] == 30
            assert config["REDIS_PORT"] == 6380

    def test_get_config_invalid_integer_raises(self):
        with patch.dict(os.environ, {"UPSTREAM_TIMEOUT": "soon"}):
            with pytest.raises(ValueError, match="UPSTREAM_TIMEOUT"):
                get_config()


class TestValidateConfig:
    """Test configuration validation."""

    def test_validate_config_development_passes(self):
        assert validate_config({"FLASK_ENV": "development", "FLASK_SECRET_KEY": None, "UPSTREAM_TIMEOUT": 5}) is True

    @pytest.mark.parametrize("timeout", [0, 10, 30])
    def test_timeout_must_be_single_digit_seconds(self, timeout):
        with pytest.raises(ValueError, match="UPSTREAM_TIMEOUT"):
            validate_config({"FLASK_ENV": "development", "UPSTREAM_TIMEOUT": timeout})

    def test_empty_apex_list_rejected(self):
        with pytest.raises(ValueError, match="APEX_DOMAINS"):
            validate_config({"APEX_DOMAINS": []})

    def test_production_requires_secret_key(self):
        with pytest.raises(ValueError, match="FLASK_SECRET_KEY"):
            validate_config({"FLASK_ENV": "production", "FLASK_SECRET_KEY": None})

    def test_production_warns_on_missing_credentials(self):
        with pytest.warns(UserWarning, match="Zendesk"):
            validate_config({"FLASK_ENV": "production", "FLASK_SECRET_KEY": "s3cret", "REDIS_URL": "redis://r"})


class TestBuildSettings:
    """Test derivation of the immutable router settings."""

    def test_from_config(self):
        config = get_config()
        config["APEX_DOMAINS"] = ["example.com"]
        config["PUBLISH_ID"] = "prod"

        settings = build_settings(config)

        assert settings.apex_domains == ("example.com",)
        assert settings.canonical_apex == "example.com"
        assert settings.index_key == "prod_index_live"
        assert settings.content_key("ab12") == "prod_files_sha256_ab12"

    def test_settings_are_immutable(self):
        settings = RouterSettings()

        with pytest.raises(Exception):
            settings.app_name = "Other"
        with pytest.raises(TypeError):
            settings.redirects["/new"] = ("https://example.com", 301)

    def test_default_redirect_table(self):
        assert RouterSettings().redirects["/discord"] == DEFAULT_REDIRECTS["/discord"]
        assert RouterSettings().redirects["/press"][1] == 301
