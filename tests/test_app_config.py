"""Tests for settings resolution (api/app_config.py)."""

import json

import pytest

from api.app_config import AppConfigManager, AppSettings
from api.exceptions import ConfigError


class TestAppSettings:
    def test_defaults(self):
        settings = AppSettings()
        assert settings.api_base_url == "https://api.chainsensor.com/v1"
        assert settings.storage_limit_gb == 10.0
        assert settings.processing_delay == 2.0
        assert settings.deployment_delay == 3.0
        assert settings.activity_limit == 10

    def test_validate_requires_supabase_settings(self):
        with pytest.raises(ConfigError, match="supabase_url"):
            AppSettings(supabase_anon_key="key").validate()

    def test_validate_rejects_zero_activity_limit(self):
        with pytest.raises(ConfigError):
            AppSettings(supabase_url="https://x.supabase.co", supabase_anon_key="k", activity_limit=0).validate()

    def test_to_dict_redacts_key(self):
        assert AppSettings(supabase_anon_key="secret").to_dict()["supabase_anon_key"] == "***"
        assert AppSettings(supabase_anon_key="secret").to_dict(redact=False)["supabase_anon_key"] == "secret"

    def test_from_dict_coerces_and_rejects(self):
        assert AppSettings.from_dict({"activity_limit": "5"}).activity_limit == 5
        with pytest.raises(ConfigError):
            AppSettings.from_dict({"processing_delay": "soon"})


class TestAppConfigManager:
    def test_env_overrides_file(self, tmp_path):
        (tmp_path / "app_settings.json").write_text(
            json.dumps({"supabase_url": "https://file.supabase.co", "activity_limit": 20})
        )
        manager = AppConfigManager(environ={
            "CHAINSENSOR_CONFIG": str(tmp_path),
            "CHAINSENSOR_ACTIVITY_LIMIT": "7",
            "SUPABASE_ANON_KEY": "alias-key",
        })

        settings = manager.load_settings()

        assert settings.supabase_url == "https://file.supabase.co"
        assert settings.activity_limit == 7
        assert settings.supabase_anon_key == "alias-key"

    def test_prefixed_env_wins_over_alias(self, tmp_path):
        manager = AppConfigManager(environ={
            "CHAINSENSOR_CONFIG": str(tmp_path),
            "CHAINSENSOR_SUPABASE_URL": "https://prefixed.supabase.co",
            "SUPABASE_URL": "https://alias.supabase.co",
        })
        assert manager.load_settings().supabase_url == "https://prefixed.supabase.co"

    def test_missing_file_gives_defaults(self, tmp_path):
        manager = AppConfigManager(environ={"CHAINSENSOR_CONFIG": str(tmp_path / "nowhere")})
        assert manager.load_settings() == AppSettings()

    def test_malformed_file_raises(self, tmp_path):
        (tmp_path / "app_settings.json").write_text("[1, 2")
        with pytest.raises(ConfigError):
            AppConfigManager(environ={"CHAINSENSOR_CONFIG": str(tmp_path)}).load_settings()

