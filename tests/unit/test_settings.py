"""Unit tests for application settings validation."""

import pytest
from pydantic import ValidationError

from trendreel.config.settings import Settings


class TestRenderPolling:
    def test_test_settings_are_valid(self, settings):
        assert settings.render_poll_interval_seconds > 0
        assert settings.render_max_poll_attempts == 5

    @pytest.mark.parametrize("interval", [0.0, -1.0])
    def test_non_positive_interval_rejected(self, interval):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, render_poll_interval_seconds=interval)


class TestProductionValidation:
    def test_production_requires_secrets(self):
        with pytest.raises(ValidationError, match="cron_secret must be set"):
            Settings(_env_file=None, app_env="production", api_key_enabled=True, api_key="k")

    def test_production_accepts_complete_config(self):
        settings = Settings(
            _env_file=None,
            app_env="production",
            api_key_enabled=True,
            api_key="k",
            cron_secret="c",
            debug=False,
            cors_allowed_origins=["https://trendreel.example"],
        )

        assert settings.is_production
