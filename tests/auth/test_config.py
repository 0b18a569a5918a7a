"""Tests for auth/config.py - sign-in configuration with validation."""

import pytest
from pydantic import ValidationError

from auth.config import QRLoginConfig


class TestDefaults:

    def test_polling_defaults(self):
        config = QRLoginConfig()
        assert config.poll_interval_seconds == 2.0
        assert config.poll_timeout_seconds == 300.0

    def test_mini_program_defaults(self):
        config = QRLoginConfig()
        assert config.app_id == "wxe6d828ae0245ab9c"
        assert config.env_version == "trial"
        assert config.target_page == "pages/auth/login/login"
        assert config.image_width == 430

    def test_request_timeouts(self):
        config = QRLoginConfig()
        assert config.generate_timeout_seconds == 8.0
        assert config.render_timeout_seconds == 10.0
        assert config.check_timeout_seconds == 8.0

    def test_no_valkey_by_default(self):
        assert QRLoginConfig().valkey_url is None


class TestValidation:

    @pytest.mark.parametrize(
        "overrides",
        [
            {"poll_interval_seconds": 0},
            {"poll_timeout_seconds": -1},
            {"image_width": 100},
            {"image_width": 2000},
            {"env_version": "beta"},
            {"image_cache_ttl_seconds": 10},
        ],
    )
    def test_rejects_out_of_bounds(self, overrides):
        with pytest.raises(ValidationError):
            QRLoginConfig(**overrides)


class TestFromEnv:

    def test_reads_almond_variables(self, monkeypatch):
        monkeypatch.setenv("ALMOND_USER_CENTER_URL", "https://uc.example.com")
        monkeypatch.setenv("ALMOND_WXA_ENV", "release")
        monkeypatch.setenv("ALMOND_POLL_TIMEOUT_SECONDS", "120")

        config = QRLoginConfig.from_env()

        assert config.user_center_url == "https://uc.example.com"
        assert config.env_version == "release"
        assert config.poll_timeout_seconds == 120.0

    def test_unset_variables_keep_defaults(self, monkeypatch):
        for var in ("ALMOND_USER_CENTER_URL", "ALMOND_WXA_ENV", "ALMOND_VALKEY_URL"):
            monkeypatch.delenv(var, raising=False)

        config = QRLoginConfig.from_env()

        assert config.user_center_url == "http://localhost:8080"
        assert config.valkey_url is None

    def test_invalid_value_fails_fast(self, monkeypatch):
        monkeypatch.setenv("ALMOND_WXA_ENV", "nightly")

        with pytest.raises(ValidationError):
            QRLoginConfig.from_env()
