"""Tests for stocklink.config: environment-driven settings."""

from __future__ import annotations

import pathlib
from unittest import mock

import pydantic
import pytest

from stocklink.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        with mock.patch.dict("os.environ", {}, clear=True):
            settings = Settings()
        assert settings.site_url == "https://www.freepik.com"
        assert settings.excluded_cookies == ["OptanonConsent"]
        assert settings.wait_timeout_seconds == 60.0
        assert settings.poll_interval_seconds == 1.0
        assert settings.navigation_wait_until == "domcontentloaded"
        assert settings.api_port == 3000

    def test_env_overrides(self) -> None:
        env = {
            "STOCKLINK_WAIT_TIMEOUT_SECONDS": "30",
            "STOCKLINK_HEADLESS": "false",
            "STOCKLINK_COOKIE_FILE": "/tmp/session.json",
            "STOCKLINK_EXCLUDED_COOKIES": '["OptanonConsent", "_ga"]',
        }
        with mock.patch.dict("os.environ", env, clear=True):
            settings = Settings()
        assert settings.wait_timeout_seconds == 30.0
        assert settings.headless is False
        assert settings.cookie_file == pathlib.Path("/tmp/session.json")
        assert settings.excluded_cookies == ["OptanonConsent", "_ga"]

    def test_attempt_timeout_must_exceed_wait(self) -> None:
        with pytest.raises(pydantic.ValidationError, match="attempt_timeout_seconds"):
            Settings(wait_timeout_seconds=60, attempt_timeout_seconds=60)

    def test_unknown_wait_until_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            Settings(navigation_wait_until="idle")  # type: ignore[arg-type]

    def test_poll_interval_must_be_positive(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            Settings(poll_interval_seconds=0)
