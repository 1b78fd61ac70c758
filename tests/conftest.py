"""Shared fixtures for the test suite."""

from __future__ import annotations

import pathlib

import pytest

from stocklink.config import Settings
from stocklink.cookies.store import CookieStore
from stocklink.extraction.rules import RuleBook, get_default_rules


@pytest.fixture()
def rule_book() -> RuleBook:
    """The built-in CDN rules."""
    return get_default_rules()


@pytest.fixture()
def fast_settings(tmp_path: pathlib.Path) -> Settings:
    """Settings with every pause shortened so attempts finish in well under a second."""
    return Settings(
        cookie_file=tmp_path / "cookies.json",
        settle_seconds=0,
        control_wait_ms=0,
        icon_reveal_seconds=0,
        wait_timeout_seconds=0.3,
        poll_interval_seconds=0.02,
        attempt_timeout_seconds=5,
    )


@pytest.fixture()
def cookie_store(fast_settings: Settings) -> CookieStore:
    """Empty cookie store in the test's temp directory."""
    return CookieStore(fast_settings.cookie_file)
