"""
Runtime configuration.

Centralises environment variable names and defaults.  Uses
``pydantic_settings.BaseSettings`` so every field can be overridden with
a ``STOCKLINK_``-prefixed environment variable (``.env`` files are
loaded by the entry points through python-dotenv).
"""

from __future__ import annotations

import functools
import pathlib

import pydantic
import pydantic_settings

from stocklink.models import browser
from stocklink.utils import logger

log = logger.create_logger("Config")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class Settings(pydantic_settings.BaseSettings):
    """Settings for the browser session, extraction timing and front ends.

    Attributes:
        site_url: Home page of the stock site.
        cookie_domain: Domain the injected session cookies are scoped to.
        cookie_file: JSON file backing the cookie store.
        excluded_cookies: Cookies the site rotates itself; never forwarded.
        user_agent: Identity header presented by the browser context.
        headless: Run the browser without a window.
        browser_channel: Preferred Playwright channel; bundled Chromium
            is used when the channel is not installed.
        navigation_timeout_ms: Timeout for loading the asset page.
        navigation_wait_until: Load state that ends navigation.
        settle_seconds: Pause after navigation for client scripts to run.
        control_wait_ms: How long to wait for any button to render.
        icon_reveal_seconds: Pause between the icon expander click and the
            format option lookup.
        wait_timeout_seconds: Budget for the interceptor to resolve a URL.
        poll_interval_seconds: Cadence at which the resolved slot is polled.
        attempt_timeout_seconds: Outer limit for a whole extraction.
        rules_file: Optional JSON overlay for the CDN rules.
        api_host: Bind address of the HTTP front end.
        api_port: Port of the HTTP front end.
    """

    model_config = pydantic_settings.SettingsConfigDict(env_prefix="STOCKLINK_", extra="ignore")

    site_url: str = "https://www.freepik.com"
    cookie_domain: str = ".freepik.com"
    cookie_file: pathlib.Path = pathlib.Path("cookies.json")
    excluded_cookies: list[str] = pydantic.Field(default_factory=lambda: ["OptanonConsent"])
    user_agent: str = DEFAULT_USER_AGENT
    headless: bool = True
    browser_channel: str | None = "chrome"
    navigation_timeout_ms: int = pydantic.Field(default=60000, gt=0)
    navigation_wait_until: browser.WaitUntil = "domcontentloaded"
    settle_seconds: float = pydantic.Field(default=5.0, ge=0)
    control_wait_ms: int = pydantic.Field(default=10000, ge=0)
    icon_reveal_seconds: float = pydantic.Field(default=3.0, ge=0)
    wait_timeout_seconds: float = pydantic.Field(default=60.0, gt=0)
    poll_interval_seconds: float = pydantic.Field(default=1.0, gt=0)
    attempt_timeout_seconds: float = pydantic.Field(default=180.0, gt=0)
    rules_file: pathlib.Path | None = None
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    @pydantic.model_validator(mode="after")
    def check_timeouts(self) -> Settings:
        """The outer attempt limit must leave room for the wait budget."""
        if self.attempt_timeout_seconds <= self.wait_timeout_seconds:
            raise ValueError("attempt_timeout_seconds must exceed wait_timeout_seconds")
        return self


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings (read from the environment once)."""
    settings = Settings()
    log.debug("Settings loaded", {"siteUrl": settings.site_url, "headless": settings.headless})
    return settings
