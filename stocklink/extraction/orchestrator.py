"""
Extraction orchestrator.

Coordinates one end-to-end extraction: fresh browser session, cookie
injection, navigation, login check, category detection, the download
click, and polling the interceptor until it resolves or the wait budget
runs out.  This is the only component that opens or closes a browser
session, and it closes it on every exit path.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Protocol

from playwright import async_api

from stocklink.browser import interaction
from stocklink.browser.session import BrowserSession
from stocklink.config import Settings, get_settings
from stocklink.cookies import input as cookie_input
from stocklink.cookies.store import CookieStore
from stocklink.extraction import categories
from stocklink.extraction.categories import AssetCategory
from stocklink.extraction.interceptor import DownloadInterceptor
from stocklink.extraction.rules import RuleBook, get_default_rules, load_rules
from stocklink.models.extraction import ExtractionResult
from stocklink.utils import errors, logger
from stocklink.utils import url as url_mod

log = logger.create_logger("Extractor")

CookiePayload = str | Mapping[str, object] | cookie_input.CookieInput

DownloadDriver = Callable[..., Awaitable[bool]]


class SessionFactory(Protocol):
    """Builds a browser session for one attempt."""

    def __call__(self, settings: Settings) -> BrowserSession: ...


class Extractor:
    """Resolves direct download URLs, one attempt at a time.

    Calls on the same instance are serialized; each call boots its own
    browser session and tears it down before returning.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session_factory: SessionFactory = BrowserSession,
        cookie_store: CookieStore | None = None,
        rules: RuleBook | None = None,
        driver: DownloadDriver = interaction.trigger_download,
    ) -> None:
        self._settings = settings or get_settings()
        self._session_factory = session_factory
        self._cookie_store = cookie_store or CookieStore(self._settings.cookie_file)
        if rules is None:
            rules = load_rules(self._settings.rules_file) if self._settings.rules_file else get_default_rules()
        self._rules = rules
        self._driver = driver
        self._session: BrowserSession | None = None
        self._lock = asyncio.Lock()

    @property
    def cookie_store(self) -> CookieStore:
        """The store consulted when a call carries no cookies."""
        return self._cookie_store

    # ==========================================================================
    # Public API
    # ==========================================================================

    async def extract(self, target_url: str, cookies: CookiePayload | None = None) -> str:
        """Return the direct download URL for the asset at *target_url*.

        Args:
            target_url: Asset page on the stock site.
            cookies: Session cookies as a ``Cookie`` header string or a
                name → value mapping.  Defaults to the cookie store.

        Raises:
            errors.AuthenticationError: The page redirected to the login page.
            errors.ClassificationTimeout: No URL qualified within the wait budget.
            errors.ResourceError: The browser failed to boot or crashed.
        """
        async with self._lock:
            return await self._extract_once(target_url, cookies)

    async def run(self, target_url: str, cookies: CookiePayload | None = None) -> ExtractionResult:
        """Like :meth:`extract`, but reports tagged failures as a result value."""
        try:
            return ExtractionResult.resolved(await self.extract(target_url, cookies))
        except errors.ExtractionError as error:
            return ExtractionResult.failed(error)

    async def close(self) -> None:
        """Tear down a session left over from an interrupted call."""
        if self._session is not None:
            session, self._session = self._session, None
            await _close_quietly(session)

    # ==========================================================================
    # Attempt
    # ==========================================================================

    async def _extract_once(self, target_url: str, cookies: CookiePayload | None) -> str:
        settings = self._settings
        clean_url = url_mod.normalize_asset_url(target_url.strip())
        logger.start_log_file(url_mod.asset_slug(clean_url))
        log.section(f"Extracting: {clean_url}")
        log.start_timer("extraction")

        # Sessions are never reused across calls.
        await self.close()

        try:
            async with asyncio.timeout(settings.attempt_timeout_seconds):
                url = await self._attempt(clean_url, cookies)
            log.end_timer("extraction", "Extraction complete")
            return url
        except errors.ExtractionError as error:
            log.error("Extraction failed", {"kind": error.kind, "error": error.message})
            raise
        except TimeoutError as exc:
            log.error("Extraction attempt timed out", {"timeoutSeconds": settings.attempt_timeout_seconds})
            raise errors.ResourceError(
                f"Extraction attempt exceeded {settings.attempt_timeout_seconds:.0f}s"
            ) from exc
        except (async_api.Error, OSError, RuntimeError) as exc:
            log.error("Browser session failed", {"error": errors.get_error_message(exc)})
            raise errors.ResourceError(f"Browser session failed: {errors.get_error_message(exc)}") from exc
        finally:
            await self.close()
            logger.end_log_file()

    async def _attempt(self, clean_url: str, cookies: CookiePayload | None) -> str:
        settings = self._settings
        session = self._session_factory(settings)
        self._session = session

        session_cookies, from_store = self._resolve_cookies(cookies)

        log.subsection("Browser Setup")
        await session.launch()
        await session.add_cookies(session_cookies)

        log.subsection("Navigation")
        nav = await session.navigate(clean_url)
        if url_mod.is_login_url(nav.final_url, clean_url):
            raise errors.AuthenticationError(
                "Redirected to login page - cookies may be invalid or expired"
            )
        if not nav.success:
            raise errors.ResourceError(nav.error_message or "Navigation failed")

        if from_store:
            await self._refresh_stored_cookies(session)

        category = categories.classify(clean_url)
        log.info("Detected asset category", {"category": category})

        log.subsection("Download Interception")
        interceptor = DownloadInterceptor(category, self._rules, clean_url)
        with session.intercept(interceptor.observe):
            clicked = await self._driver(
                session.page,
                category,
                reveal_delay=settings.icon_reveal_seconds,
                control_wait_ms=settings.control_wait_ms,
            )
            if not clicked:
                log.info("No control clicked; waiting for page traffic anyway")
            return await self._wait_for_resolution(session, interceptor, category)

    async def _wait_for_resolution(
        self,
        session: BrowserSession,
        interceptor: DownloadInterceptor,
        category: AssetCategory,
    ) -> str:
        """Poll the interceptor's slot until it resolves or the budget is spent."""
        settings = self._settings
        started = time.monotonic()
        log.info("Waiting for download URL interception...", {"budgetSeconds": settings.wait_timeout_seconds})

        while interceptor.resolved_url is None and time.monotonic() - started < settings.wait_timeout_seconds:
            if session.crashed:
                raise errors.ResourceError("Page crashed while waiting for the download")
            await asyncio.sleep(settings.poll_interval_seconds)

        resolved = interceptor.resolved_url or interceptor.expire()
        elapsed = time.monotonic() - started
        if resolved is None:
            raise errors.ClassificationTimeout(category, elapsed)
        log.success(
            "Resolved download URL",
            {"rule": interceptor.resolved_rule, "waitedSeconds": round(elapsed, 1), "url": resolved},
        )
        return resolved

    # ==========================================================================
    # Cookies
    # ==========================================================================

    def _resolve_cookies(self, cookies: CookiePayload | None) -> tuple[cookie_input.SessionCookies, bool]:
        """Resolve the call's cookies; the flag tells whether the store supplied them."""
        exclude = self._settings.excluded_cookies
        if cookies is not None:
            tagged = cookie_input.coerce_input(cookies)
            return cookie_input.resolve(tagged, exclude), False
        stored = cookie_input.NameValueMap(self._cookie_store.load())
        return cookie_input.resolve(stored, exclude), True

    async def _refresh_stored_cookies(self, session: BrowserSession) -> None:
        """Write the session's current cookies back after an authenticated load."""
        current = await session.site_cookies()
        excluded = set(self._settings.excluded_cookies)
        refreshed = {name: value for name, value in current.items() if name not in excluded}
        if refreshed:
            self._cookie_store.save(refreshed)


async def _close_quietly(session: BrowserSession) -> None:
    try:
        await session.close()
    except Exception as err:
        log.warn("Error during browser cleanup", {"error": errors.get_error_message(err)})


async def extract(target_url: str, cookies: CookiePayload | None = None) -> str:
    """Resolve a download URL with default settings (see :meth:`Extractor.extract`)."""
    return await Extractor().extract(target_url, cookies)
