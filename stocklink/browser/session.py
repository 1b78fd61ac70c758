"""
Browser session management for a single extraction attempt.

Each ``BrowserSession`` owns one Playwright instance, browser, context and
page.  The extraction orchestrator creates a fresh session per call and
closes it on every exit path; nothing here is shared between attempts.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Iterator

from playwright import async_api

from stocklink.config import Settings
from stocklink.cookies.input import SessionCookies
from stocklink.models import browser
from stocklink.models.extraction import NetworkEvent
from stocklink.utils import logger

log = logger.create_logger("BrowserSession")

EventCallback = Callable[[NetworkEvent], None]

# Masks the most common automation fingerprints.
_STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
    if (!window.chrome) {
        window.chrome = { runtime: {} };
    }
"""


# ============================================================================
# Playwright → NetworkEvent conversion
# ============================================================================


def event_from_request(request: async_api.Request) -> NetworkEvent:
    """Convert an outgoing Playwright request into a ``NetworkEvent``."""
    return NetworkEvent(
        url=request.url,
        direction="request",
        headers=dict(request.headers),
        method=request.method,
    )


def event_from_response(response: async_api.Response) -> NetworkEvent:
    """Convert an incoming Playwright response into a ``NetworkEvent``."""
    return NetworkEvent(
        url=response.url,
        direction="response",
        headers=dict(response.headers),
        status=response.status,
        method=response.request.method,
    )


def event_from_download(download: async_api.Download) -> NetworkEvent:
    """A browser-initiated download is reported as a plain GET request."""
    return NetworkEvent(url=download.url, direction="request", method="GET")


class BrowserSession:
    """
    Manages an isolated browser for one extraction attempt.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialise a session; nothing is launched until :meth:`launch`."""
        self._settings = settings
        self._playwright: async_api.Playwright | None = None
        self._browser: async_api.Browser | None = None
        self._context: async_api.BrowserContext | None = None
        self._page: async_api.Page | None = None
        self._crashed = False

    # ==========================================================================
    # State Getters
    # ==========================================================================

    @property
    def page(self) -> async_api.Page:
        """Return the active page.

        Raises:
            RuntimeError: If the session has not been launched.
        """
        if self._page is None:
            raise RuntimeError("No browser session active")
        return self._page

    @property
    def current_url(self) -> str:
        """URL the page currently shows."""
        return self.page.url

    @property
    def is_active(self) -> bool:
        """True between a successful launch and close."""
        return self._page is not None

    @property
    def crashed(self) -> bool:
        """True once the page crashed or was closed underneath the session."""
        return self._crashed

    # ==========================================================================
    # Browser Lifecycle
    # ==========================================================================

    async def launch(self) -> None:
        """Launch Chromium and open a page with the configured identity."""
        settings = self._settings
        log.info("Launching browser", {"headless": settings.headless, "channel": settings.browser_channel})

        self._playwright = await async_api.async_playwright().start()
        launch_kwargs: dict[str, object] = {
            "headless": settings.headless,
            "args": [
                "--no-first-run",
                "--no-default-browser-check",
                "--disable-blink-features=AutomationControlled",
                "--disable-infobars",
            ],
        }

        if settings.browser_channel:
            try:
                self._browser = await self._playwright.chromium.launch(
                    channel=settings.browser_channel, **launch_kwargs  # type: ignore[arg-type]
                )
                log.info("Launched browser channel", {"channel": settings.browser_channel})
            except async_api.Error:
                log.info("Browser channel not available, falling back to bundled Chromium")
        if self._browser is None:
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)  # type: ignore[arg-type]

        self._context = await self._browser.new_context(
            user_agent=settings.user_agent,
            viewport={"width": 1440, "height": 900},
            locale="en-US",
            accept_downloads=True,
        )
        await self._context.add_init_script(_STEALTH_INIT_SCRIPT)

        self._page = await self._context.new_page()
        self._page.on("crash", self._on_crash)
        log.debug("Browser launched", {"userAgent": settings.user_agent})

    def _on_crash(self, _page: async_api.Page) -> None:
        self._crashed = True
        log.error("Page crashed")

    async def add_cookies(self, cookies: SessionCookies) -> None:
        """Inject the session cookies for the site's cookie domain."""
        if self._context is None:
            raise RuntimeError("No browser session active")
        if not len(cookies):
            log.warn("No session cookies to inject")
            return
        await self._context.add_cookies([
            {
                "name": name,
                "value": value,
                "domain": self._settings.cookie_domain,
                "path": "/",
                "httpOnly": False,
                "secure": True,
            }
            for name, value in cookies
        ])
        log.debug("Cookies injected", {"count": len(cookies), "domain": self._settings.cookie_domain})

    async def site_cookies(self) -> dict[str, str]:
        """Return the context's current cookies for the site as name → value."""
        if self._context is None:
            return {}
        cookies = await self._context.cookies(self._settings.site_url)
        return {c["name"]: c["value"] for c in cookies if "name" in c and "value" in c}

    # ==========================================================================
    # Navigation
    # ==========================================================================

    async def navigate(self, url: str) -> browser.NavigationResult:
        """Load *url*, then give client-side scripts a moment to run."""
        page = self.page
        settings = self._settings
        log.debug("Navigating", {"url": url, "waitUntil": settings.navigation_wait_until})
        try:
            response = await page.goto(
                url,
                wait_until=settings.navigation_wait_until,
                timeout=settings.navigation_timeout_ms,
            )
        except async_api.Error as error:
            log.warn("Navigation error", {"url": url, "error": str(error)})
            return browser.NavigationResult(success=False, final_url=page.url, error_message=str(error))

        status_code = response.status if response else None
        status_text = response.status_text if response else None
        if status_code is not None and status_code >= 400:
            return browser.NavigationResult(
                success=False,
                final_url=page.url,
                status_code=status_code,
                status_text=status_text,
                error_message=f"Asset page returned HTTP {status_code}",
            )

        await asyncio.sleep(settings.settle_seconds)
        final_url = page.url
        if final_url != url:
            log.info("Redirected", {"from": url, "to": final_url})
        return browser.NavigationResult(
            success=True,
            final_url=final_url,
            status_code=status_code,
            status_text=status_text,
        )

    # ==========================================================================
    # Network Interception
    # ==========================================================================

    @contextlib.contextmanager
    def intercept(self, callback: EventCallback) -> Iterator[None]:
        """Feed every request, response and download to *callback* while open.

        The listeners are removed when the block exits, including on errors.
        """
        page = self.page

        def on_request(request: async_api.Request) -> None:
            callback(event_from_request(request))

        def on_response(response: async_api.Response) -> None:
            callback(event_from_response(response))

        def on_download(download: async_api.Download) -> None:
            callback(event_from_download(download))

        page.on("request", on_request)
        page.on("response", on_response)
        page.on("download", on_download)
        log.debug("Network listeners registered")
        try:
            yield
        finally:
            page.remove_listener("request", on_request)
            page.remove_listener("response", on_response)
            page.remove_listener("download", on_download)
            log.debug("Network listeners removed")

    # ==========================================================================
    # Cleanup
    # ==========================================================================

    async def close(self) -> None:
        """Close the browser and release every Playwright resource."""
        log.debug("Closing browser session")
        if self._page is not None:
            self._page.remove_listener("crash", self._on_crash)
            self._page = None

        if self._context is not None:
            try:
                await self._context.close()
            except async_api.Error as exc:
                log.debug("Context close error (non-fatal)", {"error": str(exc)})
            self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except async_api.Error as exc:
                log.debug("Browser close error (non-fatal)", {"error": str(exc)})
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.debug("Playwright stop error (non-fatal)", {"error": str(exc)})
            self._playwright = None
        log.debug("Browser session closed")
