"""In-memory stand-ins for the Playwright page and the browser session.

Only the calls the interaction driver and the orchestrator make are
implemented.  Elements match a selector when the selector equals their
tag or is listed in their ``selectors``; a ``:not([attr])`` suffix
filters out elements carrying that attribute.
"""

from __future__ import annotations

import contextlib
import dataclasses
import re
from collections.abc import Callable, Iterator

from playwright import async_api

from stocklink.browser import interaction
from stocklink.config import Settings
from stocklink.cookies.input import SessionCookies
from stocklink.models import browser
from stocklink.models.extraction import NetworkEvent

_NOT_ATTR_RE = re.compile(r":not\(\[([\w-]+)\]\)$")


@dataclasses.dataclass
class FakeElement:
    tag: str = "button"
    text: str = ""
    selectors: set[str] = dataclasses.field(default_factory=set)
    visible: bool = True
    attrs: set[str] = dataclasses.field(default_factory=set)
    on_click: Callable[[], None] | None = None
    clicks: int = 0
    fail_pointer_click: bool = False

    def click(self) -> None:
        self.clicks += 1
        if self.on_click is not None:
            self.on_click()


class FakeElementLocator:
    def __init__(self, element: FakeElement) -> None:
        self._element = element

    async def evaluate(self, expression: str, arg: object = None, *, timeout: float | None = None) -> object:
        if expression == interaction.IS_VISIBLE_JS:
            return self._element.visible
        if "el.click()" in expression:
            self._element.click()
            return None
        raise AssertionError(f"Unexpected script: {expression!r}")

    async def click(self, *, timeout: float | None = None) -> None:
        if self._element.fail_pointer_click:
            raise async_api.Error("Element is outside of the viewport")
        self._element.click()

    async def text_content(self, *, timeout: float | None = None) -> str:
        return self._element.text


class FakeLocator:
    def __init__(self, matches: list[FakeElement]) -> None:
        self._matches = matches

    async def count(self) -> int:
        return len(self._matches)

    def nth(self, index: int) -> FakeElementLocator:
        return FakeElementLocator(self._matches[index])


class FakePage:
    def __init__(self, elements: list[FakeElement] | None = None, url: str = "about:blank") -> None:
        self.elements = elements or []
        self.url = url
        self.selectors_queried: list[str] = []

    def _matches(self, selector: str) -> list[FakeElement]:
        required_absent: str | None = None
        m = _NOT_ATTR_RE.search(selector)
        if m:
            required_absent = m.group(1)
            selector = selector[: m.start()]
        return [
            el
            for el in self.elements
            if (selector == el.tag or selector in el.selectors)
            and (required_absent is None or required_absent not in el.attrs)
        ]

    def locator(self, selector: str) -> FakeLocator:
        self.selectors_queried.append(selector)
        return FakeLocator(self._matches(selector))

    async def evaluate(self, expression: str, arg: object = None) -> object:
        if expression == interaction.MARK_VISIBLE_JS:
            selector_list, attr = arg  # type: ignore[misc]
            marked = 0
            for part in str(selector_list).split(", "):
                for el in self._matches(part):
                    if el.visible and attr not in el.attrs:
                        el.attrs.add(attr)
                        marked += 1
            return marked
        raise AssertionError(f"Unexpected script: {expression!r}")

    async def wait_for_selector(self, selector: str, *, timeout: float | None = None) -> None:
        if not self._matches(selector):
            raise async_api.Error(f"Timeout waiting for {selector}")


class FakeSession:
    """Scripted browser session recording what the orchestrator did with it."""

    def __init__(
        self,
        settings: Settings,
        *,
        landing_url: str | None = None,
        page: FakePage | None = None,
        nav_success: bool = True,
        launch_error: Exception | None = None,
        site_cookies: dict[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.landing_url = landing_url
        self.page = page or FakePage()
        self.nav_success = nav_success
        self.launch_error = launch_error
        self._site_cookies = site_cookies or {}

        self.crashed = False
        self.launched = False
        self.closed = False
        self.injected: SessionCookies | None = None
        self.navigated_to: list[str] = []
        self.intercept_calls = 0
        self.listeners_active = False
        self._callback: Callable[[NetworkEvent], None] | None = None

    async def launch(self) -> None:
        if self.launch_error is not None:
            raise self.launch_error
        self.launched = True

    async def add_cookies(self, cookies: SessionCookies) -> None:
        self.injected = cookies

    async def site_cookies(self) -> dict[str, str]:
        return dict(self._site_cookies)

    async def navigate(self, url: str) -> browser.NavigationResult:
        self.navigated_to.append(url)
        final_url = self.landing_url or url
        self.page.url = final_url
        if not self.nav_success:
            return browser.NavigationResult(
                success=False, final_url=final_url, status_code=404, error_message="Asset page returned HTTP 404"
            )
        return browser.NavigationResult(success=True, final_url=final_url, status_code=200)

    @contextlib.contextmanager
    def intercept(self, callback: Callable[[NetworkEvent], None]) -> Iterator[None]:
        self.intercept_calls += 1
        self._callback = callback
        self.listeners_active = True
        try:
            yield
        finally:
            self.listeners_active = False
            self._callback = None

    def emit(self, *events: NetworkEvent) -> None:
        assert self._callback is not None, "no listeners registered"
        for event in events:
            self._callback(event)

    async def close(self) -> None:
        self.closed = True


def request(url: str) -> NetworkEvent:
    """Shorthand for an outgoing GET request event."""
    return NetworkEvent(url=url, direction="request", method="GET")


def redirect(url: str, location: str, status: int = 302) -> NetworkEvent:
    """Shorthand for a redirect response event."""
    return NetworkEvent(url=url, direction="response", status=status, headers={"location": location}, method="GET")
