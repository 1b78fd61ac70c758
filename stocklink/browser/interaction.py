"""
Download-control click strategies.

Issues the smallest sequence of clicks that makes the asset page start
its download flow.  The resulting network traffic is picked up by the
download interceptor; this module never waits for the download itself.

Strategy order
~~~~~~~~~~~~~~
1. Category-specific controls (for icons: the expander that reveals the
   format menu, then the format option inside it).
2. Generic download buttons shared by every category.
3. Any visible ``button``/``a`` whose text contains "download" but not
   "premium" or "upgrade", so upsell flows are never triggered.

Only visible elements are clicked: computed ``display`` is not ``none``,
``visibility`` is not ``hidden`` and the element has an ``offsetParent``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence

from playwright import async_api

from stocklink.extraction.categories import AssetCategory
from stocklink.utils import logger

log = logger.create_logger("Interaction")

# Upper bound on wall-clock time spent looking for controls.
_MAX_CLICK_TIME_SECONDS = 20.0

GENERIC_DOWNLOAD_SELECTORS: tuple[str, ...] = (
    'button[data-cy="download-button"]',
    '[data-cy="download-button"]',
    'button[data-cy="premium-download-button"]',
    '[data-cy="premium-download-button"]',
    'button[data-testid="download-button"]',
    '[data-testid="download-button"]',
)

ICON_EXPANDER_SELECTORS: tuple[str, ...] = (
    'button[data-cy="download-arrow-button"]',
    '[data-cy="download-arrow-button"]',
)

ICON_FORMAT_SELECTORS: tuple[str, ...] = (
    'button[data-cy="download-svg-button"]',
    '[data-cy="download-svg-button"]',
)

# Short labels compared by equality, never by substring.
ICON_FORMAT_LABELS: tuple[str, ...] = ("SVG",)

CATEGORY_SELECTORS: dict[AssetCategory, tuple[str, ...]] = {
    "icon": ICON_FORMAT_SELECTORS,
    "video": (
        'button[data-cy="video-download-button"]',
        '[data-cy="video-download-button"]',
    ),
    "3d": (
        'button[data-cy="3d-download-button"]',
        '[data-cy="3d-download-button"]',
    ),
    "audio": (
        'button[data-cy="audio-download-button"]',
        '[data-cy="audio-download-button"]',
    ),
    "photo": (),
    "vector": (),
    "psd": (),
    "template": (),
    "mockup": (),
    "font": (),
    "unknown": (),
}

TEXT_FALLBACK_SELECTORS: tuple[str, ...] = ("button", "a")
FORMAT_OPTION_SELECTORS: tuple[str, ...] = ("button", "a", '[role="menuitem"]', '[role="option"]')

# Marks controls that were already visible before the icon expander click.
REVEAL_MARKER_ATTR = "data-stocklink-seen"

IS_VISIBLE_JS = """
    el => {
        const style = window.getComputedStyle(el);
        return style.display !== 'none'
            && style.visibility !== 'hidden'
            && el.offsetParent !== null;
    }
"""

MARK_VISIBLE_JS = """
    ([selector, attr]) => {
        let marked = 0;
        for (const el of document.querySelectorAll(selector)) {
            const style = window.getComputedStyle(el);
            if (style.display !== 'none' && style.visibility !== 'hidden' && el.offsetParent !== null) {
                el.setAttribute(attr, '');
                marked++;
            }
        }
        return marked;
    }
"""


def is_download_label(text: str) -> bool:
    """Visible text of a plain download control, excluding upsell buttons."""
    lowered = text.lower()
    return "download" in lowered and "premium" not in lowered and "upgrade" not in lowered


def is_format_label(text: str) -> bool:
    """Exact (trimmed, case-insensitive) match against the icon format labels."""
    return text.strip().upper() in ICON_FORMAT_LABELS


def revealed_only(selectors: Sequence[str]) -> tuple[str, ...]:
    """Restrict *selectors* to elements not marked before the expander click."""
    return tuple(f"{selector}:not([{REVEAL_MARKER_ATTR}])" for selector in selectors)


async def trigger_download(
    page: async_api.Page,
    category: AssetCategory,
    *,
    reveal_delay: float = 3.0,
    control_wait_ms: int = 10000,
    click_timeout_ms: int = 3000,
) -> bool:
    """Click the control that starts the download for *category*.

    Returns ``True`` when any click was performed.  ``False`` is not an
    error: the page may still fetch the asset on its own.
    """
    deadline = time.monotonic() + _MAX_CLICK_TIME_SECONDS
    log.info("Looking for download control", {"category": category})
    await _wait_for_controls(page, control_wait_ms)

    if category == "icon" and await _reveal_icon_format(page, reveal_delay, click_timeout_ms, deadline):
        return True

    for selectors in (CATEGORY_SELECTORS[category], GENERIC_DOWNLOAD_SELECTORS):
        selector = await click_first_visible(page, selectors, timeout=click_timeout_ms, deadline=deadline)
        if selector:
            log.success("Clicked download control", {"selector": selector})
            return True

    if await click_first_matching_text(
        page, TEXT_FALLBACK_SELECTORS, is_download_label, timeout=click_timeout_ms, deadline=deadline
    ):
        return True

    if category == "icon" and await click_first_matching_text(
        page, ("button",), is_format_label, timeout=click_timeout_ms, deadline=deadline
    ):
        return True

    log.warn("No download control clicked", {"category": category})
    return False


async def _wait_for_controls(page: async_api.Page, timeout_ms: int) -> None:
    """Wait for any button to render; a bare page is not an error here."""
    if timeout_ms <= 0:
        return
    try:
        await page.wait_for_selector("button", timeout=timeout_ms)
    except async_api.Error:
        log.debug("No buttons rendered yet, continuing anyway", {"timeoutMs": timeout_ms})


async def _reveal_icon_format(
    page: async_api.Page,
    reveal_delay: float,
    click_timeout_ms: int,
    deadline: float,
) -> bool:
    """Two-step icon flow: open the format menu, then pick the format.

    Returns ``True`` once the expander was clicked, whether or not a
    format option could be clicked afterwards.
    """
    try:
        marked = await page.evaluate(MARK_VISIBLE_JS, [", ".join(FORMAT_OPTION_SELECTORS), REVEAL_MARKER_ATTR])
        log.debug("Marked controls visible before reveal", {"count": marked})
    except async_api.Error as exc:
        log.debug("Could not mark visible controls", {"error": str(exc)})

    expander = await click_first_visible(page, ICON_EXPANDER_SELECTORS, timeout=click_timeout_ms, deadline=deadline)
    if expander is None:
        log.debug("No icon format expander found")
        return False
    log.info("Opened icon format menu", {"selector": expander})
    await asyncio.sleep(reveal_delay)

    option = await click_first_visible(
        page, revealed_only(ICON_FORMAT_SELECTORS), timeout=click_timeout_ms, deadline=deadline
    )
    if option is None and await click_first_matching_text(
        page, revealed_only(FORMAT_OPTION_SELECTORS), is_format_label, timeout=click_timeout_ms, deadline=deadline
    ):
        option = "format-label"
    if option:
        log.success("Clicked icon format option", {"via": option})
    else:
        log.warn("Format menu opened but no format option was clickable")
    return True


# ============================================================================
# Element helpers
# ============================================================================


async def is_visible(locator: async_api.Locator, timeout: int = 2000) -> bool:
    """Evaluate the visibility test on *locator*; detached elements are not visible."""
    try:
        return bool(await locator.evaluate(IS_VISIBLE_JS, timeout=timeout))
    except async_api.Error:
        return False


async def _click(locator: async_api.Locator, timeout: int) -> bool:
    """Click through Playwright, falling back to a DOM ``click()`` if obscured."""
    try:
        await locator.click(timeout=timeout)
        return True
    except async_api.Error:
        log.debug("Pointer click failed, dispatching DOM click")
    try:
        await locator.evaluate("el => el.click()", timeout=timeout)
        return True
    except async_api.Error:
        return False


async def click_first_visible(
    scope: async_api.Page | async_api.Frame,
    selectors: Sequence[str],
    *,
    timeout: int = 3000,
    deadline: float = 0.0,
) -> str | None:
    """Click the first visible element matched by *selectors*, in order.

    Returns the selector that produced the click, or ``None``.
    """
    for selector in selectors:
        if deadline and time.monotonic() >= deadline:
            log.warn("Click attempt time limit reached")
            return None
        locator = scope.locator(selector)
        try:
            count = await locator.count()
        except async_api.Error:
            continue
        for index in range(count):
            candidate = locator.nth(index)
            if await is_visible(candidate) and await _click(candidate, timeout):
                return selector
    return None


async def click_first_matching_text(
    scope: async_api.Page | async_api.Frame,
    selectors: Sequence[str],
    predicate: Callable[[str], bool],
    *,
    timeout: int = 3000,
    deadline: float = 0.0,
) -> bool:
    """Click the first visible element whose text satisfies *predicate*."""
    for selector in selectors:
        locator = scope.locator(selector)
        try:
            count = await locator.count()
        except async_api.Error:
            continue
        for index in range(count):
            if deadline and time.monotonic() >= deadline:
                log.warn("Click attempt time limit reached")
                return False
            candidate = locator.nth(index)
            try:
                text = await candidate.text_content(timeout=timeout) or ""
            except async_api.Error:
                continue
            if predicate(text) and await is_visible(candidate) and await _click(candidate, timeout):
                log.success("Clicked control by text", {"text": text.strip()[:60]})
                return True
    return False
