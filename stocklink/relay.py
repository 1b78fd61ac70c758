"""
Helpers for front ends that relay extraction results to people.

Covers the parts of a chat front end that do not depend on a chat
transport: finding an asset URL in free text, rejecting resolved URLs
that still look like tracking or API traffic, and wording the reply.
"""

from __future__ import annotations

import re

from stocklink.extraction import categories
from stocklink.extraction.orchestrator import Extractor
from stocklink.extraction.rules import RuleBook, get_default_rules
from stocklink.utils import errors, logger

log = logger.create_logger("Relay")

SUPPORTED_SITE_RE = re.compile(
    r"https?://(?:[a-z0-9-]+\.)*(?:freepik\.com|flaticon\.com)/[^\s<>\"']*",
    re.IGNORECASE,
)

WELCOME_MESSAGE = (
    "Welcome! Send me a Freepik or Flaticon asset URL and I'll reply with a direct download link.\n\n"
    "Example: https://www.freepik.com/premium-psd/your-design_1234567.htm"
)
HELP_MESSAGE = "Send me any Freepik or Flaticon asset URL and I'll provide a direct download link."
PROMPT_MESSAGE = "Please send me a valid Freepik or Flaticon URL.\n\nType /help for more information."
FAILURE_MESSAGES: dict[errors.ErrorKind, str] = {
    "authentication": "Sorry, the stored session has expired. Please refresh the account cookies and try again.",
    "timeout": "Sorry, I couldn't capture a download link in time. Please check the URL and try again.",
    "invalid-result": "Sorry, the site returned something that isn't a downloadable file.",
    "resource": "Sorry, the browser failed while fetching the link. Please try again later.",
}


def find_asset_url(text: str) -> str | None:
    """Return the first supported stock-site URL in *text*."""
    match = SUPPORTED_SITE_RE.search(text)
    if match is None:
        return None
    return match.group(0).rstrip(".,;:!?)")


def validate_result(url: str, rule_book: RuleBook | None = None) -> str:
    """Reject a resolved URL that still matches a hard exclusion.

    Such a URL means the interceptor's rules have a gap; it is logged
    as a correctness signal rather than passed on.

    Raises:
        errors.InvalidResultError: If *url* is an API endpoint or an
            excluded tracking/account URL.
    """
    book = rule_book or get_default_rules()
    if "/api/" in url.lower() or book.is_excluded(url, book.rule_for("unknown")):
        log.error("Resolved URL matches an exclusion pattern", {"url": url})
        raise errors.InvalidResultError("Extracted link is an API endpoint, not a direct download URL")
    return url


async def reply_for_message(text: str, extractor: Extractor) -> str:
    """Compose the chat reply for one incoming message."""
    command = text.strip()
    if command == "/start":
        return WELCOME_MESSAGE
    if command == "/help":
        return HELP_MESSAGE

    asset_url = find_asset_url(text)
    if asset_url is None:
        return PROMPT_MESSAGE

    log.info("Relaying extraction", {"url": asset_url, "category": categories.classify(asset_url)})
    try:
        link = validate_result(await extractor.extract(asset_url))
    except errors.ExtractionError as error:
        log.warn("Extraction failed for chat request", {"kind": error.kind, "error": error.message})
        return FAILURE_MESSAGES[error.kind]
    return f"Here's your direct download link:\n\n{link}\n\nClick the link to download the file directly!"
