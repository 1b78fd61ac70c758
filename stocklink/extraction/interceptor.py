"""
Download URL interception.

Watches the requests and responses a page makes during one extraction
attempt and decides which single URL is the genuine asset download.

The site serves real files from a handful of signed CDN hosts, but it
also fires look-alike requests for usage tracking and account APIs.
Only the co-occurrence of a CDN host and a file extension is treated as
conclusive, so the rules are tiered:

1. CDN domain + file extension: accepted immediately.
2. CDN domain only (typical of redirect-chain hops): held back, accepted
   when the wait budget runs out and rule 1 never fired.
3. 3xx ``Location`` headers are evaluated as if they were requests, for
   rules 1 and 2 only.
4. Generic download path marker on the target site's own domain: held
   back, accepted last.

Hard exclusions (tracking pixel, account/billing APIs, wallet or account
identifier parameters) are applied to every candidate before any rule.
When nothing qualifies the attempt times out; no URL is ever guessed.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal
from urllib import parse

from stocklink.extraction.categories import AssetCategory
from stocklink.extraction.rules import CdnRule, RuleBook
from stocklink.models.extraction import NetworkEvent
from stocklink.utils import logger
from stocklink.utils import url as url_mod

log = logger.create_logger("Interceptor")

InterceptorState = Literal["waiting", "resolved", "timed-out"]

# Rule tiers, lower is stronger.
RULE_CDN_WITH_EXTENSION = 1
RULE_CDN_ONLY = 2
RULE_SITE_FALLBACK = 4


class DownloadInterceptor:
    """Write-once classifier over the network events of a single attempt.

    State machine: ``waiting`` → ``resolved`` or ``waiting`` → ``timed-out``.
    Both end states are terminal; build a new instance per attempt.
    """

    def __init__(
        self,
        category: AssetCategory,
        rule_book: RuleBook,
        site_url: str,
    ) -> None:
        """Create an interceptor for *category* on the page at *site_url*."""
        self.category = category
        self._rule_book = rule_book
        self._rule: CdnRule = rule_book.rule_for(category)
        self._site_url = site_url

        self._state: InterceptorState = "waiting"
        self._resolved_url: str | None = None
        self._resolved_rule: int | None = None
        self._cdn_only_candidate: str | None = None
        self._fallback_candidate: str | None = None
        self._events_seen = 0

    # ==========================================================================
    # State
    # ==========================================================================

    @property
    def state(self) -> InterceptorState:
        """Current state of the attempt."""
        return self._state

    @property
    def resolved_url(self) -> str | None:
        """The accepted download URL, once resolved."""
        return self._resolved_url

    @property
    def resolved_rule(self) -> int | None:
        """Which rule tier produced the resolved URL."""
        return self._resolved_rule

    @property
    def events_seen(self) -> int:
        """Number of events fed to the interceptor so far."""
        return self._events_seen

    @property
    def is_terminal(self) -> bool:
        """True once the attempt resolved or timed out."""
        return self._state != "waiting"

    # ==========================================================================
    # Classification
    # ==========================================================================

    def rank(self, url: str) -> int | None:
        """Return the rule tier *url* qualifies for, or ``None``.

        Excluded URLs never qualify for any tier.
        """
        if self._rule_book.is_excluded(url, self._rule):
            return None
        if self._rule_book.matches_domain(url, self._rule):
            if self._rule_book.matches_extension(url, self._rule):
                return RULE_CDN_WITH_EXTENSION
            return RULE_CDN_ONLY
        if self._rule_book.has_download_marker(url) and url_mod.is_same_site(url, self._site_url):
            return RULE_SITE_FALLBACK
        return None

    def observe(self, event: NetworkEvent) -> None:
        """Feed one network event through the rule cascade."""
        if self.is_terminal:
            return
        self._events_seen += 1

        self._consider(event.url, allow_fallback=True)

        if event.is_redirect:
            location = event.header("location")
            if location:
                absolute = parse.urljoin(event.url, location)
                log.debug("Redirect observed", {"status": event.status, "location": absolute})
                self._consider(absolute, allow_fallback=False)

    def observe_batch(self, events: Iterable[NetworkEvent]) -> None:
        """Feed several events at once, letting rule priority beat arrival order.

        Every event is ranked before any is accepted, so a rule-1 URL
        anywhere in the batch wins over weaker candidates that arrived
        earlier in the same batch.

        The live browser path feeds events one at a time through
        :meth:`observe`; this entry point is for replaying a recorded batch
        of traffic (a captured HAR or test fixture) against the rules.
        """
        pending = list(events)
        if self.is_terminal or not pending:
            return
        for event in sorted(pending, key=lambda e: 0 if self._has_strong_candidate(e) else 1):
            self.observe(event)

    def expire(self) -> str | None:
        """Close the attempt once the wait budget is spent.

        Promotes the best held-back candidate (CDN-only first, then the
        site fallback) or moves to ``timed-out``.  Returns the resolved
        URL, if any.
        """
        if self.is_terminal:
            return self._resolved_url
        if self._cdn_only_candidate is not None:
            self._resolve(self._cdn_only_candidate, RULE_CDN_ONLY)
        elif self._fallback_candidate is not None:
            self._resolve(self._fallback_candidate, RULE_SITE_FALLBACK)
        else:
            self._state = "timed-out"
            log.warn(
                "No download URL qualified before the deadline",
                {"category": self.category, "eventsSeen": self._events_seen},
            )
        return self._resolved_url

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _has_strong_candidate(self, event: NetworkEvent) -> bool:
        if self.rank(event.url) == RULE_CDN_WITH_EXTENSION:
            return True
        location = event.header("location") if event.is_redirect else None
        return bool(location) and self.rank(parse.urljoin(event.url, location)) == RULE_CDN_WITH_EXTENSION

    def _consider(self, url: str, *, allow_fallback: bool) -> None:
        if self.is_terminal:
            return
        tier = self.rank(url)
        if tier is None:
            if self._rule_book.is_excluded(url, self._rule):
                log.debug("Excluded URL dropped", {"url": url})
            return

        if tier == RULE_CDN_WITH_EXTENSION:
            self._resolve(url, tier)
        elif tier == RULE_CDN_ONLY:
            if self._cdn_only_candidate is None:
                self._cdn_only_candidate = url
                log.debug("CDN candidate held back (no file extension)", {"url": url})
        elif allow_fallback and self._fallback_candidate is None:
            self._fallback_candidate = url
            log.debug("Site download candidate held back", {"url": url})

    def _resolve(self, url: str, tier: int) -> None:
        # The slot is written at most once per attempt.
        if self._resolved_url is not None:
            return
        self._resolved_url = url
        self._resolved_rule = tier
        self._state = "resolved"
        log.success(
            "Captured download URL",
            {"category": self.category, "rule": tier, "url": url},
        )
