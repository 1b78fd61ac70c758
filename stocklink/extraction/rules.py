"""
CDN download rules per asset category.

Each category gets a ``CdnRule``: the CDN hosts that serve its signed
downloads, the file extensions a real download carries, and the URL
fragments that disqualify a request outright.  The defaults ship as
``data/cdn-rules.json``; an override file with the same layout can be
supplied through settings when the site moves its CDN around.

Matching is done on lowercase text.  Domain patterns are tested against
the hostname only, extensions against path and query only, so a host
such as ``foo.png.example.com`` never counts as a ``.png`` file.
"""

from __future__ import annotations

import json
import pathlib
import re
from typing import Any
from urllib import parse

import pydantic

from stocklink.extraction.categories import ASSET_CATEGORIES, AssetCategory
from stocklink.utils import logger

log = logger.create_logger("CdnRules")

DEFAULT_RULES_PATH = pathlib.Path(__file__).resolve().parent.parent / "data" / "cdn-rules.json"


def _lowercase_set(value: Any) -> Any:
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(item).lower() for item in value)
    return value


class CdnRule(pydantic.BaseModel):
    """Download-detection policy for one asset category."""

    model_config = pydantic.ConfigDict(frozen=True)

    candidate_domains: frozenset[str]
    candidate_extensions: frozenset[str]
    exclusion_substrings: frozenset[str] = frozenset()

    @pydantic.field_validator("candidate_domains", "candidate_extensions", "exclusion_substrings", mode="before")
    @classmethod
    def lowercase_entries(cls, value: Any) -> Any:
        """Store every pattern in lowercase."""
        return _lowercase_set(value)


class RuleBook(pydantic.BaseModel):
    """The complete rule set in force for the process lifetime."""

    model_config = pydantic.ConfigDict(frozen=True)

    rules: dict[AssetCategory, CdnRule]
    excluded_query_params: frozenset[str]
    download_path_markers: tuple[str, ...]

    @pydantic.field_validator("excluded_query_params", mode="before")
    @classmethod
    def lowercase_params(cls, value: Any) -> Any:
        """Query parameter names compare case-insensitively."""
        return _lowercase_set(value)

    @pydantic.model_validator(mode="after")
    def require_every_category(self) -> RuleBook:
        """Reject a rule book that leaves any category without a rule."""
        missing = [c for c in ASSET_CATEGORIES if c not in self.rules]
        if missing:
            raise ValueError(f"No CDN rule for categories: {', '.join(missing)}")
        return self

    def rule_for(self, category: AssetCategory) -> CdnRule:
        """Return the rule for *category*."""
        return self.rules[category]

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    @staticmethod
    def matches_domain(url: str, rule: CdnRule) -> bool:
        """Whether the URL's hostname contains one of the rule's CDN domains."""
        host = (parse.urlparse(url).hostname or "").lower()
        return bool(host) and any(domain in host for domain in rule.candidate_domains)

    @staticmethod
    def matches_extension(url: str, rule: CdnRule) -> bool:
        """Whether the URL's path or query names a file with one of the rule's extensions."""
        parsed = parse.urlparse(url)
        tail = f"{parsed.path}?{parsed.query}".lower()
        return any(_extension_pattern(ext).search(tail) for ext in rule.candidate_extensions)

    def is_excluded(self, url: str, rule: CdnRule) -> bool:
        """Hard exclusion: tracking pixels, account APIs, wallet/account parameters."""
        lowered = url.lower()
        if any(fragment in lowered for fragment in rule.exclusion_substrings):
            return True
        query_keys = {key.lower() for key in parse.parse_qs(parse.urlparse(url).query, keep_blank_values=True)}
        return bool(query_keys & self.excluded_query_params)

    def has_download_marker(self, url: str) -> bool:
        """Whether the URL path carries one of the generic download markers."""
        path = parse.urlparse(url).path.lower()
        return any(marker in path for marker in self.download_path_markers)


_extension_cache: dict[str, re.Pattern[str]] = {}


def _extension_pattern(ext: str) -> re.Pattern[str]:
    """Compile (once) a pattern matching *ext* at the end of a path or value."""
    pattern = _extension_cache.get(ext)
    if pattern is None:
        pattern = re.compile(re.escape(ext) + r"(?=$|[?&#/;])")
        _extension_cache[ext] = pattern
    return pattern


# ============================================================================
# Loading
# ============================================================================


def _read_json(path: pathlib.Path) -> dict[str, Any]:
    """Load a rules JSON object from disk."""
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Rules file must contain a JSON object: {path}")
    return data


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay *override* onto *base*; category entries are merged field by field."""
    merged = {**base, **{k: v for k, v in override.items() if k != "categories"}}
    categories = {name: dict(fields) for name, fields in base.get("categories", {}).items()}
    for name, fields in override.get("categories", {}).items():
        categories.setdefault(name, {}).update(fields)
    merged["categories"] = categories
    return merged


def build_rule_book(raw: dict[str, Any]) -> RuleBook:
    """Build a ``RuleBook`` from the JSON layout of ``cdn-rules.json``.

    Shared exclusions are folded into every category's own list.
    """
    shared = [str(s) for s in raw.get("shared_exclusions", [])]
    rules = {
        name: {
            "candidate_domains": fields.get("candidate_domains", []),
            "candidate_extensions": fields.get("candidate_extensions", []),
            "exclusion_substrings": [*shared, *fields.get("exclusion_substrings", [])],
        }
        for name, fields in raw.get("categories", {}).items()
    }
    return RuleBook.model_validate({
        "rules": rules,
        "excluded_query_params": raw.get("excluded_query_params", []),
        "download_path_markers": tuple(str(m).lower() for m in raw.get("download_path_markers", [])),
    })


def load_rules(override_path: pathlib.Path | None = None) -> RuleBook:
    """Load the default rules, optionally overlaid with an override file."""
    raw = _read_json(DEFAULT_RULES_PATH)
    if override_path is not None:
        raw = _merge(raw, _read_json(override_path))
        log.info("Loaded CDN rule overrides", {"path": str(override_path)})
    return build_rule_book(raw)


_default_rule_book: RuleBook | None = None


def get_default_rules() -> RuleBook:
    """Get the built-in rule book (lazy loaded and cached)."""
    global _default_rule_book
    if _default_rule_book is None:
        _default_rule_book = load_rules()
    return _default_rule_book
