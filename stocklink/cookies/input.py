"""
Cookie payloads accepted at the extraction boundary.

Callers hand cookies over either as a raw ``Cookie`` header string
(``"a=1; b=2"``) or as a name → value mapping.  Both are resolved once,
here, into the canonical ``SessionCookies`` value that the browser
session consumes.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Iterable, Iterator, Mapping
from urllib import parse

from stocklink.utils import logger

log = logger.create_logger("Cookies")


@dataclasses.dataclass(frozen=True)
class RawHeaderString:
    """A serialized ``Cookie`` header, e.g. copied from browser devtools."""

    value: str


@dataclasses.dataclass(frozen=True)
class NameValueMap:
    """An explicit cookie name → value mapping."""

    values: Mapping[str, str]


CookieInput = RawHeaderString | NameValueMap


@dataclasses.dataclass(frozen=True)
class SessionCookies:
    """Canonical cookie set for one extraction attempt."""

    values: Mapping[str, str] = dataclasses.field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.values.items())

    def as_dict(self) -> dict[str, str]:
        """Return a plain, mutable copy of the cookie mapping."""
        return dict(self.values)


def parse_cookie_header(header: str) -> dict[str, str]:
    """Split a ``Cookie`` header into a mapping.

    Pairs are separated by ``;``, split on the first ``=``, and values
    are URL-decoded.  Fragments without ``=`` are ignored.
    """
    cookies: dict[str, str] = {}
    for pair in header.split(";"):
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        cookies[name] = parse.unquote(value.strip())
    return cookies


def coerce_input(value: str | Mapping[str, object] | CookieInput) -> CookieInput:
    """Tag an untyped payload from an outer surface (CLI, HTTP, env).

    A string holding a JSON object is read as a mapping; any other string
    is treated as a ``Cookie`` header.

    Raises:
        ValueError: If a JSON payload is not an object.
    """
    if isinstance(value, (RawHeaderString, NameValueMap)):
        return value
    if isinstance(value, Mapping):
        return NameValueMap({str(k): str(v) for k, v in value.items()})

    text = value.strip()
    if text.startswith("{"):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid cookie JSON: {exc.msg}") from exc
        if not isinstance(decoded, dict):
            raise ValueError("Cookie JSON must be an object of name/value pairs")
        return NameValueMap({str(k): str(v) for k, v in decoded.items()})
    return RawHeaderString(text)


def resolve(cookie_input: CookieInput, exclude: Iterable[str] = ()) -> SessionCookies:
    """Resolve a tagged payload into ``SessionCookies``, dropping *exclude* names."""
    if isinstance(cookie_input, RawHeaderString):
        raw = parse_cookie_header(cookie_input.value)
    else:
        raw = {str(k): str(v) for k, v in cookie_input.values.items()}

    excluded = set(exclude)
    dropped = sorted(name for name in raw if name in excluded)
    if dropped:
        log.debug("Dropping rotated cookies", {"names": dropped})
    return SessionCookies({name: value for name, value in raw.items() if name not in excluded})
