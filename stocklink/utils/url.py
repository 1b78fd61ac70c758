"""
URL and domain utility functions for asset pages and observed requests.
"""

from __future__ import annotations

import re
from urllib import parse

_TWO_PART_TLDS = frozenset([
    "co.uk", "com.au", "co.nz", "co.jp", "com.br",
    "co.in", "org.uk", "net.uk", "gov.uk",
])

# Path segments of the site's sign-in flow.  Landing on any of these
# after navigation means the session cookies were not accepted.
LOGIN_PATH_SEGMENTS = frozenset(["login", "log-in", "signin", "sign-in"])


def extract_domain(url: str) -> str:
    """Extract the hostname from a URL string."""
    try:
        parsed = parse.urlparse(url)
        return parsed.hostname or "unknown"
    except ValueError:
        return "unknown"


def get_base_domain(domain: str) -> str:
    """Extract the registrable base domain from a full hostname.

    Handles common multi-part TLDs (e.g. ``co.uk``,
    ``com.au``) and strips a leading ``www.`` prefix.

    Args:
        domain: A hostname like ``"www.freepik.com"``.

    Returns:
        The base domain, e.g. ``"freepik.com"``.
    """
    clean = re.sub(r"^www\.", "", domain).lower()
    parts = clean.split(".")
    if len(parts) >= 2:
        last_two = ".".join(parts[-2:])
        if last_two in _TWO_PART_TLDS and len(parts) >= 3:
            return ".".join(parts[-3:])
        return last_two
    return clean


def is_same_site(request_url: str, page_url: str) -> bool:
    """Whether *request_url* belongs to the same registrable domain as *page_url*."""
    request_domain = extract_domain(request_url)
    page_domain = extract_domain(page_url)
    if request_domain == "unknown" or page_domain == "unknown":
        return False
    return get_base_domain(request_domain) == get_base_domain(page_domain)


def normalize_asset_url(url: str) -> str:
    """Strip the query string and fragment from an asset page URL.

    Some fragments (``#from_element=...``, ``#uuid=...``) destabilise
    navigation on the asset page, and the query never selects the asset.
    """
    return url.split("#", 1)[0].split("?", 1)[0]


def _path_of(url: str) -> str:
    return parse.urlparse(url).path.lower().rstrip("/")


def is_login_url(url: str, target_url: str | None = None) -> bool:
    """Whether the page URL points into the site's sign-in flow.

    A segment whose stem (text before the first ``.``) is a login token
    always counts, so ``/login`` and ``/login.htm`` match.  Segments that
    merely start with a token (``/loginRedirect``) count only when the
    page is not the requested asset page itself, so a slug such as
    ``login-screen_1.htm`` on the target URL is not mistaken for a
    redirect to sign-in.

    Args:
        url: The URL the page landed on.
        target_url: The (normalized) URL that was requested, if known.
    """
    path = _path_of(url)
    segments = [s for s in path.split("/") if s]
    if any(segment.split(".", 1)[0] in LOGIN_PATH_SEGMENTS for segment in segments):
        return True
    if target_url is not None and path == _path_of(target_url):
        return False
    return any(segment.startswith(tuple(LOGIN_PATH_SEGMENTS)) for segment in segments)


def asset_slug(url: str) -> str:
    """Return the last path segment of an asset URL, used for log names."""
    path = parse.urlparse(url).path.rstrip("/")
    slug = path.rsplit("/", 1)[-1]
    return slug.removesuffix(".htm") or extract_domain(url)
