"""
On-disk cookie store.

A flat JSON object of cookie name → value, read when an extraction
starts and overwritten wholesale on save.  There is no locking: two
processes sharing one file will race.
"""

from __future__ import annotations

import json
import pathlib
from collections.abc import Mapping

from stocklink.utils import logger

log = logger.create_logger("CookieStore")


class CookieStore:
    """Persists the session cookie mapping to a JSON file."""

    def __init__(self, path: pathlib.Path | str) -> None:
        self._path = pathlib.Path(path)

    @property
    def path(self) -> pathlib.Path:
        """Location of the backing file."""
        return self._path

    def load(self) -> dict[str, str]:
        """Return the stored cookies, or an empty mapping when none are saved.

        Raises:
            ValueError: If the file exists but does not hold a JSON object.
        """
        if not self._path.exists():
            log.debug("No cookie file yet", {"path": str(self._path)})
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in cookie file {self._path}: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Cookie file {self._path} must contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def save(self, cookies: Mapping[str, str]) -> None:
        """Replace the stored cookies with *cookies*."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({str(k): str(v) for k, v in cookies.items()}), encoding="utf-8")
        log.info("Cookies saved", {"count": len(cookies), "path": str(self._path)})

    def has_cookies(self) -> bool:
        """Whether at least one cookie is stored."""
        return bool(self.load())
