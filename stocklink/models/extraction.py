"""Pydantic models for observed network traffic and extraction outcomes."""

from __future__ import annotations

from typing import Literal

import pydantic

from stocklink.utils import errors, serialization

Direction = Literal["request", "response"]


class NetworkEvent(pydantic.BaseModel):
    """A request or response observed on the controlled page.

    Produced by the browser session's listeners and consumed only by the
    download interceptor; never persisted.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    url: str
    direction: Direction
    headers: dict[str, str] = pydantic.Field(default_factory=dict)
    status: int | None = None
    method: str | None = None

    def header(self, name: str) -> str | None:
        """Return a header value by case-insensitive name."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def is_redirect(self) -> bool:
        """True for responses carrying a 3xx status."""
        return self.direction == "response" and self.status is not None and 300 <= self.status < 400


class ExtractionResult(pydantic.BaseModel):
    """Outcome of a single extraction attempt: a URL or a tagged failure."""

    model_config = pydantic.ConfigDict(alias_generator=serialization.snake_to_camel, populate_by_name=True)

    url: str | None = None
    error_kind: errors.ErrorKind | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the attempt resolved a download URL."""
        return self.url is not None

    @classmethod
    def resolved(cls, url: str) -> ExtractionResult:
        """Build a successful result."""
        return cls(url=url)

    @classmethod
    def failed(cls, error: errors.ExtractionError) -> ExtractionResult:
        """Build a failure result from a tagged extraction error."""
        return cls(error_kind=error.kind, message=error.message)
