"""
Extraction error taxonomy and error message helpers.

Every failure of an extraction attempt surfaces to the caller as one of
the tagged ``ExtractionError`` subclasses below.  Nothing here is retried
internally; retry policy belongs to the caller.
"""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal["authentication", "timeout", "invalid-result", "resource"]


class ExtractionError(Exception):
    """Base class for tagged extraction failures."""

    kind: ErrorKind = "resource"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(ExtractionError):
    """The session landed on the login page; cookies are missing or expired."""

    kind: ErrorKind = "authentication"


class ClassificationTimeout(ExtractionError):
    """No observed URL satisfied the decision cascade within the wait budget."""

    kind: ErrorKind = "timeout"

    def __init__(self, category: str, elapsed_seconds: float) -> None:
        super().__init__(
            f"Failed to intercept download URL for {category} asset "
            f"within {elapsed_seconds:.1f}s"
        )
        self.category = category
        self.elapsed_seconds = elapsed_seconds


class InvalidResultError(ExtractionError):
    """A resolved URL still matches a known exclusion pattern."""

    kind: ErrorKind = "invalid-result"


class ResourceError(ExtractionError):
    """The browser session failed to boot or crashed mid-attempt."""

    kind: ErrorKind = "resource"


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.
    """
    if isinstance(error, Exception):
        return str(error) or type(error).__name__
    return "Unknown error"
