"""Direct download link extraction for stock-media assets."""

from stocklink.extraction.orchestrator import Extractor, extract
from stocklink.utils.errors import (
    AuthenticationError,
    ClassificationTimeout,
    ExtractionError,
    InvalidResultError,
    ResourceError,
)

__all__ = [
    "AuthenticationError",
    "ClassificationTimeout",
    "ExtractionError",
    "Extractor",
    "InvalidResultError",
    "ResourceError",
    "extract",
]

__version__ = "0.1.0"
