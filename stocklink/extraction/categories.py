"""
Asset category detection from stock-site URLs.

The category keys every downstream heuristic: which CDN hosts and file
extensions count as a download, and which controls the interaction
driver looks for.  Detection is a pure path-substring test evaluated in
a fixed priority order; anything unmatched is ``unknown``, which maps to
the most permissive rule set.
"""

from __future__ import annotations

import typing
from typing import Literal

AssetCategory = Literal[
    "photo",
    "vector",
    "psd",
    "template",
    "mockup",
    "video",
    "audio",
    "3d",
    "icon",
    "font",
    "unknown",
]

ASSET_CATEGORIES: tuple[AssetCategory, ...] = typing.get_args(AssetCategory)

# Evaluated top to bottom; first hit wins.
CATEGORY_MARKERS: tuple[tuple[AssetCategory, tuple[str, ...]], ...] = (
    ("icon", ("/icon/",)),
    ("video", ("/video/", "premium-video", "free-video")),
    ("3d", ("/3d-model/", "3d-models")),
    ("audio", ("/audio/", "premium-audio", "free-audio")),
    ("font", ("/font/",)),
    ("psd", ("/psd/", "premium-psd", "free-psd")),
    ("vector", ("/vector/", "premium-vector", "free-vector")),
    ("photo", ("/photo/", "premium-photo", "free-photo")),
    ("template", ("/template/", "premium-template", "free-template")),
    ("mockup", ("/mockup/", "premium-mockup", "free-mockup")),
)


def classify(url: str) -> AssetCategory:
    """Return the asset category for a target URL.

    Total and deterministic: every string maps to exactly one category.
    """
    for category, markers in CATEGORY_MARKERS:
        if any(marker in url for marker in markers):
            return category
    return "unknown"
