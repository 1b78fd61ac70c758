"""Pydantic models for browser navigation."""

from __future__ import annotations

from typing import Literal

import pydantic

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]


class NavigationResult(pydantic.BaseModel):
    """Result of loading the asset page."""

    success: bool
    final_url: str
    status_code: int | None = None
    status_text: str | None = None
    error_message: str | None = None
