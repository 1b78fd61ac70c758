"""Serialization helpers for the camelCase JSON surface of the HTTP API."""

from __future__ import annotations


def snake_to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase.

    Args:
        name: A snake_case identifier such as ``"download_link"``.

    Returns:
        The camelCase equivalent, e.g. ``"downloadLink"``.
    """
    head, *rest = name.split("_")
    return head + "".join(w.capitalize() for w in rest)
