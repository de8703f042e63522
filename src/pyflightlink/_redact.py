"""Helpers for compact debug logging.

Radio links carry a steady stream of frames; logging them in full floods
DEBUG output.  These helpers render frames and messages as short,
bounded strings.
"""

from __future__ import annotations

from typing import Any


def hex_preview(data: bytes, *, max_bytes: int = 32) -> str:
    """Render *data* as spaced hex, truncated after *max_bytes*."""
    shown = bytes(data[:max_bytes]).hex(" ")
    if len(data) > max_bytes:
        return f"{shown} …<{len(data)}b>"
    return shown


def describe(message: Any, *, max_string: int = 128) -> str:
    """One-line ``Kind{field=value, ...}`` rendering of a message model."""
    dump = getattr(message, "model_dump", None)
    if dump is None:
        return repr(message)[:max_string]
    fields = ", ".join(f"{key}={_short(value, max_string)}" for key, value in dump().items())
    return f"{type(message).__name__}{{{fields}}}"


def _short(value: Any, max_string: int) -> str:
    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"
    text = str(value)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text
