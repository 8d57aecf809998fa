"""Text helpers."""

from __future__ import annotations


def smart_truncate(text: str, max_length: int) -> str:
    """Shorten *text* to *max_length*, preferring a word boundary.

    A cut at the last space is used only when it keeps at least 80% of the
    allowed length; an ellipsis is appended whenever text was removed.
    """
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        truncated = truncated[:last_space]
    return truncated.strip() + "..."
