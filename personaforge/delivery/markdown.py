"""Escaping for the platform's MarkdownV2 rich-text mode."""

from __future__ import annotations

MARKDOWN_V2_SPECIAL = "\\_*[]()~`>#+-=|{}.!"


def escape_markdown_v2(text: str) -> str:
    """Backslash-escape every MarkdownV2 control character."""
    return "".join(f"\\{ch}" if ch in MARKDOWN_V2_SPECIAL else ch for ch in text)
