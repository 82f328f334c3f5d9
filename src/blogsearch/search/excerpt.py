"""Plain-text excerpts from raw Markdown post bodies."""

from __future__ import annotations

import re

EXCERPT_LENGTH = 180
ELLIPSIS = "..."

# Applied in order; later patterns assume earlier ones already ran.
_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"<[^>]*>"), " "),                          # HTML tags
    (re.compile(r"!\[[^\]]*\]\([^)]*\)"), ""),              # images
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),          # links → text
    (re.compile(r"```.*?```", re.DOTALL), ""),              # fenced code
    (re.compile(r"`[^`]*`"), ""),                           # inline code
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),          # heading markers
    (re.compile(r"(\*\*|__)(.*?)\1"), r"\2"),               # bold
    (re.compile(r"(\*|_)(.*?)\1"), r"\2"),                  # italic
    (re.compile(r"^>\s*", re.MULTILINE), ""),               # blockquotes
    (re.compile(r"^-{3,}$", re.MULTILINE), ""),             # horizontal rules
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),        # bullet lists
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),        # numbered lists
    (re.compile(r"\s+"), " "),
]


def markdown_to_text(markdown: str | None) -> str:
    """Strip Markdown / HTML syntax from *markdown* and collapse whitespace."""
    if not markdown:
        return ""
    text = markdown
    for pattern, repl in _RULES:
        text = pattern.sub(repl, text)
    return text.strip()


def make_excerpt(markdown: str | None, length: int = EXCERPT_LENGTH) -> str:
    """First *length* UTF-16 code units of the post's plain text, with "..." if cut.

    Characters outside the BMP (most emoji) count as two units, matching
    browser-side string lengths. A cut never splits such a character.
    """
    text = markdown_to_text(markdown)
    if _utf16_len(text) <= length:
        return text
    return _utf16_prefix(text, length) + ELLIPSIS


def _utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


def _utf16_prefix(text: str, units: int) -> str:
    used = 0
    for i, ch in enumerate(text):
        used += 2 if ord(ch) > 0xFFFF else 1
        if used > units:
            return text[:i]
    return text
