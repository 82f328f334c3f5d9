"""Markdown post chunker — heading-aware splits with fixed-window fallback.

Token counting uses a 4-chars-per-token approximation; no tokenizer
dependency is required at ingest time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import yaml

# Matches H1, H2, H3 headings at the start of a line.
_HEADING_RE = re.compile(r"^#{1,3} .+", re.MULTILINE)
_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(.*?\n)---[ \t]*(?:\n|\Z)", re.DOTALL)


@dataclass
class TextChunk:
    index: int
    text: str


def split_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Separate a leading YAML front matter block from the Markdown body.

    Returns ({}, content) when there is no front matter or it is not a mapping.
    """
    match = _FRONT_MATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1))
    except yaml.YAMLError:
        return {}, content
    if not isinstance(meta, dict):
        return {}, content
    return meta, content[match.end():]


class MarkdownChunker:
    """Split a Markdown post on H1/H2/H3 heading boundaries.

    Strategy:
    - Each heading + its following content is a *section*.
    - Content before the first heading (preamble) becomes its own section.
    - Sections longer than ``chunk_size`` tokens are split with
      ``split_fixed_window()``.
    - Posts without H1/H2/H3 headings fall back to fixed-window splitting.
    """

    def __init__(self, chunk_size: int = 256, overlap: float = 0.10) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0.0 <= overlap < 1.0:
            raise ValueError("overlap must be in [0.0, 1.0)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, content: str) -> list[TextChunk]:
        """Return sequentially indexed chunks of *content* (empty for blank input)."""
        if not content.strip():
            return []

        sections = self._split_on_headings(content)
        if not sections:
            return _indexed(self.split_fixed_window(content))

        texts: list[str] = []
        for section in sections:
            if self.count_tokens(section) <= self.chunk_size:
                texts.append(section)
            else:
                texts.extend(self.split_fixed_window(section))
        return _indexed([t for t in texts if t.strip()])

    @staticmethod
    def count_tokens(text: str) -> int:
        """Approximate token count: 4 characters ≈ 1 token (minimum 1)."""
        return max(1, len(text) // 4)

    def split_fixed_window(self, text: str) -> list[str]:
        """Split *text* into ``chunk_size * 4``-char windows with fractional overlap."""
        if not text.strip():
            return []

        char_size = self.chunk_size * 4
        step = max(1, char_size - int(char_size * self.overlap))

        segments: list[str] = []
        pos = 0
        length = len(text)
        while pos < length:
            end = min(pos + char_size, length)
            segment = text[pos:end].strip()
            if segment:
                segments.append(segment)
            if end >= length:
                break
            pos += step
        return segments

    def _split_on_headings(self, content: str) -> list[str]:
        """Split *content* on H1/H2/H3 boundaries; [] when there are no headings."""
        matches = list(_HEADING_RE.finditer(content))
        if not matches:
            return []

        sections: list[str] = []
        preamble = content[: matches[0].start()].strip()
        if preamble:
            sections.append(preamble)

        for i, match in enumerate(matches):
            end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
            section = content[match.start():end].strip()
            if section:
                sections.append(section)
        return sections


def _indexed(texts: list[str]) -> list[TextChunk]:
    return [TextChunk(index=i, text=t) for i, t in enumerate(texts)]
