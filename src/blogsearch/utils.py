"""Small helpers shared by the ingestion and database layers."""

from __future__ import annotations

import re
import secrets
import unicodedata

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193

_COMBINING_RE = re.compile(r"[\u0300-\u036f]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def fnv1a32(text: str) -> str:
    """Return the 32-bit FNV-1a hash of *text* as 8 lowercase hex chars.

    Hashes UTF-16 code units so values match hashes computed by browser
    clients for the same text.

    Examples:
        "" -> "811c9dc5"
        "a" -> "e40c292c"
    """
    data = text.encode("utf-16-le")
    h = _FNV_OFFSET
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return f"{h:08x}"


def slugify(value: str) -> str:
    """Convert *value* into a URL-friendly slug (max 80 chars, never empty).

    Examples:
        "Hola, Mundo!" -> "hola-mundo"
        "Años de café" -> "anos-de-cafe"
    """
    text = unicodedata.normalize("NFKD", value.lower())
    text = _COMBINING_RE.sub("", text)
    text = _NON_ALNUM_RE.sub("-", text).strip("-")
    return text[:80] or "post"


def make_slug(title: str) -> str:
    """Slugify *title* and append a short random hex suffix for uniqueness."""
    return f"{slugify(title)}-{secrets.token_hex(3)}"
