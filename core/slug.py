from __future__ import annotations

import re

_INVALID_CHARS_RE = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_HYPHENS_RE = re.compile(r"-+")
_SLUG_RE = re.compile(r"^[a-z0-9-]+$")


def query_to_slug(query: str) -> str:
    """Normalise a free-text query into the cache key used for its report."""
    slug = _INVALID_CHARS_RE.sub("", query.lower().strip())
    slug = _WHITESPACE_RE.sub("-", slug)
    slug = _HYPHENS_RE.sub("-", slug)
    return slug.strip("-")


def is_valid_slug(slug: str) -> bool:
    return 0 < len(slug) <= 100 and bool(_SLUG_RE.match(slug))
