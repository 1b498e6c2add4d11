import re
import secrets
import time
from typing import Optional

from .normalizer import is_missing

_APOSTROPHES = re.compile(r"['’]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

CHILD_SUFFIX_BYTES = 3
BLOG_ID_FRAGMENT = 8


def slugify(value: Optional[str]) -> str:
    """Lowercase, drop apostrophes, collapse non-alphanumeric runs to one hyphen."""
    if is_missing(value):
        return ""
    lowered = _APOSTROPHES.sub("", str(value).strip().lower())
    return _NON_ALNUM.sub("-", lowered).strip("-")


def allocate_business_slug(
    persisted_slug: Optional[str],
    document_slug: Optional[str],
    display_name: Optional[str],
    fallback_id: str = "",
) -> str:
    """Public page slug for a business.

    A persisted slug is returned unchanged so re-publishing never moves the page.
    Otherwise the document's declared slug wins over the display name.
    """
    if not is_missing(persisted_slug):
        return str(persisted_slug).strip()
    slug = slugify(document_slug) or slugify(display_name)
    if slug:
        return slug
    return f"business-{slugify(fallback_id)[:8]}" if fallback_id else "business"


def child_slug(parent_slug: str, label: str) -> str:
    # Archived remote items keep their slug reserved, so every child gets a fresh suffix
    base = "-".join(p for p in (parent_slug, slugify(label)[:60]) if p)
    return f"{base}-{secrets.token_hex(CHILD_SUFFIX_BYTES)}"


def blog_slug(title: str, post_id: str) -> str:
    fragment = slugify(post_id)[:BLOG_ID_FRAGMENT]
    base = slugify(title)[:80].strip("-") or "post"
    return f"{base}-{fragment}" if fragment else base


def retry_slug(slug: str, now: Optional[int] = None) -> str:
    return f"{slug}-{int(now if now is not None else time.time())}"
