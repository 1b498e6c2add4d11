"""Logo and gallery resolution.

Managed media assets win over anything embedded in the profile document, and
the gallery comes from exactly one of the two sources per call.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from .. import stores
from ..models import MediaItem
from .normalizer import CanonicalBusiness, embedded_gallery, is_missing

GALLERY_FETCH = 15
GALLERY_KEEP = 10
LOGO_MARKER = "logo"
INTERNAL_MARKER = "eyes-content"


@dataclass
class ResolvedAssets:
    logo_url: str = ""
    gallery_urls: List[str] = field(default_factory=list)
    gallery_source: str = "none"  # managed | document | none


def _tags(item: MediaItem) -> List[str]:
    return [str(t).strip().lower() for t in (item.internal_tags or []) if not is_missing(t)]


def _is_logo(item: MediaItem) -> bool:
    return (item.category or "").lower() == LOGO_MARKER or LOGO_MARKER in _tags(item)


def _is_internal(item: MediaItem) -> bool:
    return INTERNAL_MARKER in _tags(item)


def pick_logo(assets: Iterable[MediaItem], record: CanonicalBusiness, company_logo: Optional[str] = None) -> str:
    for item in assets:
        if _is_logo(item) and not is_missing(item.file_url):
            return item.file_url
    for candidate in (record.hero_image_url, record.logo_url, company_logo):
        if not is_missing(candidate):
            return str(candidate)
    return ""


def pick_gallery(assets: Iterable[MediaItem]) -> List[str]:
    urls = [
        item.file_url
        for item in assets
        if (item.file_type or "image") == "image"
        and not _is_logo(item)
        and not _is_internal(item)
        and not is_missing(item.file_url)
    ]
    return urls[:GALLERY_KEEP]


def resolve_assets(
    db: Session,
    company_id: str,
    record: CanonicalBusiness,
    document: Any = None,
    company_logo: Optional[str] = None,
) -> ResolvedAssets:
    logo = pick_logo(stores.list_active_media(db, company_id), record, company_logo)
    gallery = pick_gallery(stores.list_active_media(db, company_id, limit=GALLERY_FETCH))
    if gallery:
        return ResolvedAssets(logo_url=logo, gallery_urls=gallery, gallery_source="managed")
    fallback = embedded_gallery(document) if document is not None else list(record.gallery_urls)
    fallback = fallback[:GALLERY_KEEP]
    return ResolvedAssets(logo_url=logo, gallery_urls=fallback, gallery_source="document" if fallback else "none")
