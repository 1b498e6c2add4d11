"""Copy a company's profile data into the Webflow-aligned intake columns and
pull embedded images and reviews out of the profile document into their own
tables.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import logging
import time

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import stores
from .events import emit_event
from .models import Company, Intake, MediaItem, Review
from .webflow.normalizer import dig, first_text, is_missing, text
from .webflow.sync import SyncError

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {"mp4", "mov", "avi", "webm"}
LOGO_PRIORITY = 100

# intake column -> company column
_COMPANY_COLUMNS = {
    "business_name": "name",
    "display_name": "name",
    "website": "website",
    "phone": "phone",
    "email": "email",
    "address": "address",
    "city": "city",
    "state": "state",
    "zip": "zip",
    "tagline": "tagline",
    "about": "about",
    "ai_summary": "ai_summary",
    "logo_url": "logo_url",
    "facebook_url": "facebook_url",
    "instagram_url": "instagram_url",
    "youtube_url": "youtube_url",
    "google_maps_url": "google_maps_url",
    "yelp_url": "yelp_url",
    "pricing_info": "pricing_info",
    "webflow_slug": "webflow_slug",
}

# intake column -> document paths, used only where the company column is empty
_DOCUMENT_FALLBACKS: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    "business_name": (("hero", "business_name"), ("hero", "company_name")),
    "tagline": (("hero", "tagline"),),
    "logo_url": (("hero", "logo_url"),),
    "website": (("hero", "quick_actions", "website_url"), ("location_and_contact", "website")),
    "google_maps_url": (("hero", "quick_actions", "directions_url"),),
    "about": (("about_and_badges", "about_text"),),
    "ai_summary": (("about_and_badges", "ai_summary_120w"), ("ai_overview", "overview_line")),
    "address": (("location_and_contact", "address"),),
    "city": (("location_and_contact", "city"),),
    "state": (("location_and_contact", "state"),),
    "zip": (("location_and_contact", "zip"),),
    "facebook_url": (("social_media", "facebook_url"),),
    "instagram_url": (("social_media", "instagram_url"),),
    "youtube_url": (("social_media", "youtube_url"),),
    "pricing_info": (("pricing", "pricing_information"),),
}


class MigrationError(SyncError):
    pass


def _strip_scheme(value: str, prefix: str) -> str:
    return value.replace(prefix, "", 1).strip() if value else value


def build_intake_fields(company: Company, document: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Flattened intake columns; company values win and the document fills gaps."""
    fields: Dict[str, Any] = {}
    for column, source in _COMPANY_COLUMNS.items():
        value = getattr(company, source)
        if not is_missing(value):
            fields[column] = value
    fields["package_type"] = "verified" if (company.plan or "").lower() == "verified" else "discover"
    fields["spotlight"] = bool(company.spotlight)
    if not isinstance(document, dict):
        return fields

    for column, paths in _DOCUMENT_FALLBACKS.items():
        if column not in fields:
            value = first_text(document, *paths)
            if value:
                fields[column] = value
    if "phone" not in fields:
        phone = _strip_scheme(text(dig(document, "hero", "quick_actions", "call_tel")), "tel:")
        fields["phone"] = phone or first_text(document, ("location_and_contact", "phone"))
    if "email" not in fields:
        email = _strip_scheme(text(dig(document, "hero", "quick_actions", "email_mailto")), "mailto:")
        fields["email"] = email or first_text(document, ("location_and_contact", "email"))
    badges = dig(document, "about_and_badges", "badges")
    if isinstance(badges, list):
        for index, badge in enumerate(badges[:4], start=1):
            if not is_missing(badge):
                fields[f"tag{index}"] = text(badge)
    handle = first_text(document, ("social_media", "instagram_handle"), ("social_media", "social_handle"))
    if handle:
        fields["social_handle"] = handle
    return {k: v for k, v in fields.items() if v is not None and v != ""}


# --- document extraction ------------------------------------------------------

def _url_of(photo: Any, *keys: str) -> str:
    if not isinstance(photo, dict):
        return ""
    return first_text(photo, *((k,) for k in keys))


def extract_images(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    images: List[Dict[str, Any]] = []
    logo = text(dig(document, "hero", "logo_url"))
    if logo:
        images.append({"url": logo, "category": "logo", "internal_tags": ["Logo"]})
    hero = text(dig(document, "hero", "hero_image_url"))
    if hero:
        images.append({"url": hero, "category": "photo", "internal_tags": ["Business Exterior", "Featured"]})
    for photo in document.get("photos") or []:
        url = _url_of(photo, "url", "image_url")
        if url:
            tags = photo.get("tags") if isinstance(photo.get("tags"), list) else ["Uncategorized"]
            images.append({"url": url, "category": "photo", "internal_tags": tags})
    gallery = document.get("photo_gallery")
    if isinstance(gallery, dict):
        for photo in gallery.get("images") or []:
            url = _url_of(photo, "url", "image_url", "src")
            if url:
                tags = ["Business Exterior"] if photo.get("alt_text") else ["Uncategorized"]
                images.append({"url": url, "category": "photo", "internal_tags": tags})
        for index in range(1, 16):
            photo = gallery.get(f"image_{index}")
            url = _url_of(photo, "url") if isinstance(photo, dict) else text(photo)
            if url:
                images.append({"url": url, "category": "photo", "internal_tags": ["Uncategorized"]})
    elif isinstance(gallery, list):
        for photo in gallery:
            url = _url_of(photo, "url", "src")
            if url:
                images.append({"url": url, "category": "photo", "internal_tags": ["Business Exterior"]})
    return images


def _rating(*values: Any) -> int:
    for value in values:
        try:
            rating = int(float(value))
        except (TypeError, ValueError):
            continue
        if rating > 0:
            return min(rating, 5)
    return 5


def normalize_review_date(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()
    raw = text(value)
    if not raw:
        return datetime.now(tz=timezone.utc).isoformat()
    if "T" in raw:
        return raw
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return raw
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


def _review(item: Dict[str, Any], author_keys, text_keys, date_keys, platform_keys, url_keys, default_platform: str):
    body = first_text(item, *((k,) for k in text_keys))
    if not body:
        return None
    date = next((item.get(k) for k in date_keys if not is_missing(item.get(k))), None)
    return {
        "author": first_text(item, *((k,) for k in author_keys)) or "Anonymous",
        "rating": _rating(item.get("rating"), item.get("stars")),
        "text": body,
        "date": normalize_review_date(date),
        "platform": first_text(item, *((k,) for k in platform_keys)) or default_platform,
        "url": first_text(item, *((k,) for k in url_keys)) or None,
    }


def extract_reviews(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    sources = (
        (
            document.get("reviews"),
            (("author", "reviewer_name", "name"), ("text", "review_text", "content"),
             ("date", "review_date", "created_at"), ("platform", "source"), ("url", "review_url"), "Google"),
        ),
        (
            document.get("google_reviews"),
            (("author_name", "reviewer"), ("text", "snippet"), ("time", "date"), (), ("author_url", "link"), "Google"),
        ),
        (
            document.get("testimonials"),
            (("client_name", "name"), ("quote", "testimonial"), ("date",), ("platform",), ("url",), "Other"),
        ),
        (
            dig(document, "featured_reviews", "items"),
            (("reviewer", "reviewer_name", "name", "author"), ("excerpt", "text", "review_text"),
             ("date", "review_date"), ("source", "platform"), ("url", "review_url"), "Google"),
        ),
    )
    found: List[Dict[str, Any]] = []
    for items, (authors, texts, dates, platforms, urls, default_platform) in sources:
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, dict):
                review = _review(item, authors, texts, dates, platforms, urls, default_platform)
                if review:
                    found.append(review)
    return found


# --- persistence ------------------------------------------------------------------

def _get_or_create_intake(db: Session, company: Company) -> Intake:
    intake = stores.latest_intake(db, company.id)
    if intake is not None:
        return intake
    intake = Intake(company_id=company.id, tenant_id=company.tenant_id, business_name=company.name, status="pending")
    try:
        db.add(intake)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Intake create failed", extra={"company_id": company.id})
        raise MigrationError(500, "intake_create_failed", str(exc)) from exc
    return intake


def _save_media(db: Session, company: Company, images: List[Dict[str, Any]], user_id: str) -> Tuple[int, List[str]]:
    saved, errors = 0, []
    seen = set(db.scalars(select(MediaItem.file_url).where(MediaItem.company_id == company.id)))
    for image in images:
        url = image["url"]
        if url in seen:
            continue
        file_name = url.rstrip("/").split("/")[-1].split("?")[0] or "image.jpg"
        extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
        is_video = extension in VIDEO_EXTENSIONS
        item = MediaItem(
            company_id=company.id,
            tenant_id=company.tenant_id,
            file_name=file_name,
            file_url=url,
            file_type="video" if is_video else "image",
            mime_type="video/mp4" if is_video else "image/jpeg",
            category=image["category"],
            internal_tags=list(image["internal_tags"]),
            uploaded_by_type="client",
            uploaded_by_id=user_id,
            priority=LOGO_PRIORITY if image["category"] == "logo" else 0,
            status="active",
        )
        try:
            db.add(item)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Media insert failed", extra={"company_id": company.id, "file": file_name})
            errors.append(f"Failed to save {file_name}: {exc}")
            continue
        seen.add(url)
        saved += 1
    return saved, errors


def _save_reviews(db: Session, company: Company, reviews: List[Dict[str, Any]]) -> Tuple[int, List[str]]:
    saved, errors = 0, []
    seen = {(a, t) for a, t in db.execute(select(Review.author, Review.text).where(Review.company_id == company.id))}
    for review in reviews:
        key = (review["author"], review["text"])
        if key in seen:
            continue
        try:
            db.add(Review(company_id=company.id, tenant_id=company.tenant_id, **review))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Review insert failed", extra={"company_id": company.id, "author": review["author"]})
            errors.append(f"Failed to save review by {review['author']}: {exc}")
            continue
        seen.add(key)
        saved += 1
    return saved, errors


def migrate_company_data(db: Session, tenant_id: str, company_id: str, user_id: str = "") -> Dict[str, Any]:
    company = stores.get_company(db, tenant_id, company_id)
    if company is None:
        raise MigrationError(404, "company_not_found", company_id)
    intake = _get_or_create_intake(db, company)
    document = intake.roma_data if isinstance(intake.roma_data, dict) else None
    fields = build_intake_fields(company, document)

    try:
        for column, value in fields.items():
            setattr(intake, column, value)
        intake.updated_at = int(time.time())
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Intake update failed", extra={"company_id": company_id})
        raise MigrationError(500, "intake_update_failed", str(exc)) from exc

    try:
        company.name = fields.get("business_name") or company.name
        for column, source in _COMPANY_COLUMNS.items():
            if column in fields and source != "name":
                setattr(company, source, fields[column])
        company.updated_at = int(time.time())
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Company update after migration failed", extra={"company_id": company_id, "error": str(exc)})

    media_saved, media_errors = 0, []
    reviews_saved, review_errors = 0, []
    if document:
        media_saved, media_errors = _save_media(db, company, extract_images(document), user_id)
        reviews_saved, review_errors = _save_reviews(db, company, extract_reviews(document))

    logger.info(
        "Company data migrated",
        extra={"company_id": company_id, "fields": len(fields), "media": media_saved, "reviews": reviews_saved},
    )
    emit_event(
        "company.data.migrated",
        {"tenant_id": tenant_id, "company_id": company_id, "media_saved": media_saved, "reviews_saved": reviews_saved},
    )
    body: Dict[str, Any] = {
        "success": True,
        "message": f"Company data migrated! {media_saved} images and {reviews_saved} reviews saved.",
        "migrated_fields": sorted(fields),
        "media_saved": media_saved,
        "reviews_saved": reviews_saved,
    }
    if media_errors:
        body["media_errors"] = media_errors
    if review_errors:
        body["review_errors"] = review_errors
    return body
