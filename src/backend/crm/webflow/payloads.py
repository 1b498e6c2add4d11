"""Webflow ``fieldData`` builders.

Every builder returns a dict that has already been passed through
``strip_missing``: Webflow treats an explicit empty value differently from an
absent field, so placeholders are never transmitted.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..models import Blog, Company, Review
from .assets import ResolvedAssets
from .normalizer import CanonicalBusiness, Faq, Location, QuickReference, Scenario, Service, is_missing
from .slugs import child_slug

logger = logging.getLogger(__name__)

PARENT_FIELD = "profile"
DEFAULT_BLOG_AUTHOR = "EyesAI Team"


def strip_missing(field_data: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop placeholder values, including image refs with a missing url and empty lists."""
    out: Dict[str, Any] = {}
    for key, value in field_data.items():
        if isinstance(value, Mapping):
            if is_missing(value.get("url")):
                continue
        elif isinstance(value, list):
            value = [v for v in value if not is_missing(v.get("url") if isinstance(v, Mapping) else v)]
            if not value:
                continue
        elif isinstance(value, bool):
            pass
        elif is_missing(value):
            continue
        out[key] = value
    return out


def _pick(*values: Optional[str]) -> str:
    for value in values:
        if not is_missing(value):
            return str(value).strip()
    return ""


def resolve_category(name: str, category_map: Mapping[str, str]) -> Optional[str]:
    if is_missing(name):
        return None
    key = name.strip()
    category_id = category_map.get(key)
    if not category_id:
        # case-insensitive second pass
        category_id = {k.lower(): v for k, v in category_map.items()}.get(key.lower())
    if not category_id:
        logger.info("Unmapped Webflow category, omitting", extra={"category": name})
        return None
    return category_id


def build_profile_fields(
    record: CanonicalBusiness,
    assets: ResolvedAssets,
    slug: str,
    company: Company,
    category_map: Mapping[str, str],
) -> Dict[str, Any]:
    name = _pick(record.name, company.name)
    fields: Dict[str, Any] = {
        "name": name,
        "slug": slug,
        "business-name": name,
        "tagline": _pick(record.tagline, company.tagline),
        "short-description": _pick(record.tagline, company.tagline),
        "ai-summary": _pick(record.summary, company.ai_summary),
        "about-text": _pick(record.about, company.about),
        "meta-title": record.meta_title,
        "meta-description": record.meta_description,
        "schema-markup": record.schema_json,
        "pricing-information": _pick(record.pricing, company.pricing_info),
        "city": _pick(record.city, company.city),
        "state": _pick(record.state, company.state),
        "visit-website-2": _pick(record.website, company.website),
        "call-now-2": _pick(record.phone, company.phone),
        "email": _pick(record.email, company.email),
        "map-link": _pick(record.maps_url, company.google_maps_url),
        "facebook": _pick(record.facebook_url, company.facebook_url),
        "instagram": _pick(record.instagram_url, company.instagram_url),
        "youtube": _pick(record.youtube_url, company.youtube_url),
        "profile-image": {"url": assets.logo_url},
        "gallery": [{"url": url} for url in assets.gallery_urls],
        "package-type": "verified" if (company.plan or "").lower() == "verified" else "discover",
        "spotlight": bool(company.spotlight),
        "directory": True,
    }
    for index, badge in enumerate(record.badges, start=1):
        fields[f"about-tag{index}"] = badge
    category_id = resolve_category(_pick(record.category, company.category), category_map)
    if category_id:
        fields["category"] = category_id
    return strip_missing(fields)


def _child(parent_id: str, parent_slug: str, label: str, **fields: Any) -> Dict[str, Any]:
    data = {"name": label, "slug": child_slug(parent_slug, label), PARENT_FIELD: parent_id}
    data.update(fields)
    return strip_missing(data)


def _numbered(prefix: str, values: List[str], count: int = 4) -> Dict[str, str]:
    return {f"{prefix}{i}": values[i - 1] for i in range(1, min(count, len(values)) + 1)}


def service_fields(service: Service, parent_id: str, parent_slug: str) -> Dict[str, Any]:
    return _child(
        parent_id,
        parent_slug,
        service.title,
        price=service.price,
        description=service.description,
        duration=service.duration,
        **_numbered("included", service.included),
    )


def faq_fields(faq: Faq, parent_id: str, parent_slug: str) -> Dict[str, Any]:
    return _child(parent_id, parent_slug, faq.question, answer=faq.answer)


def scenario_fields(scenario: Scenario, parent_id: str, parent_slug: str) -> Dict[str, Any]:
    return _child(
        parent_id,
        parent_slug,
        scenario.title,
        **{"recommended-for": scenario.recommended_for, "pro-tip": scenario.pro_tip},
        **_numbered("involved", scenario.involved),
    )


def location_fields(location: Location, business_name: str, parent_id: str, parent_slug: str) -> Dict[str, Any]:
    label = _pick(location.name, business_name, location.street)
    return _child(
        parent_id,
        parent_slug,
        label,
        address=location.street,
        city=location.city,
        state=location.state,
        zip=location.postal_code,
        phone=location.phone,
        hours=location.hours,
        **{"map-link": location.maps_url},
    )


def review_fields(review: Review, parent_id: str, parent_slug: str) -> Dict[str, Any]:
    return _child(
        parent_id,
        parent_slug,
        review.author,
        rating=review.rating,
        date=review.date,
        **{
            "review-text": review.text,
            "review-source-company": review.platform,
            "source-url": review.url,
        },
    )


def reference_fields(row: QuickReference, parent_id: str, parent_slug: str) -> Dict[str, Any]:
    return _child(
        parent_id,
        parent_slug,
        row.service,
        duration=row.duration,
        complexity=row.complexity,
        **{"best-for": row.best_for, "price-range": row.price_range},
    )


def blog_fields(post: Blog, profile_id: str, slug: str, category_map: Mapping[str, str]) -> Dict[str, Any]:
    published = post.published_at or post.created_at
    fields: Dict[str, Any] = {
        "name": post.h1,
        "slug": slug,
        PARENT_FIELD: profile_id,
        "subtitle": post.h2,
        "post-body": post.content,
        "quick-answer": post.quick_answer,
        "meta-title": _pick(post.meta_title, post.h1),
        "meta-description": post.meta_description,
        "keywords": ", ".join(k for k in (str(k).strip() for k in (post.keywords or [])) if not is_missing(k)),
        "author-name": _pick(post.author_name, DEFAULT_BLOG_AUTHOR),
        "main-image": {"url": post.cover_image_url},
        "published-date": datetime.fromtimestamp(published, tz=timezone.utc).isoformat() if published else None,
    }
    category_id = resolve_category(post.category or "", category_map)
    if category_id:
        fields["category"] = category_id
    return strip_missing(fields)
