"""Local-store reads and writes used by the Webflow engines.

All queries are tenant scoped; a company outside the caller's tenant is
indistinguishable from one that does not exist.
"""
from typing import Any, Dict, List, Optional
import time

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import Blog, Company, Intake, MediaItem, Review


def get_company(db: Session, tenant_id: str, company_id: str) -> Optional[Company]:
    return db.scalar(select(Company).where(Company.id == company_id, Company.tenant_id == tenant_id))


def latest_intake(db: Session, company_id: str) -> Optional[Intake]:
    return db.scalar(
        select(Intake)
        .where(Intake.company_id == company_id)
        .order_by(Intake.created_at.desc(), Intake.id.desc())
        .limit(1)
    )


def get_profile_document(db: Session, company_id: str) -> Optional[Dict[str, Any]]:
    intake = latest_intake(db, company_id)
    if intake is None or not isinstance(intake.roma_data, dict):
        return None
    return intake.roma_data


def list_active_media(
    db: Session,
    company_id: str,
    *,
    limit: Optional[int] = None,
) -> List[MediaItem]:
    stmt = (
        select(MediaItem)
        .where(MediaItem.company_id == company_id, MediaItem.status == "active")
        .order_by(MediaItem.priority.asc(), MediaItem.created_at.asc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return list(db.scalars(stmt))


def list_recent_reviews(db: Session, company_id: str, limit: int = 5) -> List[Review]:
    return list(
        db.scalars(
            select(Review)
            .where(Review.company_id == company_id, Review.status == "active")
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
        )
    )


def list_published_blogs(db: Session, tenant_id: str) -> List[Blog]:
    return list(
        db.scalars(
            select(Blog)
            .where(Blog.tenant_id == tenant_id, Blog.status == "published")
            .order_by(Blog.created_at.asc())
        )
    )


def mark_company_published(db: Session, company: Company, *, slug: str, profile_id: str) -> None:
    now = int(time.time())
    company.webflow_published = True
    company.webflow_slug = slug
    company.webflow_profile_id = profile_id
    company.last_synced_at = now
    company.updated_at = now
    db.commit()


def mark_blog_synced(db: Session, blog: Blog, *, item_id: str, slug: str) -> None:
    now = int(time.time())
    blog.webflow_item_id = item_id
    blog.webflow_slug = slug
    blog.synced_at = now
    blog.updated_at = now
    db.commit()
