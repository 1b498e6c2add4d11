from typing import Optional
import time
import uuid

from sqlalchemy import String, Boolean, Integer, JSON, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> int:
    return int(time.time())


class Company(Base):
    __tablename__ = "companies"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(255))
    category: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    plan: Mapped[str] = mapped_column(String(16), default="discover")  # discover|verified
    status: Mapped[str] = mapped_column(String(16), default="NEW")  # NEW|ACTIVE|CHURNED
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    tagline: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    about: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    facebook_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    google_maps_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    yelp_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    pricing_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    spotlight: Mapped[bool] = mapped_column(Boolean, default=False)
    # Webflow sync state; webflow_slug is never regenerated once set
    webflow_published: Mapped[bool] = mapped_column(Boolean, default=False)
    webflow_slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    webflow_profile_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    last_synced_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, default=_now)
    updated_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Intake(Base):
    __tablename__ = "intakes"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    # AI-authored profile document, legacy or current shape
    roma_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    tagline: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    about: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    facebook_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    instagram_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    youtube_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    google_maps_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    yelp_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    pricing_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    package_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    spotlight: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    social_handle: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tag1: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tag2: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tag3: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    tag4: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    webflow_slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, default=_now)
    updated_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class MediaItem(Base):
    __tablename__ = "media_items"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    file_name: Mapped[str] = mapped_column(String(255), default="")
    file_url: Mapped[str] = mapped_column(String(1024))
    file_type: Mapped[str] = mapped_column(String(16), default="image")  # image|video
    mime_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    category: Mapped[str] = mapped_column(String(16), default="photo")  # logo|photo|video
    internal_tags: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(16), default="active")
    priority: Mapped[int] = mapped_column(Integer, default=0)  # lower sorts first
    uploaded_by_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    uploaded_by_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, default=_now)


class Review(Base):
    __tablename__ = "reviews"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    author: Mapped[str] = mapped_column(String(255))
    rating: Mapped[int] = mapped_column(Integer, default=5)
    text: Mapped[str] = mapped_column(Text, default="")
    date: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    platform: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active")
    created_at: Mapped[int] = mapped_column(Integer, default=_now)


class Blog(Base):
    __tablename__ = "blogs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_id: Mapped[str] = mapped_column(ForeignKey("companies.id"), index=True)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    h1: Mapped[str] = mapped_column(String(512))
    h2: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    content: Mapped[str] = mapped_column(Text, default="")
    quick_answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    meta_title: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    meta_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    keywords: Mapped[list] = mapped_column(JSON, default=list)
    author_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="draft")  # draft|published
    webflow_item_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    webflow_slug: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    synced_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    published_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, default=_now)
    updated_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class EventLedger(Base):
    __tablename__ = "events_ledger"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ts: Mapped[int] = mapped_column(Integer)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(64))
    payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, default=_now)
