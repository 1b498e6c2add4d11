"""Blog post publish into the Webflow blogs collection.

Posts are processed one at a time. A post that fails is recorded with its
id, title and error and the batch moves on; only a slug conflict caused by an
archived item holding the slug earns a single retry under a new slug.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import stores
from ..config import WebflowConfig
from ..events import emit_event
from ..integrations.webflow import WebflowClient, WebflowError
from ..metrics_counters import BLOG_SYNC
from ..models import Blog, Company
from .normalizer import normalize
from .payloads import blog_fields
from .slugs import allocate_business_slug, blog_slug, retry_slug

logger = logging.getLogger(__name__)


class BlogPostError(Exception):
    pass


@dataclass
class BlogSyncReport:
    total: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    items: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return len(self.items)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        if not self.total:
            message = "No published blogs to sync"
        else:
            message = f"Synced {self.synced} of {self.total} blog(s) to Webflow"
        return {
            "success": self.total == 0 or self.synced > 0,
            "message": message,
            "total": self.total,
            "synced": self.synced,
            "failed": self.failed,
            "errors": list(self.errors),
            "items": list(self.items),
        }


def company_slug(db: Session, company: Company) -> str:
    """The slug the profile sync would allocate for this company right now."""
    document = stores.get_profile_document(db, company.id) or {}
    record = normalize(document)
    return allocate_business_slug(company.webflow_slug, record.slug, record.name or company.name, company.id)


class BlogSync:
    def __init__(self, db: Session, client: WebflowClient, config: WebflowConfig):
        self.db = db
        self.client = client
        self.config = config
        self.collection_id = config.collections.blogs
        self._profiles: Optional[Dict[str, str]] = None
        self._remote_blogs: Optional[Dict[str, Dict[str, Any]]] = None
        self._company_profiles: Dict[str, str] = {}

    def run(self, tenant_id: str) -> BlogSyncReport:
        posts = stores.list_published_blogs(self.db, tenant_id)
        report = BlogSyncReport(total=len(posts))
        for post in posts:
            # capture before any rollback can expire the instance
            post_id, title = post.id, post.h1
            try:
                report.items.append(self._sync_post(tenant_id, post))
                BLOG_SYNC.labels(outcome="synced").inc()
            except BlogPostError as exc:
                BLOG_SYNC.labels(outcome="failed").inc()
                logger.warning("Blog post sync failed", extra={"blog_id": post_id, "error": str(exc)})
                report.errors.append({"id": post_id, "title": title, "error": str(exc)})
        logger.info(
            "Blog sync finished",
            extra={"tenant_id": tenant_id, "total": report.total, "synced": report.synced, "failed": report.failed},
        )
        if report.total:
            emit_event(
                "webflow.blogs.synced",
                {"tenant_id": tenant_id, "total": report.total, "synced": report.synced, "failed": report.failed},
            )
        return report

    # --- remote indexes, loaded once per batch ------------------------------

    def _profile_index(self) -> Dict[str, str]:
        if self._profiles is None:
            try:
                items = self.client.list_items(self.config.collections.profiles)
            except WebflowError as exc:
                raise BlogPostError(f"Could not list Webflow profiles: {exc}") from exc
            self._profiles = {
                (i.get("fieldData") or {}).get("slug"): i["id"] for i in items if (i.get("fieldData") or {}).get("slug")
            }
        return self._profiles

    def _blog_index(self) -> Dict[str, Dict[str, Any]]:
        if self._remote_blogs is None:
            try:
                items = self.client.list_items(self.collection_id)
            except WebflowError as exc:
                raise BlogPostError(f"Could not list Webflow blogs: {exc}") from exc
            self._remote_blogs = {}
            for item in items:
                slug = (item.get("fieldData") or {}).get("slug")
                if slug:
                    self._remote_blogs[slug] = item
        return self._remote_blogs

    def _profile_id_for(self, tenant_id: str, company_id: str) -> str:
        if company_id in self._company_profiles:
            return self._company_profiles[company_id]
        company = stores.get_company(self.db, tenant_id, company_id)
        if company is None:
            raise BlogPostError(f"Company {company_id} not found")
        slug = company_slug(self.db, company)
        profile_id = self._profile_index().get(slug)
        if not profile_id:
            raise BlogPostError(f"Business profile '{slug}' not found in Webflow; publish the company first")
        self._company_profiles[company_id] = profile_id
        return profile_id

    # --- per post -------------------------------------------------------------

    def _existing(self, post: Blog, slug: str) -> Optional[Dict[str, Any]]:
        index = self._blog_index()
        if post.webflow_item_id:
            for item in index.values():
                if item.get("id") == post.webflow_item_id:
                    return item
        return index.get(slug)

    def _write(self, existing: Optional[Dict[str, Any]], fields: Dict[str, Any]) -> Dict[str, Any]:
        if existing:
            item = self.client.update_item(self.collection_id, existing["id"], fields)
            return {"id": existing["id"], **item}
        return self.client.create_item(self.collection_id, fields)

    def _sync_post(self, tenant_id: str, post: Blog) -> Dict[str, Any]:
        profile_id = self._profile_id_for(tenant_id, post.company_id)
        slug = post.webflow_slug or blog_slug(post.h1, post.id)
        existing = self._existing(post, slug)
        fields = blog_fields(post, profile_id, slug, self.config.category_map)
        try:
            item = self._write(existing, fields)
        except WebflowError as exc:
            if not exc.is_slug_conflict:
                raise BlogPostError(str(exc)) from exc
            slug = retry_slug(slug)
            logger.info("Blog slug reserved by archived item, retrying", extra={"blog_id": post.id, "slug": slug})
            fields["slug"] = slug
            try:
                item = self._write(existing, fields)
            except WebflowError as retry_exc:
                raise BlogPostError(f"Slug conflict persisted after retry: {retry_exc}") from retry_exc
        item_id = item.get("id")
        if not item_id:
            raise BlogPostError("Webflow returned no item id")
        self._blog_index()[slug] = {"id": item_id, "fieldData": fields}
        try:
            self.client.publish_items(self.collection_id, [item_id])
        except WebflowError as exc:
            self._persist(post, item_id, slug)
            raise BlogPostError(f"Saved to Webflow but publish failed: {exc}") from exc
        self._persist(post, item_id, slug)
        return {"id": post.id, "title": post.h1, "slug": slug, "webflowItemId": item_id}

    def _persist(self, post: Blog, item_id: str, slug: str) -> None:
        try:
            stores.mark_blog_synced(self.db, post, item_id=item_id, slug=slug)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise BlogPostError(f"Synced to Webflow but saving locally failed: {exc}") from exc


def sync_blogs(db: Session, client: WebflowClient, config: WebflowConfig, tenant_id: str) -> BlogSyncReport:
    return BlogSync(db, client, config).run(tenant_id)
