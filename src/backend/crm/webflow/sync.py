"""Profile publish: one business fanned out into the profile collection and its
six child collections.

The engine is an explicit state runner. States execute strictly in order on a
shared ``SyncContext``; a state either completes, records recoverable failures
on the result, or raises ``SyncError`` to abort the whole business.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import stores
from ..config import WebflowConfig
from ..events import emit_event
from ..integrations.webflow import WebflowClient, WebflowError
from ..metrics_counters import SYNC_ITEMS
from ..models import Company
from . import payloads
from .assets import ResolvedAssets, resolve_assets
from .normalizer import CanonicalBusiness, is_missing, normalize
from .slugs import allocate_business_slug

logger = logging.getLogger(__name__)

MAX_SERVICES = 5
MAX_FAQS = 10
MAX_SCENARIOS = 5
MAX_LOCATIONS = 1
MAX_REVIEWS = 5
MAX_REFERENCES = 10


class SyncState(str, Enum):
    BUILD_PROFILE = "BUILD_PROFILE"
    UPSERT_PROFILE = "UPSERT_PROFILE"
    DELETE_STALE_CHILDREN = "DELETE_STALE_CHILDREN"
    CREATE_SERVICES = "CREATE_SERVICES"
    CREATE_FAQS = "CREATE_FAQS"
    CREATE_SCENARIOS = "CREATE_SCENARIOS"
    CREATE_LOCATION = "CREATE_LOCATION"
    CREATE_REVIEWS = "CREATE_REVIEWS"
    CREATE_SERVICE_REFERENCES = "CREATE_SERVICE_REFERENCES"
    PUBLISH_ALL = "PUBLISH_ALL"
    PERSIST_RESULT = "PERSIST_RESULT"


class SyncError(Exception):
    """Fatal for the business being synced; maps straight onto an HTTP error response."""

    def __init__(self, status_code: int, error: str, details: Optional[str] = None):
        super().__init__(error if not details else f"{error}: {details}")
        self.status_code = status_code
        self.error = error
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


@dataclass
class CollectionResult:
    ids: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.ids)

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "ids": list(self.ids)}


@dataclass
class SyncResult:
    slug: str = ""
    business_name: str = ""
    profile_id: str = ""
    live_url: str = ""
    profile_created: bool = False
    synced: Dict[str, CollectionResult] = field(default_factory=dict)
    deleted: Dict[str, int] = field(default_factory=dict)
    item_errors: List[Dict[str, str]] = field(default_factory=list)
    publish_errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def total_items_synced(self) -> int:
        return sum(c.count for c in self.synced.values())

    def to_dict(self) -> Dict[str, Any]:
        total = self.total_items_synced
        return {
            "success": True,
            "message": f"Published {self.business_name or self.slug} to Webflow ({total} items synced)",
            "slug": self.slug,
            "liveUrl": self.live_url,
            "webflowProfileId": self.profile_id,
            "synced": {name: c.to_dict() for name, c in self.synced.items()},
            "totalItemsSynced": total,
            "publishErrors": list(self.publish_errors),
            "itemErrors": list(self.item_errors),
        }


@dataclass
class SyncContext:
    company: Company
    document: Dict[str, Any]
    record: CanonicalBusiness = field(default_factory=CanonicalBusiness)
    assets: ResolvedAssets = field(default_factory=ResolvedAssets)
    profile_fields: Dict[str, Any] = field(default_factory=dict)
    result: SyncResult = field(default_factory=SyncResult)

    @property
    def slug(self) -> str:
        return self.result.slug

    @property
    def profile_id(self) -> str:
        return self.result.profile_id


class ProfileSync:
    def __init__(self, db: Session, client: WebflowClient, config: WebflowConfig):
        self.db = db
        self.client = client
        self.config = config
        self.collections = config.collections
        self._handlers: List[Tuple[SyncState, Callable[[SyncContext], None]]] = [
            (SyncState.BUILD_PROFILE, self._build_profile),
            (SyncState.UPSERT_PROFILE, self._upsert_profile),
            (SyncState.DELETE_STALE_CHILDREN, self._delete_stale_children),
            (SyncState.CREATE_SERVICES, self._create_services),
            (SyncState.CREATE_FAQS, self._create_faqs),
            (SyncState.CREATE_SCENARIOS, self._create_scenarios),
            (SyncState.CREATE_LOCATION, self._create_location),
            (SyncState.CREATE_REVIEWS, self._create_reviews),
            (SyncState.CREATE_SERVICE_REFERENCES, self._create_references),
            (SyncState.PUBLISH_ALL, self._publish_all),
            (SyncState.PERSIST_RESULT, self._persist_result),
        ]

    def run(self, tenant_id: str, company_id: str) -> SyncResult:
        company = stores.get_company(self.db, tenant_id, company_id)
        if company is None:
            raise SyncError(404, "company_not_found", company_id)
        document = stores.get_profile_document(self.db, company.id)
        if document is None:
            raise SyncError(404, "profile_document_not_found", company_id)
        ctx = SyncContext(company=company, document=document)
        for state, handler in self._handlers:
            logger.debug("sync state", extra={"company_id": company.id, "state": state.value})
            handler(ctx)
        logger.info(
            "Webflow profile synced",
            extra={
                "company_id": company.id,
                "slug": ctx.slug,
                "profile_id": ctx.profile_id,
                "items": ctx.result.total_items_synced,
                "item_errors": len(ctx.result.item_errors),
                "publish_errors": len(ctx.result.publish_errors),
            },
        )
        emit_event(
            "webflow.profile.synced",
            {
                "tenant_id": tenant_id,
                "company_id": company.id,
                "slug": ctx.slug,
                "profile_id": ctx.profile_id,
                "total_items": ctx.result.total_items_synced,
            },
        )
        return ctx.result

    # --- states -------------------------------------------------------------

    def _build_profile(self, ctx: SyncContext) -> None:
        company = ctx.company
        ctx.record = normalize(ctx.document)
        ctx.assets = resolve_assets(self.db, company.id, ctx.record, ctx.document, company.logo_url)
        ctx.result.business_name = ctx.record.name or company.name
        ctx.result.slug = allocate_business_slug(
            company.webflow_slug,
            ctx.record.slug,
            ctx.record.name or company.name,
            company.id,
        )
        ctx.result.live_url = self.config.live_url(ctx.slug)
        ctx.profile_fields = payloads.build_profile_fields(
            ctx.record, ctx.assets, ctx.slug, company, self.config.category_map
        )

    def _upsert_profile(self, ctx: SyncContext) -> None:
        cid = self.collections.profiles
        try:
            existing = next(
                (i for i in self.client.list_items(cid) if (i.get("fieldData") or {}).get("slug") == ctx.slug),
                None,
            )
            if existing:
                item = self.client.update_item(cid, existing["id"], ctx.profile_fields)
                profile_id = existing["id"]
            else:
                item = self.client.create_item(cid, ctx.profile_fields)
                profile_id = item.get("id") or ""
                ctx.result.profile_created = True
        except WebflowError as exc:
            logger.error(
                "Profile upsert failed",
                extra={"company_id": ctx.company.id, "slug": ctx.slug, "status": exc.status_code, "body": exc.body},
            )
            raise SyncError(502, "profile_upsert_failed", str(exc)) from exc
        if not profile_id:
            raise SyncError(502, "profile_upsert_failed", "Webflow returned no item id")
        ctx.result.profile_id = profile_id
        ctx.result.synced["profiles"] = CollectionResult(ids=[profile_id])

    def _delete_stale_children(self, ctx: SyncContext) -> None:
        for name, cid in self.collections.children().items():
            try:
                items = self.client.list_items(cid)
            except WebflowError as exc:
                logger.warning(
                    "Stale child listing failed",
                    extra={"collection": name, "status": exc.status_code, "body": exc.body},
                )
                continue
            stale = [i for i in items if (i.get("fieldData") or {}).get(payloads.PARENT_FIELD) == ctx.profile_id]
            deleted = 0
            for item in stale:
                try:
                    self.client.delete_item(cid, item["id"])
                    deleted += 1
                except WebflowError as exc:
                    logger.warning(
                        "Stale child delete failed",
                        extra={"collection": name, "item_id": item.get("id"), "status": exc.status_code},
                    )
            ctx.result.deleted[name] = deleted
            if stale:
                logger.info("Removed stale children", extra={"collection": name, "deleted": deleted, "found": len(stale)})

    def _create_many(self, ctx: SyncContext, name: str, entries: Iterable[Tuple[str, Callable[[], Dict[str, Any]]]]) -> None:
        cid = self.collections.children()[name]
        bucket = ctx.result.synced.setdefault(name, CollectionResult())
        for label, build in entries:
            if is_missing(label):
                SYNC_ITEMS.labels(collection=name, outcome="skipped").inc()
                logger.warning("Skipping item with placeholder label", extra={"collection": name})
                continue
            try:
                item = self.client.create_item(cid, build())
            except WebflowError as exc:
                SYNC_ITEMS.labels(collection=name, outcome="failed").inc()
                logger.warning(
                    "Child item create failed",
                    extra={"collection": name, "item": label, "status": exc.status_code, "body": exc.body},
                )
                ctx.result.item_errors.append({"collection": name, "item": label, "error": str(exc)})
                continue
            item_id = item.get("id")
            if not item_id:
                SYNC_ITEMS.labels(collection=name, outcome="failed").inc()
                ctx.result.item_errors.append({"collection": name, "item": label, "error": "no item id returned"})
                continue
            SYNC_ITEMS.labels(collection=name, outcome="created").inc()
            bucket.ids.append(item_id)

    def _create_services(self, ctx: SyncContext) -> None:
        self._create_many(
            ctx,
            "services",
            (
                (s.title, lambda s=s: payloads.service_fields(s, ctx.profile_id, ctx.slug))
                for s in ctx.record.services[:MAX_SERVICES]
            ),
        )

    def _create_faqs(self, ctx: SyncContext) -> None:
        self._create_many(
            ctx,
            "faqs",
            (
                (f.question, lambda f=f: payloads.faq_fields(f, ctx.profile_id, ctx.slug))
                for f in ctx.record.faqs[:MAX_FAQS]
            ),
        )

    def _create_scenarios(self, ctx: SyncContext) -> None:
        self._create_many(
            ctx,
            "scenarios",
            (
                (s.title, lambda s=s: payloads.scenario_fields(s, ctx.profile_id, ctx.slug))
                for s in ctx.record.scenarios[:MAX_SCENARIOS]
            ),
        )

    def _create_location(self, ctx: SyncContext) -> None:
        location = ctx.record.location
        locations = [] if location.is_empty else [location][:MAX_LOCATIONS]
        name = ctx.record.name or ctx.company.name
        self._create_many(
            ctx,
            "locations",
            (
                (loc.name or name or loc.street, lambda loc=loc: payloads.location_fields(loc, name, ctx.profile_id, ctx.slug))
                for loc in locations
            ),
        )

    def _create_reviews(self, ctx: SyncContext) -> None:
        reviews = stores.list_recent_reviews(self.db, ctx.company.id, MAX_REVIEWS)
        self._create_many(
            ctx,
            "reviews",
            ((r.author, lambda r=r: payloads.review_fields(r, ctx.profile_id, ctx.slug)) for r in reviews),
        )

    def _create_references(self, ctx: SyncContext) -> None:
        self._create_many(
            ctx,
            "service_references",
            (
                (row.service, lambda row=row: payloads.reference_fields(row, ctx.profile_id, ctx.slug))
                for row in ctx.record.quick_reference[:MAX_REFERENCES]
            ),
        )

    def _publish_all(self, ctx: SyncContext) -> None:
        targets = {"profiles": self.collections.profiles}
        targets.update(self.collections.children())
        for name, cid in targets.items():
            ids = ctx.result.synced.get(name, CollectionResult()).ids
            if not ids:
                continue
            try:
                self.client.publish_items(cid, ids)
            except WebflowError as exc:
                logger.warning(
                    "Publish failed",
                    extra={"collection": name, "count": len(ids), "status": exc.status_code, "body": exc.body},
                )
                ctx.result.publish_errors.append({"collection": name, "error": str(exc)})

    def _persist_result(self, ctx: SyncContext) -> None:
        company_id = ctx.company.id
        try:
            stores.mark_company_published(self.db, ctx.company, slug=ctx.slug, profile_id=ctx.profile_id)
        except SQLAlchemyError as exc:
            logger.exception("Persisting sync result failed", extra={"company_id": company_id, "slug": ctx.slug})
            self.db.rollback()
            raise SyncError(500, "persist_failed", str(exc)) from exc


def publish_company(db: Session, client: WebflowClient, config: WebflowConfig, tenant_id: str, company_id: str) -> SyncResult:
    return ProfileSync(db, client, config).run(tenant_id, company_id)
