import copy
import json
import os
import tempfile
from collections import defaultdict
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DEV_AUTH_ALLOW", "1")
os.environ.setdefault("TEST_DATABASE_URL", f"sqlite:///{tempfile.gettempdir()}/crm_test_{os.getpid()}.db")

import httpx
import pytest

from src.backend.crm.config import WebflowCollections, WebflowConfig
from src.backend.crm.db import Base, SessionLocal, engine
from src.backend.crm.integrations.webflow import WebflowClient
from src.backend.crm.models import Blog, Company, Intake, MediaItem, Review

TENANT_ID = "t1"
COLLECTIONS = WebflowCollections()

CURRENT_DOC: Dict[str, Any] = {
    "hero": {
        "business_name": "Joe's Garage",
        "tagline": "Honest repairs, fair prices",
        "hero_image_url": "https://cdn.example.com/hero.jpg",
        "quick_actions": {
            "call_tel": "tel:+13055550100",
            "website_url": "https://joesgarage.example.com",
            "email_mailto": "mailto:joe@example.com",
            "directions_url": "https://maps.example.com/joes-garage",
        },
    },
    "about_and_badges": {
        "about_text": "Family owned since 1990.",
        "ai_summary_120w": "Trusted independent auto repair in Miami.",
        "badges": ["ASE Certified", "Family Owned"],
    },
    "services": [
        {
            "title": "Oil Change",
            "price": "$49",
            "description": "Full synthetic oil change",
            "duration": "30 min",
            "whats_included": ["Synthetic oil", "New filter"],
        },
        {
            "title": "Brake Service",
            "price": "$199",
            "description": "Pads and rotor inspection",
            "duration": "2 hrs",
            "whats_included": ["Brake pads"],
        },
    ],
    "faqs": {
        "all_questions": {
            "general": [{"question": "Do you take walk-ins?", "answer": "Yes, every weekday."}],
            "pricing": [{"question": "Do you offer financing?", "answer": "Not at this time."}],
        }
    },
    "what_to_expect": [
        {
            "title": "First visit",
            "recommended_for": "New customers",
            "pro_tip": "Bring your service records",
            "whats_involved": ["Inspection", "Written quote"],
        }
    ],
    "locations_and_hours": {
        "locations": [
            {
                "name": "Main Shop",
                "street_address": "100 Main St",
                "city_state_zip": "Miami, FL 33101",
                "phone": "305-555-0100",
                "hours": "Mon-Fri 8am-6pm",
            }
        ]
    },
    "quick_reference_guide": [
        {
            "service": "Oil Change",
            "duration": "30 min",
            "complexity": "Low",
            "best_for": "Routine maintenance",
            "price_range": "$40-$60",
        }
    ],
    "pricing": {"pricing_information": "Free estimates on all repairs"},
    "social_media": {"facebook_url": "https://facebook.com/joesgarage"},
    "seo_and_schema": {"meta_description": "Joe's Garage, auto repair in Miami, FL"},
}

LEGACY_DOC: Dict[str, Any] = {
    "hero": copy.deepcopy(CURRENT_DOC["hero"]),
    "about_and_badges": copy.deepcopy(CURRENT_DOC["about_and_badges"]),
    "services": {
        "service_1": {
            "title": "Oil Change",
            "price": "$49",
            "description": "Full synthetic oil change",
            "duration": "30 min",
            "included_1": "Synthetic oil",
            "included_2": "New filter",
        },
        "service_2": {
            "title": "Brake Service",
            "price": "$199",
            "description": "Pads and rotor inspection",
            "duration": "2 hrs",
            "included_1": "Brake pads",
        },
    },
    "faqs": {
        "faq_1": {"question": "Do you take walk-ins?", "answer": "Yes, every weekday."},
        "faq_2": {"question": "Do you offer financing?", "answer": "Not at this time."},
    },
    "what_to_expect": {
        "scenario_1": {
            "title": "First visit",
            "recommended_for": "New customers",
            "pro_tip": "Bring your service records",
            "involved_1": "Inspection",
            "involved_2": "Written quote",
        }
    },
    "locations": {
        "location_1": {
            "name": "Main Shop",
            "address_1": "100 Main St",
            "address_2": "Miami, FL 33101",
            "phone": "305-555-0100",
            "hours": "Mon-Fri 8am-6pm",
        }
    },
    "quick_reference_guide": {
        "row_1": {
            "service": "Oil Change",
            "duration": "30 min",
            "complexity": "Low",
            "best_for": "Routine maintenance",
            "price_range": "$40-$60",
        }
    },
    "pricing": copy.deepcopy(CURRENT_DOC["pricing"]),
    "social_media": copy.deepcopy(CURRENT_DOC["social_media"]),
    "seo_and_schema": copy.deepcopy(CURRENT_DOC["seo_and_schema"]),
}


class FakeWebflow:
    """In-memory Webflow v2 collection API behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.items: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.archived_slugs: Dict[str, Set[str]] = defaultdict(set)
        self.published: Dict[str, List[str]] = defaultdict(list)
        self.calls: List[Tuple[str, str]] = []
        self.fail_create: Optional[Callable[[str, Dict[str, Any]], Optional[int]]] = None
        self.fail_list: Set[str] = set()
        self.fail_publish: Set[str] = set()
        self.fail_delete: Set[str] = set()
        self._seq = 0

    # helpers for tests
    def seed(self, collection_id: str, field_data: Dict[str, Any]) -> str:
        item_id = self._next_id()
        self.items[collection_id][item_id] = {"id": item_id, "fieldData": dict(field_data), "isArchived": False}
        return item_id

    def children_of(self, collection_id: str, profile_id: str) -> List[Dict[str, Any]]:
        return [i for i in self.items[collection_id].values() if i["fieldData"].get("profile") == profile_id]

    def count(self, method: str, collection_id: str) -> int:
        """Item-level calls; publish calls are not counted."""
        prefix = f"/collections/{collection_id}/items"
        return sum(1 for m, p in self.calls if m == method and p.startswith(prefix) and not p.endswith("/publish"))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _next_id(self) -> str:
        self._seq += 1
        return f"wf{self._seq:05d}"

    @staticmethod
    def _error(status: int, message: str, **extra: Any) -> httpx.Response:
        return httpx.Response(status, json={"message": message, **extra})

    def _slug_taken(self, collection_id: str, slug: str, except_id: Optional[str] = None) -> bool:
        if slug in self.archived_slugs[collection_id]:
            return True
        return any(
            i["fieldData"].get("slug") == slug and i["id"] != except_id for i in self.items[collection_id].values()
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        parts = [p for p in request.url.path.split("/") if p]
        if parts and parts[0] == "v2":
            parts = parts[1:]
        method = request.method
        self.calls.append((method, "/" + "/".join(parts)))
        body = json.loads(request.content) if request.content else {}

        if parts[0] == "sites":
            return httpx.Response(
                200,
                json={"collections": [{"id": "cat-collection", "displayName": "Categories", "slug": "categories"}]},
            )

        cid = parts[1]
        if len(parts) == 2:
            return httpx.Response(
                200,
                json={"id": cid, "displayName": "Profiles", "fields": [{"slug": "name"}, {"slug": "slug"}]},
            )
        if len(parts) == 3 and method == "GET":
            if cid in self.fail_list:
                return self._error(500, "list failed")
            limit = int(request.url.params.get("limit", 100))
            offset = int(request.url.params.get("offset", 0))
            everything = list(self.items[cid].values())
            page = everything[offset:offset + limit]
            return httpx.Response(
                200,
                json={"items": page, "pagination": {"limit": limit, "offset": offset, "total": len(everything)}},
            )
        if len(parts) == 3 and method == "POST":
            field_data = body.get("fieldData") or {}
            if self.fail_create:
                status = self.fail_create(cid, field_data)
                if status:
                    return self._error(status, "create rejected")
            if self._slug_taken(cid, field_data.get("slug", "")):
                return self._error(
                    400,
                    "Validation Error",
                    code="validation_error",
                    details=[{"param": "slug", "description": "Unique value is already in database"}],
                )
            item_id = self._next_id()
            item = {"id": item_id, "fieldData": dict(field_data), "isArchived": False, "isDraft": body.get("isDraft")}
            self.items[cid][item_id] = item
            return httpx.Response(202, json=item)
        if len(parts) == 4 and parts[3] == "publish":
            if cid in self.fail_publish:
                return self._error(500, "publish failed")
            ids = body.get("itemIds") or []
            self.published[cid].extend(ids)
            return httpx.Response(202, json={"publishedItemIds": ids})

        item_id = parts[3]
        if item_id not in self.items[cid]:
            return self._error(404, "Requested resource not found")
        if method == "PATCH":
            field_data = body.get("fieldData") or {}
            if self._slug_taken(cid, field_data.get("slug", ""), except_id=item_id):
                return self._error(409, "Conflict", details=[{"param": "slug", "description": "slug already in use"}])
            self.items[cid][item_id]["fieldData"] = dict(field_data)
            return httpx.Response(200, json=self.items[cid][item_id])
        if method == "DELETE":
            if cid in self.fail_delete:
                return self._error(500, "delete failed")
            del self.items[cid][item_id]
            return httpx.Response(204)
        return self._error(405, "method not allowed")


@pytest.fixture
def db():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_webflow() -> FakeWebflow:
    return FakeWebflow()


@pytest.fixture
def webflow_config() -> WebflowConfig:
    return WebflowConfig(
        api_token="test-token",
        collections=COLLECTIONS,
        category_map=MappingProxyType({"Auto Repair": "cat-auto-repair"}),
    )


@pytest.fixture
def webflow_client(fake_webflow, webflow_config):
    client = WebflowClient.from_config(webflow_config, transport=fake_webflow.transport)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def current_doc() -> Dict[str, Any]:
    return copy.deepcopy(CURRENT_DOC)


@pytest.fixture
def legacy_doc() -> Dict[str, Any]:
    return copy.deepcopy(LEGACY_DOC)


@pytest.fixture
def make_company(db):
    def _make(document: Optional[Dict[str, Any]] = None, tenant_id: str = TENANT_ID, **fields: Any) -> Company:
        fields.setdefault("name", "Joe's Garage")
        company = Company(tenant_id=tenant_id, **fields)
        db.add(company)
        db.flush()
        if document is not None:
            db.add(Intake(company_id=company.id, tenant_id=tenant_id, roma_data=document))
        db.commit()
        return company

    return _make


@pytest.fixture
def add_review(db):
    def _add(company: Company, author: str, text: str = "Great service", created_at: int = 1_700_000_000, **fields: Any) -> Review:
        review = Review(
            company_id=company.id,
            tenant_id=company.tenant_id,
            author=author,
            text=text,
            created_at=created_at,
            **fields,
        )
        db.add(review)
        db.commit()
        return review

    return _add


@pytest.fixture
def add_media(db):
    def _add(company: Company, url: str, **fields: Any) -> MediaItem:
        item = MediaItem(company_id=company.id, tenant_id=company.tenant_id, file_url=url, **fields)
        db.add(item)
        db.commit()
        return item

    return _add


@pytest.fixture
def add_blog(db):
    def _add(company: Company, title: str, status: str = "published", **fields: Any) -> Blog:
        blog = Blog(company_id=company.id, tenant_id=company.tenant_id, h1=title, status=status, **fields)
        db.add(blog)
        db.commit()
        return blog

    return _add
