"""Webflow CMS v2 client.

Thin wrapper over the collection item endpoints used by the profile and blog
sync engines. Every call is a blocking round-trip on one ``httpx.Client``;
non-2xx responses and transport failures surface as ``WebflowError`` so the
callers can decide whether the step is fatal or per-item recoverable.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import WebflowConfig
from ..metrics_counters import WEBFLOW_REQUESTS

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
_BODY_EXCERPT = 300


class WebflowError(Exception):
    def __init__(self, status_code: int, message: str, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = (body or "")[:_BODY_EXCERPT]

    @property
    def is_slug_conflict(self) -> bool:
        if self.status_code not in (400, 409):
            return False
        text = self.body.lower()
        return "slug" in text and ("already" in text or "unique" in text or "in use" in text)

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            base = f"{base} (HTTP {self.status_code})"
        return f"{base}: {self.body}" if self.body else base


class WebflowClient:
    def __init__(
        self,
        api_token: str,
        api_base: str = "https://api.webflow.com/v2",
        *,
        timeout: float = 30.0,
        cms_locale_id: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.cms_locale_id = cms_locale_id
        self._client = httpx.Client(
            base_url=api_base.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_config(cls, config: WebflowConfig, transport: Optional[httpx.BaseTransport] = None) -> "WebflowClient":
        return cls(
            config.api_token,
            config.api_base,
            timeout=config.timeout_seconds,
            cms_locale_id=config.cms_locale_id,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WebflowClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            WEBFLOW_REQUESTS.labels(method=method, status="error").inc()
            logger.warning("Webflow request failed", extra={"method": method, "path": path, "error": str(exc)})
            raise WebflowError(0, f"Webflow {method} {path} failed: {exc}") from exc
        WEBFLOW_REQUESTS.labels(method=method, status=str(resp.status_code)).inc()
        if resp.status_code >= 400:
            logger.warning(
                "Webflow returned error",
                extra={
                    "method": method,
                    "path": path,
                    "status": resp.status_code,
                    "body": (resp.text or "")[:_BODY_EXCERPT],
                },
            )
            raise WebflowError(resp.status_code, f"Webflow {method} {path} rejected", resp.text or "")
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    def list_items(self, collection_id: str) -> List[Dict[str, Any]]:
        """Return every item in a collection, following offset pagination."""
        items: List[Dict[str, Any]] = []
        offset = 0
        while True:
            params: Dict[str, Any] = {"limit": PAGE_SIZE, "offset": offset}
            if self.cms_locale_id:
                params["cmsLocaleId"] = self.cms_locale_id
            data = self._request("GET", f"/collections/{collection_id}/items", params=params)
            page = data.get("items") or []
            items.extend(page)
            total = int((data.get("pagination") or {}).get("total", len(items)) or 0)
            if not page or len(page) < PAGE_SIZE or len(items) >= total:
                break
            offset += PAGE_SIZE
        return items

    def create_item(self, collection_id: str, field_data: Dict[str, Any], *, is_draft: bool = False) -> Dict[str, Any]:
        body = {"isArchived": False, "isDraft": is_draft, "fieldData": field_data}
        return self._request("POST", f"/collections/{collection_id}/items", json=body)

    def update_item(self, collection_id: str, item_id: str, field_data: Dict[str, Any]) -> Dict[str, Any]:
        body = {"isArchived": False, "isDraft": False, "fieldData": field_data}
        return self._request("PATCH", f"/collections/{collection_id}/items/{item_id}", json=body)

    def delete_item(self, collection_id: str, item_id: str) -> None:
        self._request("DELETE", f"/collections/{collection_id}/items/{item_id}")

    def publish_items(self, collection_id: str, item_ids: List[str]) -> Dict[str, Any]:
        return self._request("POST", f"/collections/{collection_id}/items/publish", json={"itemIds": list(item_ids)})

    def get_collection(self, collection_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/collections/{collection_id}")

    def list_site_collections(self, site_id: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/sites/{site_id}/collections").get("collections") or []
