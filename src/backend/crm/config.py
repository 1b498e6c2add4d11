import json
import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv(dotenv_path=os.getenv("ENV_FILE", ".env"), override=False)

logger = logging.getLogger(__name__)


class WebflowConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class WebflowCollections:
    profiles: str = "6919a7f067ba553645e406a6"
    services: str = "691b7c75c939d316cb7f73b0"
    faqs: str = "692411f2a535a2edbb68ecea"
    scenarios: str = "692591ebc2715ac9182e11d6"
    locations: str = "6925a0fc2f4eac43ffd125f6"
    reviews: str = "6917304967a914982fd205bc"
    service_references: str = "69258b73b4aa5928c4949176"
    blogs: str = "6924108f80f9c5582bc96d73"

    def children(self) -> Mapping[str, str]:
        """Child collections in the order they are cleaned and recreated."""
        return {
            "services": self.services,
            "faqs": self.faqs,
            "scenarios": self.scenarios,
            "locations": self.locations,
            "reviews": self.reviews,
            "service_references": self.service_references,
        }


@dataclass(frozen=True)
class WebflowConfig:
    api_token: str
    api_base: str = "https://api.webflow.com/v2"
    site_id: str = ""
    cms_locale_id: Optional[str] = None
    timeout_seconds: float = 30.0
    live_base_url: str = "https://eyesai.ai/profiles"
    collections: WebflowCollections = field(default_factory=WebflowCollections)
    category_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def live_url(self, slug: str) -> str:
        return f"{self.live_base_url.rstrip('/')}/{slug}"


def _load_category_map() -> Mapping[str, str]:
    raw = os.getenv("WEBFLOW_CATEGORY_MAP", "").strip()
    path = os.getenv("WEBFLOW_CATEGORY_MAP_FILE", "").strip()
    if not raw and path:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                raw = fh.read()
        except OSError as exc:
            raise WebflowConfigError(f"cannot read category map file {path}: {exc}") from exc
    if not raw:
        return MappingProxyType({})
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise WebflowConfigError(f"category map is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise WebflowConfigError("category map must be a JSON object of name -> id")
    return MappingProxyType({str(k): str(v) for k, v in data.items()})


def load_webflow_config() -> WebflowConfig:
    token = os.getenv("WEBFLOW_API_TOKEN", os.getenv("WEBFLOW_CMS_SITE_API_TOKEN", "")).strip()
    if not token:
        raise WebflowConfigError("WEBFLOW_API_TOKEN is not configured")
    defaults = WebflowCollections()
    collections = WebflowCollections(
        **{
            name: os.getenv(f"WEBFLOW_COLLECTION_{name.upper()}", getattr(defaults, name)).strip()
            for name in defaults.__dataclass_fields__
        }
    )
    missing = [name for name in collections.__dataclass_fields__ if not getattr(collections, name)]
    if missing:
        raise WebflowConfigError(f"missing Webflow collection ids: {', '.join(missing)}")
    category_map = _load_category_map()
    logger.debug("Loaded Webflow config", extra={"categories": len(category_map)})
    return WebflowConfig(
        api_token=token,
        api_base=os.getenv("WEBFLOW_API_BASE", "https://api.webflow.com/v2").strip().rstrip("/"),
        site_id=os.getenv("WEBFLOW_SITE_ID", "").strip(),
        cms_locale_id=(os.getenv("WEBFLOW_CMS_LOCALE_ID", "").strip() or None),
        timeout_seconds=float(os.getenv("WEBFLOW_TIMEOUT_SECONDS", "30") or "30"),
        live_base_url=os.getenv("WEBFLOW_LIVE_BASE_URL", "https://eyesai.ai/profiles").strip(),
        collections=collections,
        category_map=category_map,
    )
