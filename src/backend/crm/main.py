from fastapi import FastAPI, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Any, Dict, Iterator
import logging
import os

from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text as _sql_text
from sqlalchemy.orm import Session

from .auth import get_user_context, require_role, UserContext
from .config import WebflowConfig, WebflowConfigError, load_webflow_config
from .db import get_db
from .integrations.webflow import WebflowClient, WebflowError
from .migration import migrate_company_data
from .webflow.blogs import sync_blogs
from .webflow.sync import SyncError, publish_company

logger = logging.getLogger(__name__)


class CompanyRequest(BaseModel):
    company_id: str = Field(alias="companyId", min_length=1)


app = FastAPI(title="CRM Webflow Backend", version="0.1.0")

cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse({"error": "internal_error", "details": str(exc)[:400]}, status_code=500)


def get_webflow_config() -> WebflowConfig:
    try:
        return load_webflow_config()
    except WebflowConfigError as exc:
        raise SyncError(400, "webflow_not_configured", str(exc)) from exc


def get_webflow_client(config: WebflowConfig = Depends(get_webflow_config)) -> Iterator[WebflowClient]:
    client = WebflowClient.from_config(config)
    try:
        yield client
    finally:
        client.close()


@app.post("/webflow/publish-company", tags=["Webflow"])
def webflow_publish_company(
    req: CompanyRequest,
    ctx: UserContext = Depends(require_role("worker")),
    db: Session = Depends(get_db),
    config: WebflowConfig = Depends(get_webflow_config),
    client: WebflowClient = Depends(get_webflow_client),
) -> Dict[str, Any]:
    tenant_id = ctx.tenant_id
    result = publish_company(db, client, config, tenant_id, req.company_id)
    return result.to_dict()


@app.post("/webflow/sync-content", tags=["Webflow"])
def webflow_sync_content(
    ctx: UserContext = Depends(require_role("worker")),
    db: Session = Depends(get_db),
    config: WebflowConfig = Depends(get_webflow_config),
    client: WebflowClient = Depends(get_webflow_client),
) -> Dict[str, Any]:
    tenant_id = ctx.tenant_id
    return sync_blogs(db, client, config, tenant_id).to_dict()


@app.post("/migrate-company-data", tags=["Companies"])
def migrate_company(
    req: CompanyRequest,
    ctx: UserContext = Depends(require_role("worker")),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    tenant_id = ctx.tenant_id
    return migrate_company_data(db, tenant_id, req.company_id, user_id=ctx.user_id)


@app.get("/webflow/test-connection", tags=["Webflow"])
def webflow_test_connection(
    ctx: UserContext = Depends(get_user_context),
    config: WebflowConfig = Depends(get_webflow_config),
    client: WebflowClient = Depends(get_webflow_client),
) -> Dict[str, Any]:
    try:
        collection = client.get_collection(config.collections.profiles)
    except WebflowError as exc:
        return {"connected": False, "error": str(exc)}
    fields = [f.get("slug") for f in collection.get("fields") or [] if isinstance(f, dict)]
    return {
        "connected": True,
        "collection": collection.get("displayName") or collection.get("slug") or config.collections.profiles,
        "fields": fields,
    }


@app.get("/health", tags=["Health"])
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/ready", tags=["Health"])
def ready(db: Session = Depends(get_db)) -> Dict[str, str]:
    db.execute(_sql_text("SELECT 1"))
    return {"status": "ready"}


@app.get("/metrics/prometheus", tags=["Health"])
def prometheus_metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
