from typing import Dict, Any
import json
import logging
import time

from sqlalchemy import text as _sa_text
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def emit_event(name: str, payload: Dict[str, Any]) -> None:
    """Log a milestone event and append it to events_ledger.

    Ledger writes are best-effort; a failure is logged and never reaches the caller.
    """
    logger.info("event %s", name, extra={"event": name, "payload": payload})
    try:
        from .db import engine  # local import to avoid circulars at startup

        with engine.begin() as conn:
            conn.execute(
                _sa_text(
                    "INSERT INTO events_ledger (ts, tenant_id, name, payload, created_at) "
                    "VALUES (:ts, :tenant_id, :name, :payload, :ts)"
                ),
                {
                    "ts": int(time.time()),
                    "tenant_id": str(payload.get("tenant_id", "")),
                    "name": name,
                    "payload": json.dumps(payload, default=str),
                },
            )
    except SQLAlchemyError as exc:
        logger.warning("events_ledger write failed", extra={"event": name, "error": str(exc)})
