from dataclasses import dataclass
from fastapi import Depends, Header, HTTPException
from typing import Any, Dict, Optional
import logging
import os
import jwt
from jwt import PyJWKClient

logger = logging.getLogger(__name__)

ROLES = {"viewer": 0, "worker": 1, "admin": 2}


@dataclass
class UserContext:
    user_id: str
    role: str  # admin | worker | viewer
    tenant_id: str


def _decode(token: str) -> Dict[str, Any]:
    audience = os.getenv("JWT_AUDIENCE", "authenticated")
    issuer = os.getenv("JWT_ISSUER", "")
    options = {} if issuer else {"verify_iss": False}
    jwks_url = os.getenv("JWT_JWKS_URL", "").strip()
    alg = (jwt.get_unverified_header(token) or {}).get("alg", "")
    if jwks_url and not alg.startswith("HS"):
        signing_key = PyJWKClient(jwks_url).get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256", "ES256"],
            audience=audience,
            issuer=issuer or None,
            options=options,
        )
    return jwt.decode(
        token,
        os.getenv("JWT_SECRET", "dev_secret"),
        algorithms=["HS256", "HS512"],
        audience=audience,
        issuer=issuer or None,
        options=options,
    )


def _context_from_claims(payload: Dict[str, Any]) -> UserContext:
    # Resolve tenant: explicit claim, then app_metadata.tenant_id, then subject
    tenant_id = (
        payload.get("tenant_id")
        or (payload.get("app_metadata") or {}).get("tenant_id")
        or payload.get("sub")
    )
    if not tenant_id:
        raise HTTPException(status_code=401, detail="token_missing_tenant")
    role = str(payload.get("role", "worker")).lower()
    return UserContext(
        user_id=str(payload.get("sub", "user")),
        role=role if role in ROLES else "worker",
        tenant_id=str(tenant_id),
    )


async def get_user_context(
    x_user_id: Optional[str] = Header(default=None),
    x_role: Optional[str] = Header(default=None),
    x_tenant_id: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> UserContext:
    # Prefer JWT if provided
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1]
        try:
            payload = _decode(token)
        except jwt.PyJWTError as exc:
            logger.info("Rejected bearer token", extra={"error": str(exc)})
            raise HTTPException(status_code=401, detail="invalid_token") from exc
        return _context_from_claims(payload)
    # No Authorization header provided: only permit dev fallback when explicitly allowed
    if os.getenv("DEV_AUTH_ALLOW", "0") != "1":
        raise HTTPException(status_code=401, detail="missing_token")
    role = (x_role or "worker").lower()
    if role not in ROLES:
        raise HTTPException(status_code=403, detail="invalid role")
    return UserContext(user_id=x_user_id or "dev-user", role=role, tenant_id=x_tenant_id or "t1")


def require_role(min_role: str):
    async def guard(ctx: UserContext = Depends(get_user_context)) -> UserContext:
        if ROLES.get(ctx.role, -1) < ROLES[min_role]:
            raise HTTPException(status_code=403, detail="forbidden")
        return ctx

    return guard
