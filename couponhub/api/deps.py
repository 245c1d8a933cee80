from collections.abc import Callable
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from couponhub.core.security import decode_token
from couponhub.db.session import get_db
from couponhub.models.auth_user import AuthUser
from couponhub.services.tenancy import (
    TenantContext,
    build_legacy_context,
    build_path_context,
    load_tenant_by_slug,
)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def authenticate(db: Session, token: str | None) -> dict[str, Any]:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    user_id = payload.get("user_id") or payload.get("sub")
    if not isinstance(user_id, str):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    user = db.get(AuthUser, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    if user.tenant_id != payload.get("tenant_id") or user.user_type != payload.get("user_type"):
        # Account was moved or re-roled after the token was minted.
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session is stale, sign in again")

    return {
        "user_id": user.id,
        "username": user.username,
        "user_type": user.user_type,
        "tenant_id": user.tenant_id,
        "tenant_slug": payload.get("tenant_slug"),
    }


def get_session(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    session = authenticate(db, token)
    request.state.user_id = session["user_id"]
    return session


def legacy_tenant_context(role: str) -> Callable[..., TenantContext]:
    """Chain for `/api/{area}` routes: authenticate with role, then infer the tenant."""

    def _resolve(
        request: Request,
        session: dict[str, Any] = Depends(get_session),
        db: Session = Depends(get_db),
    ) -> TenantContext:
        ctx = build_legacy_context(db, session, request.headers.get("referer"), role)
        request.state.tenant_id = ctx.tenant_id
        return ctx

    return _resolve


def path_tenant_context(role: str) -> Callable[..., TenantContext]:
    """Chain for `/t/{tenant_slug}/api/{area}` routes: load tenant, match session, authorize role."""

    def _resolve(
        request: Request,
        tenant_slug: str,
        token: str | None = Depends(oauth2_scheme),
        db: Session = Depends(get_db),
    ) -> TenantContext:
        if not token:
            # Anonymous callers must not learn which slugs exist.
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
        tenant = load_tenant_by_slug(db, tenant_slug)
        session = authenticate(db, token)
        request.state.user_id = session["user_id"]
        ctx = build_path_context(tenant, session, role)
        request.state.tenant_id = ctx.tenant_id
        return ctx

    return _resolve
