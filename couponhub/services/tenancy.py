from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import unquote, urlparse

from sqlalchemy.orm import Session

from couponhub.core.errors import ForbiddenError, InvalidTenantError, NotFoundError
from couponhub.models.tenant import Tenant


logger = logging.getLogger("couponhub.tenancy")

ResolutionStrategy = Literal["path", "legacy"]

_REFERER_TENANT = re.compile(r"^/t/([^/]+)(?:/|$)")
_SLUG = re.compile(r"^[a-z0-9][a-z0-9-]{0,63}$")

# Roles satisfied by each user type; superadmin passes every check.
ROLE_GRANTS: dict[str, set[str]] = {
    "admin": {"admin", "superadmin"},
    "store": {"store", "admin", "superadmin"},
}


@dataclass(frozen=True)
class TenantContext:
    """Tenant and operator a handler acts for, whichever route variant served it."""

    tenant_id: str
    tenant_slug: str
    user_id: str
    user_type: str
    strategy: ResolutionStrategy


def is_valid_slug(slug: str) -> bool:
    return bool(_SLUG.match(slug))


def has_role(session: dict[str, Any], role: str) -> bool:
    return session.get("user_type") in ROLE_GRANTS.get(role, {role, "superadmin"})


def require_role(session: dict[str, Any], role: str) -> None:
    if not has_role(session, role):
        raise ForbiddenError("Insufficient role")


def load_tenant_by_slug(db: Session, slug: str) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.slug == slug).first() if is_valid_slug(slug) else None
    if tenant is None:
        raise NotFoundError("Tenant not found")
    return tenant


def slug_from_referer(referer: str | None) -> str | None:
    if not referer:
        return None
    match = _REFERER_TENANT.match(urlparse(referer).path or "")
    if match is None:
        return None
    return unquote(match.group(1))


def assert_session_matches_tenant(session: dict[str, Any], tenant: Tenant) -> None:
    if session.get("user_type") == "superadmin":
        return
    if session.get("tenant_id") == tenant.id:
        return
    logger.warning(
        "cross-tenant access rejected",
        extra={"tenant_id": tenant.id, "session_tenant_id": session.get("tenant_id")},
    )
    raise ForbiddenError("Access denied for this tenant")


def resolve_legacy_tenant(db: Session, session: dict[str, Any], referer: str | None) -> Tenant:
    """Session tenant first, then a `/t/<slug>/` referer; otherwise InvalidTenantError."""
    tenant_id = session.get("tenant_id")
    if isinstance(tenant_id, str) and tenant_id:
        tenant = db.get(Tenant, tenant_id)
        if tenant is not None:
            return tenant
        raise InvalidTenantError("Invalid tenant")

    slug = slug_from_referer(referer)
    if slug and is_valid_slug(slug):
        tenant = db.query(Tenant).filter(Tenant.slug == slug).first()
        if tenant is not None:
            return tenant
    raise InvalidTenantError("Invalid tenant")


def build_path_context(tenant: Tenant, session: dict[str, Any], role: str) -> TenantContext:
    assert_session_matches_tenant(session, tenant)
    require_role(session, role)
    return TenantContext(
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        user_id=session["user_id"],
        user_type=session["user_type"],
        strategy="path",
    )


def build_legacy_context(db: Session, session: dict[str, Any], referer: str | None, role: str) -> TenantContext:
    require_role(session, role)
    tenant = resolve_legacy_tenant(db, session, referer)
    return TenantContext(
        tenant_id=tenant.id,
        tenant_slug=tenant.slug,
        user_id=session["user_id"],
        user_type=session["user_type"],
        strategy="legacy",
    )
