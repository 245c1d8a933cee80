import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from couponhub.core.clock import utcnow
from couponhub.core.config import get_settings
from couponhub.core.passwords import hash_password, verify_password
from couponhub.core.security import create_token, issue_csrf_token
from couponhub.models.auth_user import AuthUser
from couponhub.models.tenant import Tenant
from couponhub.schemas.auth import LoginResponse, SessionUser


logger = logging.getLogger("couponhub.auth")


def seed_defaults(db: Session) -> None:
    """Ensure the default tenant exists, plus a superadmin when a bootstrap password is configured."""
    settings = get_settings()
    tenant = db.query(Tenant).filter(Tenant.slug == settings.default_tenant_slug).first()
    if tenant is None:
        db.add(Tenant(slug=settings.default_tenant_slug, name=settings.default_tenant_name))
        db.flush()

    if settings.bootstrap_superadmin_password:
        username = settings.bootstrap_superadmin_username
        if db.query(AuthUser).filter(AuthUser.username == username).first() is None:
            db.add(
                AuthUser(
                    tenant_id=None,
                    username=username,
                    password_hash=hash_password(settings.bootstrap_superadmin_password),
                    user_type="superadmin",
                )
            )
            logger.info("bootstrap superadmin created", extra={"username": username})
    db.commit()


def _invalid_credentials() -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")


def login(db: Session, username: str, password: str, tenant_slug: str | None = None) -> LoginResponse:
    user = db.query(AuthUser).filter(AuthUser.username == username.strip()).first()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        raise _invalid_credentials()

    tenant = db.get(Tenant, user.tenant_id) if user.tenant_id else None
    if user.user_type != "superadmin":
        if tenant is None:
            raise _invalid_credentials()
        if tenant_slug and tenant_slug != tenant.slug:
            logger.warning("login for foreign tenant rejected", extra={"tenant_id": tenant.id, "user_id": user.id})
            raise _invalid_credentials()
    session_slug = tenant.slug if tenant is not None else tenant_slug

    settings = get_settings()
    access_token = create_token(
        user_id=user.id,
        tenant_id=user.tenant_id,
        tenant_slug=session_slug,
        user_type=user.user_type,
        token_type="access",
        ttl_seconds=settings.jwt_access_ttl_seconds,
    )
    user.last_login_at = utcnow()
    db.commit()
    logger.info("operator signed in", extra={"tenant_id": user.tenant_id, "user_id": user.id})
    return LoginResponse(
        access_token=access_token,
        expires_in=settings.jwt_access_ttl_seconds,
        csrf_token=issue_csrf_token(access_token),
        user=SessionUser(
            id=user.id,
            username=user.username,
            user_type=user.user_type,
            tenant_id=user.tenant_id,
            tenant_slug=session_slug,
        ),
    )
