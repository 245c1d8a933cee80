from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from couponhub.api.deps import authenticate, oauth2_scheme
from couponhub.core.security import issue_csrf_token
from couponhub.db.session import get_db
from couponhub.schemas.auth import LoginRequest, LoginResponse
from couponhub.services import auth_service
from couponhub.services.tenancy import assert_session_matches_tenant, load_tenant_by_slug

router = APIRouter(prefix="/api", tags=["auth"])
tenant_router = APIRouter(prefix="/t/{tenant_slug}/api", tags=["auth"])


@router.post("/auth/login")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    payload = auth_service.login(db, body.username, body.password, body.tenant_slug)
    request.state.tenant_id = payload.user.tenant_id
    return payload


@router.get("/csrf-token")
def csrf_token(token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> dict[str, str]:
    authenticate(db, token)
    return {"csrf_token": issue_csrf_token(token or "")}


@tenant_router.get("/csrf-token")
def tenant_csrf_token(
    tenant_slug: str,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> dict[str, str]:
    tenant = load_tenant_by_slug(db, tenant_slug)
    assert_session_matches_tenant(authenticate(db, token), tenant)
    return {"csrf_token": issue_csrf_token(token or "")}
