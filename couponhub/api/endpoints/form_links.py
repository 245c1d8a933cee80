from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.db.session import get_db
from couponhub.schemas.form_links import FormLinkGenerateRequest, FormLinkOut, FormLinkStatistics, FormSubmission
from couponhub.services import coupon_service, form_link_service
from couponhub.services.tenancy import TenantContext, load_tenant_by_slug

admin = DualRouteRegistrar("admin", role="admin", tags=["form-links"])
public_router = APIRouter(prefix="/t/{tenant_slug}/api", tags=["public"])


@admin.post("/campaigns/{campaign_id}/form-links")
def generate_form_links(
    campaign_id: str,
    ctx: TenantContext,
    body: FormLinkGenerateRequest,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    links = form_link_service.generate_links(db, ctx.tenant_id, campaign_id, body.count, actor_user_id=ctx.user_id)
    return {"links": [link.model_dump(mode="json") for link in links], "count": len(links)}


@admin.get("/campaigns/{campaign_id}/form-links")
def list_form_links(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, Any]:
    links, statistics = form_link_service.list_links(db, ctx.tenant_id, campaign_id)
    return {
        "links": [FormLinkOut.model_validate(link).model_dump(mode="json") for link in links],
        "statistics": FormLinkStatistics(**statistics).model_dump(),
    }


@public_router.post("/form-links/{token}/submit")
def submit_form(
    request: Request,
    tenant_slug: str,
    token: str,
    body: FormSubmission,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    tenant = load_tenant_by_slug(db, tenant_slug)
    request.state.tenant_id = tenant.id
    issued = coupon_service.issue_from_link(db, tenant.id, tenant.slug, token.strip().upper(), body)
    return issued.model_dump()
