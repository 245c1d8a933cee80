from typing import Any

from fastapi import Depends
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.db.session import get_db
from couponhub.schemas.campaigns import (
    CampaignCreateRequest,
    CampaignOption,
    CampaignOut,
    CampaignProductsRequest,
    CampaignUpdateRequest,
)
from couponhub.schemas.form_config import CustomFieldsPayload, FormConfig
from couponhub.schemas.products import ProductOut
from couponhub.services import campaign_service
from couponhub.services.tenancy import TenantContext

admin = DualRouteRegistrar("admin", role="admin", tags=["campaigns"])


@admin.get("/campaigns")
def list_campaigns(ctx: TenantContext, db: Session = Depends(get_db)) -> list[dict]:
    campaigns = campaign_service.list_campaigns(db, ctx.tenant_id)
    return [CampaignOut.model_validate(campaign).model_dump(mode="json") for campaign in campaigns]


@admin.post("/campaigns")
def create_campaign(ctx: TenantContext, body: CampaignCreateRequest, db: Session = Depends(get_db)) -> dict:
    campaign = campaign_service.create_campaign(
        db,
        ctx.tenant_id,
        name=body.name,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        description=body.description,
        expiry_date=body.expiry_date,
        coupon_expiry_date=body.coupon_expiry_date,
        actor_user_id=ctx.user_id,
    )
    return CampaignOut.model_validate(campaign).model_dump(mode="json")


@admin.get("/campaigns-list")
def list_campaign_options(ctx: TenantContext, db: Session = Depends(get_db)) -> list[CampaignOption]:
    return [CampaignOption(**option) for option in campaign_service.list_campaign_options(db, ctx.tenant_id)]


@admin.get("/campaigns/{campaign_id}")
def get_campaign(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict:
    campaign = campaign_service.get_campaign(db, ctx.tenant_id, campaign_id)
    return CampaignOut.model_validate(campaign).model_dump(mode="json")


@admin.put("/campaigns/{campaign_id}")
def update_campaign(
    campaign_id: str,
    ctx: TenantContext,
    body: CampaignUpdateRequest,
    db: Session = Depends(get_db),
) -> dict:
    campaign = campaign_service.update_campaign(
        db,
        ctx.tenant_id,
        campaign_id,
        body.model_dump(exclude_unset=True),
        actor_user_id=ctx.user_id,
    )
    return CampaignOut.model_validate(campaign).model_dump(mode="json")


@admin.delete("/campaigns/{campaign_id}")
def delete_campaign(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, bool]:
    campaign_service.delete_campaign(db, ctx.tenant_id, campaign_id, actor_user_id=ctx.user_id)
    return {"ok": True}


@admin.put("/campaigns/{campaign_id}/activate")
def activate_campaign(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, bool]:
    campaign_service.set_campaign_active(db, ctx.tenant_id, campaign_id, True, actor_user_id=ctx.user_id)
    return {"ok": True}


@admin.put("/campaigns/{campaign_id}/deactivate")
def deactivate_campaign(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, bool]:
    campaign_service.set_campaign_active(db, ctx.tenant_id, campaign_id, False, actor_user_id=ctx.user_id)
    return {"ok": True}


@admin.get("/campaigns/{campaign_id}/form-config")
def get_form_config(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, Any]:
    return campaign_service.get_form_config(db, ctx.tenant_id, campaign_id).model_dump(by_alias=True)


@admin.put("/campaigns/{campaign_id}/form-config")
def set_form_config(
    campaign_id: str,
    ctx: TenantContext,
    body: FormConfig,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    config = campaign_service.set_form_config(db, ctx.tenant_id, campaign_id, body)
    return config.model_dump(by_alias=True)


@admin.get("/campaigns/{campaign_id}/custom-fields")
def get_custom_fields(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    return [field.model_dump() for field in campaign_service.get_custom_fields(db, ctx.tenant_id, campaign_id)]


@admin.put("/campaigns/{campaign_id}/custom-fields")
def set_custom_fields(
    campaign_id: str,
    ctx: TenantContext,
    body: CustomFieldsPayload,
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    fields = campaign_service.set_custom_fields(db, ctx.tenant_id, campaign_id, body.custom_fields)
    return [field.model_dump() for field in fields]


@admin.get("/campaigns/{campaign_id}/products")
def get_campaign_products(campaign_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> list[dict]:
    products = campaign_service.get_campaign_products(db, ctx.tenant_id, campaign_id)
    return [ProductOut.model_validate(product).model_dump(mode="json") for product in products]


@admin.post("/campaigns/{campaign_id}/products")
def set_campaign_products(
    campaign_id: str,
    ctx: TenantContext,
    body: CampaignProductsRequest,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    accepted = campaign_service.set_campaign_products(db, ctx.tenant_id, campaign_id, body.product_ids)
    return {"ok": True, "product_ids": accepted}
