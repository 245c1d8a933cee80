from typing import Any, Literal

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.db.session import get_db
from couponhub.services import coupon_service
from couponhub.services.tenancy import TenantContext

admin = DualRouteRegistrar("admin", role="admin", tags=["coupons"])
store = DualRouteRegistrar("store", role="store", tags=["store"])


@admin.get("/coupons")
def list_coupons(
    ctx: TenantContext,
    status: str | None = Query(default="active"),
    limit: int = Query(default=coupon_service.LIST_LIMIT_DEFAULT),
    offset: int = Query(default=0),
    order: Literal["asc", "desc"] = Query(default="desc"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    listing = coupon_service.list_coupons(db, ctx.tenant_id, status=status, limit=limit, offset=offset, order=order)
    return {"total": listing["total"], "items": [item.model_dump(mode="json") for item in listing["items"]]}


@admin.get("/coupons/search")
def search_coupons(ctx: TenantContext, q: str | None = Query(default=None), db: Session = Depends(get_db)) -> list[dict]:
    return [item.model_dump(mode="json") for item in coupon_service.search_coupons(db, ctx.tenant_id, q)]


@admin.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, bool]:
    coupon_service.delete_coupon(db, ctx.tenant_id, coupon_id, actor_user_id=ctx.user_id)
    return {"ok": True}


@store.get("/coupons/{code}")
def lookup_coupon(code: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, Any]:
    return coupon_service.lookup_coupon(db, ctx.tenant_id, code).model_dump(mode="json")


@store.post("/coupons/{code}/redeem")
def redeem_coupon(code: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, Any]:
    coupon = coupon_service.redeem_coupon(db, ctx.tenant_id, code, actor_user_id=ctx.user_id)
    return {"ok": True, "coupon": coupon.model_dump(mode="json")}
