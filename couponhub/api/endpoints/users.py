from typing import Any

from fastapi import Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.core.clock import utcnow
from couponhub.db.session import get_db
from couponhub.schemas.users import EndUserUpdateRequest
from couponhub.services import end_user_service
from couponhub.services.tenancy import TenantContext

admin = DualRouteRegistrar("admin", role="admin", tags=["users"])


@admin.get("/users")
def list_users(
    ctx: TenantContext,
    search: str | None = Query(default=None),
    campaigns: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    users = end_user_service.list_users(db, ctx.tenant_id, search=search, campaigns=campaigns)
    return [user.model_dump(mode="json", by_alias=True) for user in users]


# Registered ahead of `/users/{user_id}` so the literal segment wins.
@admin.get("/users/export.csv")
def export_users(ctx: TenantContext, db: Session = Depends(get_db)) -> Response:
    filename = f"users-{ctx.tenant_slug}-{utcnow():%Y%m%d-%H%M%S}.csv"
    return Response(
        content=end_user_service.export_users_csv(db, ctx.tenant_id).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@admin.get("/users/{user_id}")
def get_user(user_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, Any]:
    return end_user_service.get_user(db, ctx.tenant_id, user_id).model_dump(mode="json", by_alias=True)


@admin.put("/users/{user_id}")
def update_user(
    user_id: str,
    ctx: TenantContext,
    body: EndUserUpdateRequest,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    user = end_user_service.update_user(
        db,
        ctx.tenant_id,
        user_id,
        body.model_dump(exclude_unset=True),
        actor_user_id=ctx.user_id,
    )
    return user.model_dump(mode="json", by_alias=True)


@admin.delete("/users/{user_id}")
def delete_user(user_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, bool]:
    end_user_service.delete_user(db, ctx.tenant_id, user_id, actor_user_id=ctx.user_id)
    return {"ok": True}


@admin.get("/users/{user_id}/coupons")
def list_user_coupons(user_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in end_user_service.list_user_coupons(db, ctx.tenant_id, user_id)]
