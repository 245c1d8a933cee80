from typing import Any, Literal

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.db.session import get_db
from couponhub.services import audit_log_service
from couponhub.services.tenancy import TenantContext

admin = DualRouteRegistrar("admin", role="admin", tags=["logs"])


@admin.get("/logs")
def list_logs(
    ctx: TenantContext,
    action_type: str | None = Query(default=None, alias="actionType"),
    level: str | None = Query(default=None),
    limit: int = Query(default=audit_log_service.LIST_LIMIT_DEFAULT),
    offset: int = Query(default=0),
    order: Literal["asc", "desc"] = Query(default="desc"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    listing = audit_log_service.list_logs(
        db,
        ctx,
        action_type=action_type,
        level=level,
        limit=limit,
        offset=offset,
        order=order,
    )
    return {"total": listing["total"], "items": [item.model_dump(mode="json") for item in listing["items"]]}
