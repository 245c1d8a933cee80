import logging
from typing import Any

from fastapi import Depends, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.core.clock import utcnow
from couponhub.core.errors import ValidationError
from couponhub.db.session import get_db
from couponhub.repositories.analytics import AnalyticsFilters, SqlAnalyticsRepository
from couponhub.services import analytics_service
from couponhub.services.expiry_service import settle_expiry
from couponhub.services.tenancy import TenantContext

logger = logging.getLogger("couponhub.analytics")

admin = DualRouteRegistrar("admin", role="admin", tags=["analytics"])


def _filters(
    ctx: TenantContext,
    db: Session,
    start: str | None,
    end: str | None,
    campaign_id: str | None,
    status: str | None,
) -> AnalyticsFilters:
    filters = analytics_service.parse_filters(
        ctx.tenant_id,
        start=start,
        end=end,
        campaign_id=campaign_id,
        status=status,
    )
    settle_expiry(db, ctx.tenant_id)
    return filters


@admin.get("/analytics/summary")
def analytics_summary(
    ctx: TenantContext,
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    campaign_id: str | None = Query(default=None, alias="campaignId"),
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    filters = _filters(ctx, db, start, end, campaign_id, status)
    return analytics_service.summary(SqlAnalyticsRepository(db), filters)


@admin.get("/analytics/campaigns")
def analytics_campaigns(
    ctx: TenantContext,
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    campaign_id: str | None = Query(default=None, alias="campaignId"),
    status: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    filters = _filters(ctx, db, start, end, campaign_id, status)
    return analytics_service.campaign_breakdown(SqlAnalyticsRepository(db), filters)


@admin.get("/analytics/temporal")
def analytics_temporal(
    ctx: TenantContext,
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    campaign_id: str | None = Query(default=None, alias="campaignId"),
    status: str | None = Query(default=None),
    group_by: str = Query(default="day", alias="groupBy"),
    db: Session = Depends(get_db),
) -> list[dict[str, Any]]:
    filters = _filters(ctx, db, start, end, campaign_id, status)
    return analytics_service.temporal(SqlAnalyticsRepository(db), filters, group_by)


@admin.get("/analytics/export")
def analytics_export(
    ctx: TenantContext,
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    campaign_id: str | None = Query(default=None, alias="campaignId"),
    status: str | None = Query(default=None),
    export_format: str = Query(default="csv", alias="format"),
    db: Session = Depends(get_db),
) -> Response:
    if export_format not in ("csv", "json"):
        raise ValidationError('format must be "csv" or "json"')
    filters = _filters(ctx, db, start, end, campaign_id, status)
    rows = analytics_service.export_rows(SqlAnalyticsRepository(db), filters)
    logger.info("analytics export", extra={"tenant_id": ctx.tenant_id, "format": export_format, "rows": len(rows)})
    if export_format == "json":
        return JSONResponse(rows)
    filename = f"coupons-{ctx.tenant_slug}-{utcnow():%Y%m%d}.csv"
    return Response(
        content=analytics_service.render_csv(rows).encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
