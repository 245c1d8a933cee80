"""Coupon analytics over an injected AnalyticsRepository.

Every read shape walks the filtered coupon facts once and joins them in memory
against one per-campaign averages map (average associated product value and
margin), fetched with a single grouped query per request.
"""
from __future__ import annotations

import csv
import io
import math
import re
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal

from couponhub.core.errors import ValidationError
from couponhub.repositories.analytics import (
    AnalyticsFilters,
    AnalyticsRepository,
    CouponFact,
    ExportFact,
    ProductAverages,
)

GroupBy = Literal["day", "week"]
ExportFormat = Literal["csv", "json"]

ANALYTICS_STATUSES = ("active", "redeemed", "expired")
CSV_BOM = "\ufeff"
CSV_HEADERS = (
    "Code",
    "Status",
    "Issued At",
    "Redeemed At",
    "Campaign",
    "First Name",
    "Last Name",
    "Email",
    "Discount Type",
    "Discount Value",
    "Avg Product Value",
    "Avg Margin",
    "Estimated Discount",
)
EXPORT_KEYS = (
    "code",
    "status",
    "issued_at",
    "redeemed_at",
    "campaign_name",
    "first_name",
    "last_name",
    "email",
    "discount_type",
    "discount_value",
    "avg_product_value",
    "avg_margin",
    "estimated_discount",
)

_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NO_AVERAGES = ProductAverages()


def _parse_day(raw: str | None, name: str) -> date | None:
    if raw is None or raw == "":
        return None
    if not _DATE.match(raw):
        raise ValidationError(f"Invalid date format for {name} (expected YYYY-MM-DD)")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid date format for {name} (expected YYYY-MM-DD)") from exc


def parse_filters(
    tenant_id: str,
    *,
    start: str | None = None,
    end: str | None = None,
    campaign_id: str | None = None,
    status: str | None = None,
) -> AnalyticsFilters:
    if status and status not in ANALYTICS_STATUSES:
        raise ValidationError("status must be one of: active, redeemed, expired")
    if campaign_id:
        try:
            uuid.UUID(campaign_id)
        except ValueError as exc:
            raise ValidationError("campaignId is not a valid identifier") from exc
    start_day = _parse_day(start, "start")
    end_day = _parse_day(end, "end")
    if start_day and end_day and start_day > end_day:
        raise ValidationError("start must not be after end")
    return AnalyticsFilters(
        tenant_id=tenant_id,
        start=start_day,
        end=end_day,
        campaign_id=campaign_id or None,
        status=status or None,
    )


def _number(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def estimate_discount(discount_type: str, discount_value: Any, averages: ProductAverages) -> float:
    if discount_type == "percent":
        return max(0.0, averages.avg_value) * _number(discount_value) / 100
    if discount_type == "fixed":
        return _number(discount_value)
    return 0.0


@dataclass
class _Tally:
    issued: int = 0
    redeemed: int = 0
    discount_issued: float = 0.0
    discount_redeemed: float = 0.0
    margin_redeemed: float = 0.0

    def add(self, fact: CouponFact, averages: ProductAverages) -> None:
        discount = estimate_discount(fact.discount_type, fact.discount_value, averages)
        self.issued += 1
        self.discount_issued += discount
        if fact.status == "redeemed":
            self.redeemed += 1
            self.discount_redeemed += discount
            self.margin_redeemed += max(0.0, averages.avg_margin)

    @property
    def redemption_rate(self) -> float:
        return self.redeemed / self.issued if self.issued else 0.0

    @property
    def net_margin(self) -> float:
        return max(0.0, self.margin_redeemed - self.discount_redeemed)


def summary(repo: AnalyticsRepository, filters: AnalyticsFilters) -> dict[str, Any]:
    averages = repo.campaign_averages(filters.tenant_id)
    tally = _Tally()
    for fact in repo.coupon_facts(filters):
        tally.add(fact, averages.get(fact.campaign_id, _NO_AVERAGES))
    return {
        "totalCampaigns": len(repo.campaigns(filters.tenant_id)),
        "totalCouponsIssued": tally.issued,
        "totalCouponsRedeemed": tally.redeemed,
        "redemptionRate": tally.redemption_rate,
        "estimatedDiscountIssued": tally.discount_issued,
        "estimatedDiscountRedeemed": tally.discount_redeemed,
        "estimatedGrossMarginOnRedeemed": tally.margin_redeemed,
        "estimatedNetMarginAfterDiscount": tally.net_margin,
    }


def campaign_breakdown(repo: AnalyticsRepository, filters: AnalyticsFilters) -> list[dict[str, Any]]:
    """Per-campaign figures; campaigns without matching coupons are zero-filled."""
    averages = repo.campaign_averages(filters.tenant_id)
    campaigns = repo.campaigns(filters.tenant_id)
    tallies = {campaign.id: _Tally() for campaign in campaigns}
    for fact in repo.coupon_facts(filters):
        tally = tallies.get(fact.campaign_id)
        if tally is not None:
            tally.add(fact, averages.get(fact.campaign_id, _NO_AVERAGES))
    return [
        {
            "id": campaign.id,
            "name": campaign.name,
            "issued": tallies[campaign.id].issued,
            "redeemed": tallies[campaign.id].redeemed,
            "redemptionRate": tallies[campaign.id].redemption_rate,
            "estDiscountIssued": tallies[campaign.id].discount_issued,
            "estDiscountRedeemed": tallies[campaign.id].discount_redeemed,
            "estGrossMarginRedeemed": tallies[campaign.id].margin_redeemed,
            "estNetMarginAfterDiscount": tallies[campaign.id].net_margin,
        }
        for campaign in campaigns
    ]


def period_key(issued_at: datetime, group_by: GroupBy) -> str:
    if group_by == "week":
        # Monday-based week number, matching strftime %W.
        return issued_at.strftime("%Y-W%W")
    return issued_at.strftime("%Y-%m-%d")


def temporal(repo: AnalyticsRepository, filters: AnalyticsFilters, group_by: str = "day") -> list[dict[str, Any]]:
    if group_by not in ("day", "week"):
        raise ValidationError('groupBy must be "day" or "week"')
    averages = repo.campaign_averages(filters.tenant_id)
    buckets: dict[str, dict[str, Any]] = {}
    for fact in repo.coupon_facts(filters):
        period = period_key(fact.issued_at, group_by)  # type: ignore[arg-type]
        bucket = buckets.setdefault(
            period,
            {"period": period, "issued": 0, "redeemed": 0, "discount_applied": 0.0, "gross_margin": 0.0},
        )
        bucket["issued"] += 1
        if fact.status == "redeemed":
            campaign_averages = averages.get(fact.campaign_id, _NO_AVERAGES)
            bucket["redeemed"] += 1
            bucket["discount_applied"] += estimate_discount(fact.discount_type, fact.discount_value, campaign_averages)
            bucket["gross_margin"] += max(0.0, campaign_averages.avg_margin)
    return [buckets[period] for period in sorted(buckets)]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def export_rows(repo: AnalyticsRepository, filters: AnalyticsFilters) -> list[dict[str, Any]]:
    averages = repo.campaign_averages(filters.tenant_id)
    rows: list[dict[str, Any]] = []
    for fact in repo.export_facts(filters):
        campaign_averages = averages.get(fact.campaign_id, _NO_AVERAGES)
        rows.append(_export_row(fact, campaign_averages))
    return rows


def _export_row(fact: ExportFact, averages: ProductAverages) -> dict[str, Any]:
    return {
        "code": fact.code,
        "status": fact.status,
        "issued_at": _iso(fact.issued_at),
        "redeemed_at": _iso(fact.redeemed_at),
        "campaign_id": fact.campaign_id,
        "campaign_name": fact.campaign_name,
        "first_name": fact.first_name,
        "last_name": fact.last_name,
        "email": fact.email,
        "discount_type": fact.discount_type,
        "discount_value": fact.discount_value,
        "avg_product_value": averages.avg_value,
        "avg_margin": averages.avg_margin,
        "estimated_discount": estimate_discount(fact.discount_type, fact.discount_value, averages),
    }


def render_csv(
    rows: Iterable[dict[str, Any]],
    *,
    headers: Sequence[str] = CSV_HEADERS,
    keys: Sequence[str] = EXPORT_KEYS,
) -> str:
    """Spreadsheet-friendly CSV: BOM, header row, every text field quoted with quotes doubled.

    Missing keys and None render as empty cells.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, doublequote=True)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(key) is None else row[key] for key in keys])
    return CSV_BOM + buffer.getvalue()
