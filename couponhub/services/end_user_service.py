"""Administration of end users: the customers who submitted form links."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from couponhub.core.clock import as_utc
from couponhub.core.errors import NotFoundError, ValidationError
from couponhub.db.guards import store_guard
from couponhub.events import emit_event
from couponhub.models.end_user import EndUser
from couponhub.repositories.end_users import EndUserRepository
from couponhub.schemas.users import EndUserDetail, EndUserSummary, UserCouponOut
from couponhub.services.analytics_service import render_csv
from couponhub.services.expiry_service import settle_expiry


logger = logging.getLogger("couponhub.users")

USER_CSV_COLUMNS = (
    "email",
    "first_name",
    "last_name",
    "campaigns",
    "total_coupons",
    "first_coupon_date",
    "last_coupon_date",
)
_CONTACT_FIELDS = ("email", "first_name", "last_name", "phone", "address", "allergies")
_CUSTOM_KEY_PREFIX = "custom:"


def _require_user(repo: EndUserRepository, tenant_id: str, user_id: str) -> EndUser:
    user = repo.get(tenant_id, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _campaign_filter(raw: str | None) -> list[str]:
    return [name.strip() for name in (raw or "").split(",") if name.strip()]


def list_users(
    db: Session,
    tenant_id: str,
    *,
    search: str | None = None,
    campaigns: str | None = None,
) -> list[EndUserSummary]:
    """`campaigns` is a comma-separated list of campaign names; users holding a coupon from any match."""
    repo = EndUserRepository(db)
    rows = repo.list(tenant_id, search=(search or "").strip() or None, campaign_names=_campaign_filter(campaigns))
    user_ids = [user.id for user, *_ in rows]
    names = repo.campaign_names(tenant_id, user_ids)
    custom = repo.custom_data(tenant_id, user_ids)
    return [
        EndUserSummary(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            campaigns=names.get(user.id, []),
            total_coupons=int(total or 0),
            first_coupon_date=as_utc(first_issued),
            last_coupon_date=as_utc(last_issued),
            custom_fields=custom.get(user.id, {}),
        )
        for user, total, first_issued, last_issued in rows
    ]


def export_users_csv(db: Session, tenant_id: str) -> str:
    """Every user of the tenant; custom fields become extra columns in name order."""
    users = list_users(db, tenant_id)
    custom_names = sorted({name for user in users for name in user.custom_fields})
    rows: list[dict[str, Any]] = []
    for user in users:
        row: dict[str, Any] = {
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "campaigns": ", ".join(user.campaigns),
            "total_coupons": user.total_coupons,
            "first_coupon_date": user.first_coupon_date.isoformat() if user.first_coupon_date else None,
            "last_coupon_date": user.last_coupon_date.isoformat() if user.last_coupon_date else None,
        }
        for name, value in user.custom_fields.items():
            row[_CUSTOM_KEY_PREFIX + name] = value
        rows.append(row)
    logger.info("users export", extra={"tenant_id": tenant_id, "rows": len(rows)})
    return render_csv(
        rows,
        headers=(*USER_CSV_COLUMNS, *custom_names),
        keys=(*USER_CSV_COLUMNS, *(_CUSTOM_KEY_PREFIX + name for name in custom_names)),
    )


def get_user(db: Session, tenant_id: str, user_id: str) -> EndUserDetail:
    repo = EndUserRepository(db)
    user = _require_user(repo, tenant_id, user_id)
    detail = EndUserDetail.model_validate(user)
    return detail.model_copy(
        update={
            "created_at": as_utc(user.created_at),
            "custom_fields": repo.custom_data(tenant_id, [user.id]).get(user.id, {}),
        }
    )


def _custom_values(raw: dict[str, Any]) -> dict[str, str]:
    values: dict[str, str] = {}
    for name, value in raw.items():
        name = str(name).strip()
        if not name or len(name) > 120:
            raise ValidationError("Custom field names must be 1 to 120 characters")
        if value is None or value == "":
            continue
        values[name] = str(value)
    return values


def update_user(
    db: Session,
    tenant_id: str,
    user_id: str,
    changes: dict[str, Any],
    *,
    actor_user_id: str | None = None,
) -> EndUserDetail:
    """Patch contact fields; a supplied `custom_fields` mapping replaces the stored set wholesale."""
    repo = EndUserRepository(db)
    user = _require_user(repo, tenant_id, user_id)

    patch = {key: value for key, value in changes.items() if key in _CONTACT_FIELDS}
    if "email" in patch:
        if not patch["email"] or not patch["email"].strip():
            raise ValidationError("email is required")
        patch["email"] = patch["email"].strip().lower()
        if repo.email_taken(tenant_id, patch["email"], exclude_id=user.id):
            raise ValidationError("Email is already used by another user")
    custom = changes.get("custom_fields")
    replacement = _custom_values(custom) if custom is not None else None

    with store_guard(
        db,
        operation="users.update",
        tenant_id=tenant_id,
        conflict_message="Email is already used by another user",
        user_id=user_id,
    ):
        for key, value in patch.items():
            setattr(user, key, value)
        if replacement is not None:
            repo.replace_custom_data(tenant_id, user.id, replacement)
        fields = sorted(patch) + (["custom_fields"] if replacement is not None else [])
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="user.updated",
            payload={"fields": fields},
            subject_id=user.id,
            actor_user_id=actor_user_id,
        )
        db.commit()
    logger.info("user updated", extra={"tenant_id": tenant_id, "user_id": user_id})
    return get_user(db, tenant_id, user_id)


def delete_user(db: Session, tenant_id: str, user_id: str, *, actor_user_id: str | None = None) -> None:
    """Remove a user together with their custom data and settled coupons.

    Users that still hold active coupons are kept; those coupons must be redeemed,
    expired or deleted first.
    """
    settle_expiry(db, tenant_id)
    repo = EndUserRepository(db)
    _require_user(repo, tenant_id, user_id)
    if repo.active_coupon_count(tenant_id, user_id):
        raise ValidationError("Cannot delete a user with active coupons")

    with store_guard(db, operation="users.delete", tenant_id=tenant_id, user_id=user_id):
        repo.delete(tenant_id, user_id)
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="user.deleted",
            payload={},
            subject_id=user_id,
            actor_user_id=actor_user_id,
            level="warning",
        )
        db.commit()
    logger.info("user deleted", extra={"tenant_id": tenant_id, "user_id": user_id})


def list_user_coupons(db: Session, tenant_id: str, user_id: str) -> list[UserCouponOut]:
    settle_expiry(db, tenant_id)
    repo = EndUserRepository(db)
    _require_user(repo, tenant_id, user_id)
    items = []
    for coupon, campaign_name in repo.coupons(tenant_id, user_id):
        item = UserCouponOut.model_validate(coupon)
        items.append(
            item.model_copy(
                update={
                    "issued_at": as_utc(coupon.issued_at),
                    "redeemed_at": as_utc(coupon.redeemed_at),
                    "campaign_name": campaign_name,
                }
            )
        )
    return items
