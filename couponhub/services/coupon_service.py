from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from couponhub.core.clock import as_utc, utcnow
from couponhub.core.config import get_settings
from couponhub.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from couponhub.core.metrics import coupons_issued_total, coupons_redeemed_total, token_collisions_total
from couponhub.db.guards import store_guard
from couponhub.events import emit_event
from couponhub.models.coupon import COUPON_STATUSES, Coupon
from couponhub.models.end_user import EndUser
from couponhub.repositories.campaigns import CampaignRepository
from couponhub.repositories.coupons import CouponRepository
from couponhub.repositories.form_links import FormLinkRepository
from couponhub.schemas.coupons import CouponListItem, CouponLookupOut, IssuedCouponOut
from couponhub.schemas.form_config import FormConfig
from couponhub.schemas.form_links import FormSubmission
from couponhub.services.campaign_service import load_form_config
from couponhub.services.codes import COUPON_CODE_LENGTH, FORM_LINK_TOKEN_LENGTH, generate_code, is_code
from couponhub.services.expiry_service import settle_expiry


logger = logging.getLogger("couponhub.coupons")

LIST_LIMIT_DEFAULT = 50
LIST_LIMIT_MAX = 500
SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 100

_FIXED_FIELDS = (
    ("first_name", "First name"),
    ("last_name", "Last name"),
    ("phone", "Phone"),
    ("address", "Address"),
    ("allergies", "Allergies"),
)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def collect_submission(config: FormConfig, submission: FormSubmission) -> tuple[dict[str, str | None], dict[str, str]]:
    """Check a public submission against the form layout.

    Returns the visible contact fields and the values of configured custom fields.
    Custom values may arrive nested under `customFields` or as top-level keys.
    """
    contact: dict[str, str | None] = {}
    for attr, label in _FIXED_FIELDS:
        spec = getattr(config, attr)
        value = getattr(submission, attr)
        if not spec.visible:
            contact[attr] = None
            continue
        if spec.required and _blank(value):
            raise ValidationError(f"{label} is required")
        contact[attr] = value.strip() if isinstance(value, str) and value.strip() else None

    supplied: dict[str, Any] = dict(submission.model_extra or {})
    supplied.update(submission.custom_fields)
    custom: dict[str, str] = {}
    for field in config.custom_fields:
        value = supplied.get(field.name)
        if _blank(value):
            if field.required:
                raise ValidationError(f"{field.label} is required")
            continue
        custom[field.name] = str(value).strip()
    return contact, custom


def _allocate_coupon_code(repo: CouponRepository, tenant_id: str) -> str:
    for _ in range(get_settings().token_retry_budget):
        code = generate_code(COUPON_CODE_LENGTH)
        if not repo.code_exists(code):
            return code
        token_collisions_total.labels(kind="coupon_code").inc()
    logger.critical("coupon code allocation exhausted", extra={"tenant_id": tenant_id})
    raise InternalError("Could not generate a unique coupon code")


def redemption_url(tenant_slug: str, code: str) -> str:
    return f"{get_settings().public_base_url.rstrip('/')}/t/{tenant_slug}/redeem/{code}"


def issue_from_link(
    db: Session,
    tenant_id: str,
    tenant_slug: str,
    token: str,
    submission: FormSubmission,
) -> IssuedCouponOut:
    """Consume a single-use form link and issue its coupon in one transaction."""
    settle_expiry(db, tenant_id)
    links = FormLinkRepository(db)
    coupons = CouponRepository(db)

    link = links.get_by_token(tenant_id, token) if is_code(token, FORM_LINK_TOKEN_LENGTH) else None
    if link is None:
        raise NotFoundError("Form link not found")
    if link.used_at is not None:
        raise ConflictError("This form link has already been used")

    campaign = CampaignRepository(db).get(tenant_id, link.campaign_id)
    now = utcnow()
    if campaign is None or not campaign.is_active or (
        campaign.expiry_date is not None and as_utc(campaign.expiry_date) < now
    ):
        raise ValidationError("This campaign is not active or has expired")
    contact, custom = collect_submission(load_form_config(campaign.form_config, campaign_id=campaign.id), submission)

    with store_guard(
        db,
        operation="coupons.issue",
        tenant_id=tenant_id,
        conflict_message="This form link has already been used",
        campaign_id=campaign.id,
    ):
        user = coupons.find_user_by_email(tenant_id, submission.email)
        if user is None:
            user = coupons.add_user(EndUser(tenant_id=tenant_id, email=submission.email.strip().lower(), **contact))
        if custom:
            coupons.add_custom_data(tenant_id, user.id, custom)

        coupon = coupons.add(
            Coupon(
                tenant_id=tenant_id,
                campaign_id=campaign.id,
                user_id=user.id,
                code=_allocate_coupon_code(coupons, tenant_id),
                discount_type=campaign.discount_type,
                discount_value=campaign.discount_value,
                status="active",
                issued_at=now,
            )
        )
        if links.consume(link.id, coupon.id, now) != 1:
            db.rollback()
            raise ConflictError("This form link has already been used")
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="coupon.issued",
            payload={"campaign_id": campaign.id, "form_link_id": link.id},
            subject_id=coupon.id,
        )
        issued = IssuedCouponOut(
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            campaign_name=campaign.name,
            redemption_url=redemption_url(tenant_slug, coupon.code),
        )
        db.commit()

    coupons_issued_total.inc()
    logger.info("coupon issued", extra={"tenant_id": tenant_id, "campaign_id": campaign.id})
    return issued


def lookup_coupon(db: Session, tenant_id: str, code: str) -> CouponLookupOut:
    settle_expiry(db, tenant_id)
    normalized = code.strip().upper()
    found = CouponRepository(db).get_by_code(tenant_id, normalized) if is_code(normalized, COUPON_CODE_LENGTH) else None
    if found is None:
        raise NotFoundError("Coupon not found")
    coupon, campaign_name = found
    return CouponLookupOut(
        code=coupon.code,
        status=coupon.status,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        campaign_name=campaign_name,
        issued_at=as_utc(coupon.issued_at),
        redeemed_at=as_utc(coupon.redeemed_at),
    )


def redeem_coupon(db: Session, tenant_id: str, code: str, *, actor_user_id: str | None = None) -> CouponLookupOut:
    normalized = code.strip().upper()
    current = lookup_coupon(db, tenant_id, normalized)
    if current.status != "active":
        raise ValidationError("Coupon is not active")

    repo = CouponRepository(db)
    with store_guard(db, operation="coupons.redeem", tenant_id=tenant_id):
        if repo.redeem(tenant_id, normalized, utcnow()) != 1:
            db.rollback()
            raise ValidationError("Coupon is not active")
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="coupon.redeemed",
            payload={"code": normalized},
            actor_user_id=actor_user_id,
        )
        db.commit()
    coupons_redeemed_total.inc()
    return lookup_coupon(db, tenant_id, normalized)


def _list_item(row: tuple) -> CouponListItem:
    coupon, campaign_name, first_name, last_name, email = row
    item = CouponListItem.model_validate(coupon)
    return item.model_copy(
        update={
            "issued_at": as_utc(coupon.issued_at),
            "redeemed_at": as_utc(coupon.redeemed_at),
            "campaign_name": campaign_name,
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
        }
    )


def list_coupons(
    db: Session,
    tenant_id: str,
    *,
    status: str | None = "active",
    limit: int = LIST_LIMIT_DEFAULT,
    offset: int = 0,
    order: str = "desc",
) -> dict[str, Any]:
    if status in (None, "", "all"):
        status = None
    elif status not in COUPON_STATUSES:
        raise ValidationError("status must be one of: active, redeemed, expired, all")
    settle_expiry(db, tenant_id)
    total, rows = CouponRepository(db).list(
        tenant_id,
        status=status,
        limit=min(max(limit, 1), LIST_LIMIT_MAX),
        offset=max(offset, 0),
        descending=order.lower() != "asc",
    )
    return {"total": total, "items": [_list_item(row) for row in rows]}


def search_coupons(db: Session, tenant_id: str, q: str | None) -> list[CouponListItem]:
    term = (q or "").strip()
    if len(term) < SEARCH_MIN_LENGTH:
        return []
    settle_expiry(db, tenant_id)
    return [_list_item(row) for row in CouponRepository(db).search(tenant_id, term, limit=SEARCH_LIMIT)]


def delete_coupon(db: Session, tenant_id: str, coupon_id: str, *, actor_user_id: str | None = None) -> None:
    """Administrative removal; unconditional on status. The consumed form link stays consumed."""
    repo = CouponRepository(db)
    with store_guard(db, operation="coupons.delete", tenant_id=tenant_id, coupon_id=coupon_id):
        if repo.delete(tenant_id, coupon_id) == 0:
            db.rollback()
            raise NotFoundError("Coupon not found")
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="coupon.deleted",
            payload={},
            subject_id=coupon_id,
            actor_user_id=actor_user_id,
            level="warning",
        )
        db.commit()
