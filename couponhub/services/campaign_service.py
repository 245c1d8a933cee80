from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from couponhub.core.config import get_settings
from couponhub.core.errors import ConflictError, NotFoundError, ValidationError
from couponhub.core.metrics import token_collisions_total
from couponhub.db.guards import store_guard
from couponhub.events import emit_event
from couponhub.models.campaign import Campaign
from couponhub.models.product import Product
from couponhub.repositories.campaigns import CampaignRepository
from couponhub.schemas.form_config import CustomField, FormConfig
from couponhub.services.codes import CAMPAIGN_CODE_LENGTH, generate_code
from couponhub.services.expiry_service import settle_expiry


logger = logging.getLogger("couponhub.campaigns")

DISCOUNT_TYPES = ("percent", "fixed", "text")
_UPDATABLE_FIELDS = ("name", "description", "discount_type", "discount_value", "expiry_date", "coupon_expiry_date")


def _discount_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def validate_discount(discount_type: str | None, discount_value: Any) -> tuple[str, str]:
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError("discount_type must be one of: percent, fixed, text")
    text = _discount_text(discount_value)
    if not text:
        raise ValidationError("discount_value is required")
    if discount_type != "text":
        try:
            number = float(text)
        except ValueError as exc:
            raise ValidationError("discount_value must be numeric") from exc
        if not math.isfinite(number) or number < 0:
            raise ValidationError("discount_value must be a non-negative number")
    return discount_type, text


def load_form_config(raw: str | None, *, campaign_id: str | None = None) -> FormConfig:
    if not raw:
        return FormConfig()
    try:
        return FormConfig.model_validate_json(raw)
    except PydanticValidationError:
        logger.warning("stored form config unreadable, using defaults", extra={"campaign_id": campaign_id})
        return FormConfig()


def _require_campaign(repo: CampaignRepository, tenant_id: str, campaign_id: str) -> Campaign:
    campaign = repo.get(tenant_id, campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign not found")
    return campaign


def list_campaigns(db: Session, tenant_id: str) -> list[Campaign]:
    settle_expiry(db, tenant_id)
    return CampaignRepository(db).list(tenant_id)


def list_campaign_options(db: Session, tenant_id: str) -> list[dict[str, str]]:
    settle_expiry(db, tenant_id)
    return [
        {"id": campaign.id, "name": campaign.name, "code": campaign.campaign_code}
        for campaign in CampaignRepository(db).options(tenant_id)
    ]


def get_campaign(db: Session, tenant_id: str, campaign_id: str) -> Campaign:
    settle_expiry(db, tenant_id)
    return _require_campaign(CampaignRepository(db), tenant_id, campaign_id)


def _allocate_code(repo: CampaignRepository, tenant_id: str) -> str:
    for _ in range(get_settings().token_retry_budget):
        code = generate_code(CAMPAIGN_CODE_LENGTH)
        if not repo.code_exists(tenant_id, code):
            return code
        token_collisions_total.labels(kind="campaign_code").inc()
    logger.error("campaign code allocation exhausted", extra={"tenant_id": tenant_id})
    raise ConflictError("Could not allocate a unique campaign code")


def create_campaign(
    db: Session,
    tenant_id: str,
    *,
    name: str | None,
    discount_type: str | None,
    discount_value: Any,
    description: str | None = None,
    expiry_date: datetime | None = None,
    coupon_expiry_date: datetime | None = None,
    actor_user_id: str | None = None,
) -> Campaign:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Campaign name is required")
    discount_type, discount_text = validate_discount(discount_type, discount_value)

    repo = CampaignRepository(db)
    with store_guard(
        db,
        operation="campaign.create",
        tenant_id=tenant_id,
        conflict_message="Campaign code already exists",
    ):
        campaign = repo.add(
            Campaign(
                tenant_id=tenant_id,
                campaign_code=_allocate_code(repo, tenant_id),
                name=name.strip(),
                description=description,
                discount_type=discount_type,
                discount_value=discount_text,
                form_config=FormConfig().to_storage(),
                is_active=False,
                expiry_date=expiry_date,
                coupon_expiry_date=coupon_expiry_date,
            )
        )
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="campaign.created",
            payload={"campaign_code": campaign.campaign_code, "discount_type": discount_type},
            subject_id=campaign.id,
            actor_user_id=actor_user_id,
        )
        db.commit()
    db.refresh(campaign)
    logger.info("campaign created", extra={"tenant_id": tenant_id, "campaign_id": campaign.id})
    return campaign


def update_campaign(
    db: Session,
    tenant_id: str,
    campaign_id: str,
    changes: dict[str, Any],
    *,
    strict: bool | None = None,
    actor_user_id: str | None = None,
) -> Campaign:
    """Patch only the supplied fields.

    Discount type/value pairing is re-checked only in strict mode
    (`campaign_update_strict_validation`); the type itself must always be known.
    """
    strict = get_settings().campaign_update_strict_validation if strict is None else strict
    settle_expiry(db, tenant_id)
    repo = CampaignRepository(db)
    campaign = _require_campaign(repo, tenant_id, campaign_id)

    patch = {key: value for key, value in changes.items() if key in _UPDATABLE_FIELDS}
    if "name" in patch and (not isinstance(patch["name"], str) or not patch["name"].strip()):
        raise ValidationError("Campaign name is required")
    if "discount_type" in patch and patch["discount_type"] not in DISCOUNT_TYPES:
        raise ValidationError("discount_type must be one of: percent, fixed, text")
    if "discount_value" in patch:
        patch["discount_value"] = _discount_text(patch["discount_value"])
        if not patch["discount_value"]:
            raise ValidationError("discount_value is required")
    if strict and ("discount_type" in patch or "discount_value" in patch):
        validate_discount(
            patch.get("discount_type", campaign.discount_type),
            patch.get("discount_value", campaign.discount_value),
        )
    if "name" in patch:
        patch["name"] = patch["name"].strip()

    with store_guard(db, operation="campaign.update", tenant_id=tenant_id, campaign_id=campaign_id):
        for key, value in patch.items():
            setattr(campaign, key, value)
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="campaign.updated",
            payload={"fields": sorted(patch)},
            subject_id=campaign.id,
            actor_user_id=actor_user_id,
        )
        db.commit()
    db.refresh(campaign)
    return campaign


def delete_campaign(db: Session, tenant_id: str, campaign_id: str, *, actor_user_id: str | None = None) -> None:
    repo = CampaignRepository(db)
    with store_guard(db, operation="campaign.delete", tenant_id=tenant_id, campaign_id=campaign_id):
        if repo.delete(tenant_id, campaign_id) == 0:
            db.rollback()
            raise NotFoundError("Campaign not found")
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="campaign.deleted",
            payload={},
            subject_id=campaign_id,
            actor_user_id=actor_user_id,
            level="warning",
        )
        db.commit()
    logger.info("campaign deleted", extra={"tenant_id": tenant_id, "campaign_id": campaign_id})


def set_campaign_active(
    db: Session,
    tenant_id: str,
    campaign_id: str,
    active: bool,
    *,
    actor_user_id: str | None = None,
) -> None:
    settle_expiry(db, tenant_id)
    repo = CampaignRepository(db)
    with store_guard(db, operation="campaign.set_active", tenant_id=tenant_id, campaign_id=campaign_id):
        if repo.set_active(tenant_id, campaign_id, active) == 0:
            db.rollback()
            raise NotFoundError("Campaign not found")
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="campaign.activated" if active else "campaign.deactivated",
            payload={},
            subject_id=campaign_id,
            actor_user_id=actor_user_id,
        )
        db.commit()


def get_form_config(db: Session, tenant_id: str, campaign_id: str) -> FormConfig:
    campaign = get_campaign(db, tenant_id, campaign_id)
    return load_form_config(campaign.form_config, campaign_id=campaign.id)


def _check_custom_field_limit(fields: list[CustomField]) -> None:
    limit = get_settings().custom_field_limit
    if len(fields) > limit:
        raise ValidationError(f"A campaign supports at most {limit} custom fields")


def _store_form_config(db: Session, tenant_id: str, campaign: Campaign, config: FormConfig, event_type: str) -> None:
    with store_guard(db, operation=event_type, tenant_id=tenant_id, campaign_id=campaign.id):
        campaign.form_config = config.to_storage()
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type=event_type,
            payload={"custom_fields": [field.name for field in config.custom_fields]},
            subject_id=campaign.id,
        )
        db.commit()


def set_form_config(db: Session, tenant_id: str, campaign_id: str, config: FormConfig) -> FormConfig:
    _check_custom_field_limit(config.custom_fields)
    campaign = get_campaign(db, tenant_id, campaign_id)
    _store_form_config(db, tenant_id, campaign, config, "campaign.form_config_updated")
    return config


def get_custom_fields(db: Session, tenant_id: str, campaign_id: str) -> list[CustomField]:
    return get_form_config(db, tenant_id, campaign_id).custom_fields


def set_custom_fields(db: Session, tenant_id: str, campaign_id: str, fields: list[CustomField]) -> list[CustomField]:
    _check_custom_field_limit(fields)
    campaign = get_campaign(db, tenant_id, campaign_id)
    current = load_form_config(campaign.form_config, campaign_id=campaign.id)
    try:
        updated = current.model_copy(update={"custom_fields": list(fields)})
        updated = FormConfig.model_validate(updated.model_dump())
    except PydanticValidationError as exc:
        raise ValidationError("Custom field names must be unique") from exc
    _store_form_config(db, tenant_id, campaign, updated, "campaign.custom_fields_updated")
    return updated.custom_fields


def get_campaign_products(db: Session, tenant_id: str, campaign_id: str) -> list[Product]:
    repo = CampaignRepository(db)
    _require_campaign(repo, tenant_id, campaign_id)
    return repo.products(tenant_id, campaign_id)


def set_campaign_products(db: Session, tenant_id: str, campaign_id: str, product_ids: list[str]) -> list[str]:
    """Replace the campaign's products; ids not owned by the tenant are dropped silently."""
    repo = CampaignRepository(db)
    _require_campaign(repo, tenant_id, campaign_id)
    requested = list(dict.fromkeys(product_ids))
    owned = repo.owned_product_ids(tenant_id, requested)
    accepted = [product_id for product_id in requested if product_id in owned]
    if len(accepted) != len(requested):
        logger.info(
            "dropped foreign product ids",
            extra={"tenant_id": tenant_id, "campaign_id": campaign_id, "dropped": len(requested) - len(accepted)},
        )
    with store_guard(db, operation="campaign.set_products", tenant_id=tenant_id, campaign_id=campaign_id):
        repo.replace_products(campaign_id, accepted)
        db.commit()
    return accepted
