from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from couponhub.core.config import get_settings
from couponhub.core.errors import InternalError, NotFoundError, ValidationError
from couponhub.core.metrics import form_links_generated_total, token_collisions_total
from couponhub.db.guards import store_guard
from couponhub.events import emit_event
from couponhub.models.form_link import FormLink
from couponhub.repositories.campaigns import CampaignRepository
from couponhub.repositories.form_links import FormLinkRepository
from couponhub.schemas.form_links import FormLinkOut
from couponhub.services.codes import FORM_LINK_TOKEN_LENGTH, generate_code
from couponhub.services.expiry_service import settle_expiry


logger = logging.getLogger("couponhub.form_links")


def _draw_token(repo: FormLinkRepository, pending: set[str], *, tenant_id: str, campaign_id: str) -> str:
    budget = get_settings().token_retry_budget
    for _ in range(budget):
        token = generate_code(FORM_LINK_TOKEN_LENGTH)
        if token not in pending and not repo.token_exists(token):
            return token
        token_collisions_total.labels(kind="form_link").inc()
    logger.critical(
        "form link token generation exhausted its retry budget",
        extra={"tenant_id": tenant_id, "campaign_id": campaign_id, "operation": "form_links.generate"},
    )
    raise InternalError("Could not generate a unique form link token")


def generate_links(
    db: Session,
    tenant_id: str,
    campaign_id: str,
    count: int,
    *,
    actor_user_id: str | None = None,
) -> list[FormLinkOut]:
    max_batch = get_settings().form_link_max_batch
    if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= max_batch:
        raise ValidationError(f"count must be between 1 and {max_batch}")

    settle_expiry(db, tenant_id)
    if CampaignRepository(db).get(tenant_id, campaign_id) is None:
        raise NotFoundError("Campaign not found")

    repo = FormLinkRepository(db)
    pending: set[str] = set()
    links: list[FormLink] = []
    with store_guard(db, operation="form_links.generate", tenant_id=tenant_id, campaign_id=campaign_id):
        for _ in range(count):
            token = _draw_token(repo, pending, tenant_id=tenant_id, campaign_id=campaign_id)
            pending.add(token)
            links.append(repo.add(FormLink(tenant_id=tenant_id, campaign_id=campaign_id, token=token)))
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="form_links.generated",
            payload={"count": count},
            subject_id=campaign_id,
            actor_user_id=actor_user_id,
        )
        db.flush()
        issued = [FormLinkOut.model_validate(link) for link in links]
        db.commit()
    form_links_generated_total.inc(count)
    logger.info(
        "form links generated",
        extra={"tenant_id": tenant_id, "campaign_id": campaign_id, "count": count},
    )
    return issued


def list_links(db: Session, tenant_id: str, campaign_id: str) -> tuple[list[FormLink], dict[str, int]]:
    settle_expiry(db, tenant_id)
    if CampaignRepository(db).get(tenant_id, campaign_id) is None:
        raise NotFoundError("Campaign not found")
    repo = FormLinkRepository(db)
    links = repo.list_for_campaign(tenant_id, campaign_id)
    total, used = repo.statistics(tenant_id, campaign_id)
    return links, {"total": total, "used": used, "available": total - used}
