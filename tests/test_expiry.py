from datetime import timedelta

from couponhub.core.clock import utcnow
from couponhub.models.campaign import Campaign
from couponhub.services.expiry_service import settle_expiry


def _campaign(db_session, tenant_id, **fields):
    campaign = Campaign(
        tenant_id=tenant_id,
        name=fields.pop("name", "Promo"),
        campaign_code=fields.pop("campaign_code", "PROMO0000001"),
        discount_type="fixed",
        discount_value="5",
        **fields,
    )
    db_session.add(campaign)
    db_session.commit()
    return campaign


def test_settle_deactivates_overdue_campaigns_once(db_session, tenant_ids):
    campaign = _campaign(
        db_session,
        tenant_ids["alpha"],
        is_active=True,
        expiry_date=utcnow() - timedelta(minutes=1),
    )

    first = settle_expiry(db_session, tenant_ids["alpha"])
    assert first.campaign_ids == [campaign.id]
    db_session.refresh(campaign)
    assert campaign.is_active is False

    second = settle_expiry(db_session, tenant_ids["alpha"])
    assert not second.changed


def test_settle_never_reactivates_inactive_campaigns(db_session, tenant_ids):
    campaign = _campaign(
        db_session,
        tenant_ids["alpha"],
        is_active=False,
        expiry_date=utcnow() + timedelta(days=30),
    )

    assert not settle_expiry(db_session, tenant_ids["alpha"]).changed
    db_session.refresh(campaign)
    assert campaign.is_active is False


def test_settle_is_tenant_scoped(db_session, tenant_ids):
    campaign = _campaign(
        db_session,
        tenant_ids["beta"],
        is_active=True,
        expiry_date=utcnow() - timedelta(days=1),
    )

    assert not settle_expiry(db_session, tenant_ids["alpha"]).changed
    db_session.refresh(campaign)
    assert campaign.is_active is True


def test_settle_uses_supplied_clock(db_session, tenant_ids):
    _campaign(
        db_session,
        tenant_ids["alpha"],
        is_active=True,
        expiry_date=utcnow() + timedelta(hours=1),
    )

    assert not settle_expiry(db_session, tenant_ids["alpha"]).changed
    assert settle_expiry(db_session, tenant_ids["alpha"], now=utcnow() + timedelta(hours=2)).changed
