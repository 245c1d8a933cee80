from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from couponhub.core.clock import as_utc
from couponhub.core.errors import ValidationError
from couponhub.models.audit_log import AuditLog
from couponhub.repositories.audit_logs import AuditLogRepository
from couponhub.schemas.audit_logs import AuditLogOut
from couponhub.services.tenancy import TenantContext


logger = logging.getLogger("couponhub.audit")

LOG_LEVELS = ("info", "warning", "error")
LIST_LIMIT_DEFAULT = 50
LIST_LIMIT_MAX = 500


def _details(row: AuditLog) -> dict[str, Any] | None:
    try:
        envelope = json.loads(row.payload_json or "{}")
    except ValueError:
        logger.warning("unreadable audit payload", extra={"tenant_id": row.tenant_id, "audit_log_id": row.id})
        return None
    payload = envelope.get("payload") if isinstance(envelope, dict) else None
    return payload if isinstance(payload, dict) else None


def list_logs(
    db: Session,
    ctx: TenantContext,
    *,
    action_type: str | None = None,
    level: str | None = None,
    limit: int = LIST_LIMIT_DEFAULT,
    offset: int = 0,
    order: str = "desc",
) -> dict[str, Any]:
    """Audit trail of the context tenant; superadmins see every tenant's entries."""
    if level and level not in LOG_LEVELS:
        raise ValidationError("level must be one of: info, warning, error")
    total, rows = AuditLogRepository(db).list(
        tenant_id=None if ctx.user_type == "superadmin" else ctx.tenant_id,
        event_type=action_type or None,
        level=level or None,
        limit=min(max(limit, 1), LIST_LIMIT_MAX),
        offset=max(offset, 0),
        descending=order.lower() != "asc",
    )
    items = [
        AuditLogOut(
            id=row.id,
            tenant_id=row.tenant_id,
            event_type=row.event_type,
            level=row.level,
            subject_id=row.subject_id,
            actor_user_id=row.actor_user_id,
            username=username,
            user_type=user_type,
            details=_details(row),
            created_at=as_utc(row.created_at),
        )
        for row, username, user_type in rows
    ]
    return {"total": total, "items": items}
