from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from couponhub.models.audit_log import AuditLog
from couponhub.models.auth_user import AuthUser


class AuditLogRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list(
        self,
        *,
        tenant_id: str | None,
        event_type: str | None,
        level: str | None,
        limit: int,
        offset: int,
        descending: bool,
    ) -> tuple[int, list[tuple[AuditLog, str | None, str | None]]]:
        """Audit rows with the acting operator's username and role; `tenant_id=None` spans every tenant."""
        conditions = []
        if tenant_id is not None:
            conditions.append(AuditLog.tenant_id == tenant_id)
        if event_type:
            conditions.append(AuditLog.event_type == event_type)
        if level:
            conditions.append(AuditLog.level == level)

        total = self.db.query(func.count(AuditLog.id)).filter(*conditions).scalar()
        ordering = (AuditLog.created_at.desc(), AuditLog.id.desc()) if descending else (AuditLog.created_at.asc(), AuditLog.id.asc())
        rows = (
            self.db.query(AuditLog, AuthUser.username, AuthUser.user_type)
            .outerjoin(AuthUser, AuthUser.id == AuditLog.actor_user_id)
            .filter(*conditions)
            .order_by(*ordering)
            .limit(limit)
            .offset(offset)
            .all()
        )
        return int(total or 0), [tuple(row) for row in rows]
