import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from couponhub.models.audit_log import AuditLog


class EventEnvelope(BaseModel):
    event_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    event_type: str = Field(min_length=1)
    level: Literal["info", "warning", "error"] = "info"
    subject_id: str | None = None
    actor_user_id: str | None = None
    timestamp: str = Field(min_length=1)
    payload: dict[str, Any]


def emit_event(
    db: Session,
    tenant_id: str,
    event_type: str,
    payload: dict[str, Any],
    *,
    subject_id: str | None = None,
    actor_user_id: str | None = None,
    level: Literal["info", "warning", "error"] = "info",
) -> EventEnvelope:
    """Stage an audit row in the caller's transaction; the caller commits."""
    event = EventEnvelope(
        event_id=str(uuid.uuid4()),
        tenant_id=tenant_id,
        event_type=event_type,
        level=level,
        subject_id=subject_id,
        actor_user_id=actor_user_id,
        timestamp=datetime.now(UTC).isoformat(),
        payload=payload,
    )
    db.add(
        AuditLog(
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            event_type=event.event_type,
            level=event.level,
            subject_id=subject_id,
            payload_json=event.model_dump_json(),
            created_at=datetime.now(UTC),
        )
    )
    return event
