from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: str
    tenant_id: str
    event_type: str
    level: str
    subject_id: str | None
    actor_user_id: str | None
    username: str | None
    user_type: str | None
    details: dict[str, Any] | None
    created_at: datetime
