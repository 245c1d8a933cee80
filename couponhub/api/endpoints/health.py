from fastapi import APIRouter

from couponhub.core.config import get_settings
from couponhub.services import infra_service

router = APIRouter(prefix="/api", tags=["ops"])


@router.get("/health")
def health() -> dict:
    settings = get_settings()
    db_ok = infra_service.db_connected()
    payload: dict[str, str] = {
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "unavailable",
    }
    if settings.rate_limit_enabled:
        payload["redis_status"] = "ok" if infra_service.redis_connected() else "unavailable"
    return payload
