import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from fastapi import HTTPException, status

from couponhub.core.config import get_settings


def create_token(
    *,
    user_id: str,
    tenant_id: str | None,
    tenant_slug: str | None,
    user_type: str,
    token_type: str,
    ttl_seconds: int,
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": user_id,
        "user_id": user_id,
        "tenant_id": tenant_id,
        "tenant_slug": tenant_slug,
        "user_type": user_type,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    settings = get_settings()
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def issue_csrf_token(session_token: str) -> str:
    secret = get_settings().jwt_secret.encode("utf-8")
    return hmac.new(secret, f"csrf:{session_token}".encode("utf-8"), hashlib.sha256).hexdigest()


def verify_csrf_token(session_token: str, candidate: str) -> bool:
    if not session_token or not candidate:
        return False
    return hmac.compare_digest(issue_csrf_token(session_token), candidate)
