from pydantic import BaseModel


class LoginRequest(BaseModel):
    username: str
    password: str
    tenant_slug: str | None = None


class SessionUser(BaseModel):
    id: str
    username: str
    user_type: str
    tenant_id: str | None
    tenant_slug: str | None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    csrf_token: str
    user: SessionUser
