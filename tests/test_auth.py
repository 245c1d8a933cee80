from couponhub.core.security import decode_token, verify_csrf_token
from couponhub.models.auth_user import AuthUser


def test_login_returns_session(client, db_session):
    response = client.post("/api/auth/login", json={"username": "admin-a", "password": "pass-a"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["token_type"] == "bearer"
    assert payload["user"]["username"] == "admin-a"
    assert payload["user"]["tenant_slug"] == "alpha"
    assert verify_csrf_token(payload["access_token"], payload["csrf_token"])

    claims = decode_token(payload["access_token"])
    assert claims["user_type"] == "admin"
    assert claims["tenant_slug"] == "alpha"

    user = db_session.query(AuthUser).filter(AuthUser.username == "admin-a").one()
    db_session.refresh(user)
    assert user.last_login_at is not None


def test_login_rejects_wrong_password(client):
    response = client.post("/api/auth/login", json={"username": "admin-a", "password": "nope"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


def test_login_rejects_unknown_user(client):
    response = client.post("/api/auth/login", json={"username": "ghost", "password": "pass-a"})
    assert response.status_code == 401


def test_login_rejects_other_tenant_slug(client):
    response = client.post(
        "/api/auth/login",
        json={"username": "admin-a", "password": "pass-a", "tenant_slug": "beta"},
    )
    assert response.status_code == 401


def test_login_rejects_inactive_user(client, db_session):
    user = db_session.query(AuthUser).filter(AuthUser.username == "store-a").one()
    user.is_active = False
    db_session.commit()

    response = client.post("/api/auth/login", json={"username": "store-a", "password": "pass-store-a"})
    assert response.status_code == 401


def test_superadmin_login_carries_requested_slug(client):
    response = client.post(
        "/api/auth/login",
        json={"username": "root", "password": "pass-root", "tenant_slug": "beta"},
    )
    assert response.status_code == 200
    assert response.json()["user"]["tenant_id"] is None
    assert response.json()["user"]["tenant_slug"] == "beta"


def test_invalid_bearer_is_unauthorized(client):
    response = client.get("/api/admin/campaigns", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"
