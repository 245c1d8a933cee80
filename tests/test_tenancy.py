import pytest

from couponhub.core.errors import ForbiddenError
from couponhub.services.tenancy import has_role, require_role, slug_from_referer


def _create_campaign(client, headers, prefix="/api/admin", name="Spring Promo"):
    response = client.post(
        f"{prefix}/campaigns",
        json={"name": name, "discount_type": "percent", "discount_value": 10},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_campaigns_are_tenant_isolated(client, auth_headers):
    created_a = _create_campaign(client, auth_headers("admin-a"), name="Alpha Promo")
    _create_campaign(client, auth_headers("admin-b"), prefix="/t/beta/api/admin", name="Beta Promo")

    list_a = client.get("/api/admin/campaigns", headers=auth_headers("admin-a"))
    list_b = client.get("/t/beta/api/admin/campaigns", headers=auth_headers("admin-b"))
    assert [row["name"] for row in list_a.json()] == ["Alpha Promo"]
    assert [row["name"] for row in list_b.json()] == ["Beta Promo"]

    foreign = client.get(f"/api/admin/campaigns/{created_a['id']}", headers=auth_headers("admin-b"))
    assert foreign.status_code == 404
    assert foreign.json() == {"error": "Campaign not found", "code": "not_found"}


def test_legacy_and_tenant_routes_share_one_handler(client, auth_headers):
    created = _create_campaign(client, auth_headers("admin-a"), prefix="/t/alpha/api/admin")

    legacy = client.get(f"/api/admin/campaigns/{created['id']}", headers=auth_headers("admin-a"))
    scoped = client.get(f"/t/alpha/api/admin/campaigns/{created['id']}", headers=auth_headers("admin-a"))
    assert legacy.status_code == 200
    assert legacy.json() == scoped.json()


def test_cross_tenant_path_is_forbidden(client, auth_headers):
    response = client.get("/t/beta/api/admin/campaigns", headers=auth_headers("admin-a"))
    assert response.status_code == 403
    assert response.json()["error"] == "Access denied for this tenant"


def test_unknown_tenant_slug_is_not_found_for_signed_in_callers(client, auth_headers):
    response = client.get("/t/no-such-tenant/api/admin/campaigns", headers=auth_headers("admin-a"))
    assert response.status_code == 404
    assert response.json()["error"] == "Tenant not found"


def test_anonymous_callers_cannot_tell_known_slugs_from_unknown(client):
    unknown = client.get("/t/no-such-tenant/api/admin/campaigns")
    known = client.get("/t/alpha/api/admin/campaigns")
    assert unknown.status_code == known.status_code == 401
    assert unknown.json() == known.json() == {"error": "Authentication required"}


def test_missing_session_is_unauthorized(client):
    assert client.get("/api/admin/campaigns").status_code == 401
    assert client.get("/t/alpha/api/admin/campaigns").status_code == 401


def test_store_user_cannot_reach_admin_routes(client, auth_headers):
    response = client.get("/api/admin/campaigns", headers=auth_headers("store-a"))
    assert response.status_code == 403
    assert response.json()["error"] == "Insufficient role"


def test_superadmin_legacy_route_needs_a_tenant_hint(client, auth_headers):
    _create_campaign(client, auth_headers("admin-a"), name="Alpha Promo")

    no_hint = client.get("/api/admin/campaigns", headers=auth_headers("root"))
    assert no_hint.status_code == 400
    assert no_hint.json()["error"] == "Invalid tenant"

    via_referer = client.get(
        "/api/admin/campaigns",
        headers=auth_headers("root", Referer="http://testserver/t/alpha/admin/campaigns"),
    )
    assert via_referer.status_code == 200
    assert [row["name"] for row in via_referer.json()] == ["Alpha Promo"]

    unknown_referer = client.get(
        "/api/admin/campaigns",
        headers=auth_headers("root", Referer="http://testserver/t/missing/admin"),
    )
    assert unknown_referer.status_code == 400


def test_superadmin_bypasses_path_tenant_match(client, auth_headers):
    response = client.get("/t/beta/api/admin/campaigns", headers=auth_headers("root"))
    assert response.status_code == 200
    assert response.json() == []


def test_session_tenant_wins_over_referer(client, auth_headers):
    _create_campaign(client, auth_headers("admin-b"), prefix="/t/beta/api/admin", name="Beta Promo")
    response = client.get(
        "/api/admin/campaigns",
        headers=auth_headers("admin-a", Referer="http://testserver/t/beta/admin"),
    )
    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.parametrize(
    ("referer", "expected"),
    [
        ("http://example.com/t/alpha/admin", "alpha"),
        ("http://example.com/t/alpha", "alpha"),
        ("https://example.com/admin/t/alpha/", None),
        ("http://example.com/", None),
        (None, None),
    ],
)
def test_slug_from_referer(referer, expected):
    assert slug_from_referer(referer) == expected


def test_role_grants():
    assert has_role({"user_type": "admin"}, "store")
    assert has_role({"user_type": "superadmin"}, "admin")
    assert not has_role({"user_type": "store"}, "admin")
    with pytest.raises(ForbiddenError):
        require_role({"user_type": "store"}, "admin")
