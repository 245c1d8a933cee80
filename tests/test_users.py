import csv
import io

import pytest

from couponhub.models.coupon import Coupon
from couponhub.models.end_user import UserCustomData
from couponhub.services import end_user_service


def _campaign(client, headers, name, custom_fields=None):
    campaign = client.post(
        "/api/admin/campaigns",
        json={"name": name, "discount_type": "percent", "discount_value": 10},
        headers=headers,
    ).json()
    if custom_fields:
        client.put(
            f"/api/admin/campaigns/{campaign['id']}/custom-fields",
            json={"customFields": custom_fields},
            headers=headers,
        )
    assert client.put(f"/api/admin/campaigns/{campaign['id']}/activate", headers=headers).status_code == 200
    return campaign


def _submit(client, headers, campaign, **body):
    links = client.post(f"/api/admin/campaigns/{campaign['id']}/form-links", json={"count": 1}, headers=headers)
    token = links.json()["links"][0]["token"]
    response = client.post(f"/t/alpha/api/form-links/{token}/submit", json=body)
    assert response.status_code == 200, response.text
    return response.json()["code"]


@pytest.fixture()
def customers(client, auth_headers):
    """Ann holds one Spring coupon; Bo holds Spring then Summer."""
    headers = auth_headers("admin-a")
    spring = _campaign(client, headers, "Spring", [{"name": "shoeSize", "label": "Shoe size"}])
    summer = _campaign(client, headers, "Summer")
    codes = {
        "ann": _submit(client, headers, spring, email="ann@example.com", firstName="Ann", lastName="Lee", shoeSize="42"),
        "bo_spring": _submit(client, headers, spring, email="bo@example.com", firstName="Bo", lastName="Rossi"),
        "bo_summer": _submit(client, headers, summer, email="bo@example.com", firstName="Bo", lastName="Rossi"),
    }
    listing = client.get("/api/admin/users", headers=headers).json()
    return {"headers": headers, "codes": codes, "ids": {user["email"]: user["id"] for user in listing}}


def test_list_users_with_coupon_statistics(client, customers):
    listing = client.get("/api/admin/users", headers=customers["headers"])
    assert listing.status_code == 200
    users = listing.json()

    assert [user["email"] for user in users] == ["bo@example.com", "ann@example.com"]
    bo, ann = users
    assert bo["campaigns"] == ["Spring", "Summer"]
    assert bo["total_coupons"] == 2
    assert bo["first_coupon_date"] < bo["last_coupon_date"]
    assert bo["customFields"] == {}
    assert ann["campaigns"] == ["Spring"]
    assert ann["total_coupons"] == 1
    assert ann["first_coupon_date"] == ann["last_coupon_date"]
    assert ann["customFields"] == {"shoeSize": "42"}


@pytest.mark.parametrize(
    ("params", "expected"),
    [
        ({"search": "ross"}, ["bo@example.com"]),
        ({"search": "LEE"}, ["ann@example.com"]),
        ({"search": "   "}, ["bo@example.com", "ann@example.com"]),
        ({"campaigns": "Summer"}, ["bo@example.com"]),
        ({"campaigns": "Spring, Summer"}, ["bo@example.com", "ann@example.com"]),
        ({"campaigns": "Winter"}, []),
        ({"search": "lee", "campaigns": "Summer"}, []),
    ],
)
def test_list_users_filters(client, customers, params, expected):
    users = client.get("/api/admin/users", params=params, headers=customers["headers"]).json()
    assert [user["email"] for user in users] == expected


def test_users_are_tenant_scoped(client, auth_headers, customers):
    ann_id = customers["ids"]["ann@example.com"]
    assert client.get("/api/admin/users", headers=auth_headers("admin-b")).json() == []
    assert client.get(f"/api/admin/users/{ann_id}", headers=auth_headers("admin-b")).status_code == 404
    assert client.get(f"/t/beta/api/admin/users/{ann_id}/coupons", headers=auth_headers("admin-b")).status_code == 404
    assert client.get("/t/beta/api/admin/users", headers=customers["headers"]).status_code == 403
    assert client.get("/api/admin/users", headers=auth_headers("store-a")).status_code == 403


def test_get_user_includes_custom_fields(client, customers):
    ann_id = customers["ids"]["ann@example.com"]
    legacy = client.get(f"/api/admin/users/{ann_id}", headers=customers["headers"])
    scoped = client.get(f"/t/alpha/api/admin/users/{ann_id}", headers=customers["headers"])
    assert legacy.status_code == scoped.status_code == 200
    assert legacy.json() == scoped.json()

    detail = legacy.json()
    assert (detail["email"], detail["first_name"], detail["last_name"]) == ("ann@example.com", "Ann", "Lee")
    assert detail["customFields"] == {"shoeSize": "42"}
    assert detail["created_at"]

    assert client.get("/api/admin/users/missing", headers=customers["headers"]).status_code == 404


def test_update_user_patches_fields_and_replaces_custom_fields(client, customers, db_session):
    ann_id = customers["ids"]["ann@example.com"]
    response = client.put(
        f"/api/admin/users/{ann_id}",
        json={"first_name": "Anna", "customFields": {"shoeSize": "", "nickname": "Annie", "visits": 3}},
        headers=customers["headers"],
    )
    assert response.status_code == 200
    updated = response.json()
    assert (updated["first_name"], updated["last_name"]) == ("Anna", "Lee")
    assert updated["customFields"] == {"nickname": "Annie", "visits": "3"}

    stored = db_session.query(UserCustomData).filter(UserCustomData.user_id == ann_id).all()
    assert {row.field_name for row in stored} == {"nickname", "visits"}

    renamed = client.put(f"/api/admin/users/{ann_id}", json={"email": "Anna@Example.com"}, headers=customers["headers"])
    assert renamed.json()["email"] == "anna@example.com"
    # Custom fields are untouched when the body leaves them out.
    assert renamed.json()["customFields"] == {"nickname": "Annie", "visits": "3"}


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"email": "BO@example.com"}, "Email is already used by another user"),
        ({"email": None}, "email is required"),
        ({"email": "not-an-email"}, None),
    ],
)
def test_update_user_rejects_bad_email(client, customers, body, message):
    ann_id = customers["ids"]["ann@example.com"]
    response = client.put(f"/api/admin/users/{ann_id}", json=body, headers=customers["headers"])
    assert response.status_code == 400
    if message:
        assert response.json()["error"] == message


def test_update_unknown_user_is_not_found(client, customers):
    response = client.put("/api/admin/users/missing", json={"first_name": "X"}, headers=customers["headers"])
    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


def test_delete_user_requires_no_active_coupons(client, auth_headers, customers, db_session):
    headers = customers["headers"]
    ann_id = customers["ids"]["ann@example.com"]

    blocked = client.delete(f"/api/admin/users/{ann_id}", headers=headers)
    assert blocked.status_code == 400
    assert blocked.json()["error"] == "Cannot delete a user with active coupons"

    assert client.post(f"/api/store/coupons/{customers['codes']['ann']}/redeem", headers=auth_headers("store-a")).status_code == 200
    deleted = client.delete(f"/api/admin/users/{ann_id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"ok": True}

    assert client.get(f"/api/admin/users/{ann_id}", headers=headers).status_code == 404
    assert db_session.query(Coupon).filter(Coupon.user_id == ann_id).count() == 0
    assert db_session.query(UserCustomData).filter(UserCustomData.user_id == ann_id).count() == 0
    assert client.delete(f"/api/admin/users/{ann_id}", headers=headers).status_code == 404


def test_user_coupons_newest_first(client, customers):
    bo_id = customers["ids"]["bo@example.com"]
    response = client.get(f"/t/alpha/api/admin/users/{bo_id}/coupons", headers=customers["headers"])
    assert response.status_code == 200
    coupons = response.json()
    assert [coupon["code"] for coupon in coupons] == [customers["codes"]["bo_summer"], customers["codes"]["bo_spring"]]
    assert [coupon["campaign_name"] for coupon in coupons] == ["Summer", "Spring"]
    assert coupons[0]["status"] == "active"

    assert client.get("/api/admin/users/missing/coupons", headers=customers["headers"]).status_code == 404


def test_export_users_csv(client, customers):
    response = client.get("/api/admin/users/export.csv", headers=customers["headers"])
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="users-alpha-' in response.headers["content-disposition"]

    text = response.content.decode("utf-8")
    assert text.startswith("\ufeff")
    rows = list(csv.reader(io.StringIO(text[1:])))
    assert rows[0] == [*end_user_service.USER_CSV_COLUMNS, "shoeSize"]
    by_email = {row[0]: row for row in rows[1:]}
    assert set(by_email) == {"ann@example.com", "bo@example.com"}
    assert by_email["bo@example.com"][3] == "Spring, Summer"
    assert by_email["bo@example.com"][4] == "2"
    assert by_email["bo@example.com"][7] == ""
    assert by_email["ann@example.com"][7] == "42"


def test_export_users_csv_for_empty_tenant(client, auth_headers):
    response = client.get("/t/beta/api/admin/users/export.csv", headers=auth_headers("admin-b"))
    assert response.status_code == 200
    rows = list(csv.reader(io.StringIO(response.content.decode("utf-8")[1:])))
    assert rows == [list(end_user_service.USER_CSV_COLUMNS)]
