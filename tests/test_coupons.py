from datetime import timedelta

from couponhub.core.clock import utcnow
from couponhub.services.expiry_service import settle_expiry


def _issue_coupons(client, headers, count=1, *, last_names=None, **campaign_overrides):
    body = {"name": "Launch", "discount_type": "percent", "discount_value": 15}
    body.update(campaign_overrides)
    campaign = client.post("/api/admin/campaigns", json=body, headers=headers).json()
    client.put(f"/api/admin/campaigns/{campaign['id']}/activate", headers=headers)
    links = client.post(
        f"/api/admin/campaigns/{campaign['id']}/form-links",
        json={"count": count},
        headers=headers,
    ).json()["links"]
    last_names = last_names or [f"Customer{i}" for i in range(count)]
    codes = []
    for index, link in enumerate(links):
        response = client.post(
            f"/t/alpha/api/form-links/{link['token']}/submit",
            json={"email": f"user{index}@example.com", "firstName": "Pat", "lastName": last_names[index]},
        )
        assert response.status_code == 200, response.text
        codes.append(response.json()["code"])
    return campaign, codes


def test_store_lookup_and_redeem(client, auth_headers):
    _, (code,) = _issue_coupons(client, auth_headers("admin-a"))
    store = auth_headers("store-a")

    lookup = client.get(f"/api/store/coupons/{code}", headers=store)
    assert lookup.status_code == 200
    assert lookup.json()["status"] == "active"
    assert lookup.json()["campaign_name"] == "Launch"
    assert lookup.json()["discount_value"] == "15"

    redeemed = client.post(f"/t/alpha/api/store/coupons/{code}/redeem", headers=store)
    assert redeemed.status_code == 200
    assert redeemed.json()["ok"] is True
    assert redeemed.json()["coupon"]["status"] == "redeemed"
    assert redeemed.json()["coupon"]["redeemed_at"] is not None

    again = client.post(f"/api/store/coupons/{code}/redeem", headers=store)
    assert again.status_code == 400
    assert again.json()["error"] == "Coupon is not active"


def test_lookup_normalizes_code_case(client, auth_headers):
    _, (code,) = _issue_coupons(client, auth_headers("admin-a"))
    response = client.get(f"/api/store/coupons/{code.lower()}", headers=auth_headers("store-a"))
    assert response.status_code == 200
    assert response.json()["code"] == code


def test_admin_may_use_store_routes(client, auth_headers):
    _, (code,) = _issue_coupons(client, auth_headers("admin-a"))
    response = client.post(f"/api/store/coupons/{code}/redeem", headers=auth_headers("admin-a"))
    assert response.status_code == 200


def test_unknown_and_foreign_coupons_are_not_found(client, auth_headers):
    _, (code,) = _issue_coupons(client, auth_headers("admin-a"))

    assert client.get("/api/store/coupons/NOTACOUPON00", headers=auth_headers("store-a")).status_code == 404
    assert client.get(f"/t/beta/api/store/coupons/{code}", headers=auth_headers("admin-b")).status_code == 404
    assert client.post(f"/api/store/coupons/{code}/redeem", headers=auth_headers("admin-b")).status_code == 404


def test_store_user_of_other_tenant_is_forbidden(client, auth_headers):
    _, (code,) = _issue_coupons(client, auth_headers("admin-a"))
    response = client.get(f"/t/beta/api/store/coupons/{code}", headers=auth_headers("store-a"))
    assert response.status_code == 403


def test_coupon_expires_with_campaign_coupon_expiry(client, auth_headers, db_session, tenant_ids):
    expires = (utcnow() + timedelta(days=1)).isoformat()
    _, (code,) = _issue_coupons(client, auth_headers("admin-a"), coupon_expiry_date=expires)

    result = settle_expiry(db_session, tenant_ids["alpha"], now=utcnow() + timedelta(days=2))
    assert len(result.coupon_ids) == 1
    assert result.campaign_ids == []

    store = auth_headers("store-a")
    assert client.get(f"/api/store/coupons/{code}", headers=store).json()["status"] == "expired"
    response = client.post(f"/api/store/coupons/{code}/redeem", headers=store)
    assert response.status_code == 400


def test_list_coupons_filters_and_paginates(client, auth_headers):
    headers = auth_headers("admin-a")
    _, codes = _issue_coupons(client, headers, count=3)
    client.post(f"/api/store/coupons/{codes[0]}/redeem", headers=headers)

    active = client.get("/api/admin/coupons", headers=headers).json()
    assert active["total"] == 2
    assert {item["code"] for item in active["items"]} == set(codes[1:])
    assert active["items"][0]["campaign_name"] == "Launch"
    assert active["items"][0]["first_name"] == "Pat"

    redeemed = client.get("/api/admin/coupons", params={"status": "redeemed"}, headers=headers).json()
    assert [item["code"] for item in redeemed["items"]] == [codes[0]]

    everything = client.get("/api/admin/coupons", params={"status": "all", "limit": 2}, headers=headers).json()
    assert everything["total"] == 3
    assert len(everything["items"]) == 2

    page_two = client.get(
        "/api/admin/coupons",
        params={"status": "all", "limit": 2, "offset": 2},
        headers=headers,
    ).json()
    assert len(page_two["items"]) == 1

    bad = client.get("/api/admin/coupons", params={"status": "lost"}, headers=headers)
    assert bad.status_code == 400


def test_list_coupons_is_tenant_scoped(client, auth_headers):
    _issue_coupons(client, auth_headers("admin-a"), count=2)
    listing = client.get("/t/beta/api/admin/coupons", params={"status": "all"}, headers=auth_headers("admin-b"))
    assert listing.json() == {"total": 0, "items": []}


def test_search_coupons(client, auth_headers):
    headers = auth_headers("admin-a")
    _, codes = _issue_coupons(client, headers, count=2, last_names=["Rossi", "Bianchi"])

    assert client.get("/api/admin/coupons/search", params={"q": "r"}, headers=headers).json() == []

    by_name = client.get("/api/admin/coupons/search", params={"q": "ross"}, headers=headers).json()
    assert [item["code"] for item in by_name] == [codes[0]]

    by_code = client.get("/api/admin/coupons/search", params={"q": codes[1][2:8].lower()}, headers=headers).json()
    assert codes[1] in [item["code"] for item in by_code]


def test_delete_coupon_keeps_link_consumed(client, auth_headers):
    headers = auth_headers("admin-a")
    campaign, (code,) = _issue_coupons(client, headers)
    coupon_id = client.get("/api/admin/coupons", headers=headers).json()["items"][0]["id"]

    assert client.delete(f"/api/admin/coupons/{coupon_id}", headers=headers).json() == {"ok": True}
    assert client.get(f"/api/store/coupons/{code}", headers=headers).status_code == 404
    assert client.delete(f"/api/admin/coupons/{coupon_id}", headers=headers).status_code == 404

    stats = client.get(f"/api/admin/campaigns/{campaign['id']}/form-links", headers=headers).json()["statistics"]
    assert stats == {"total": 1, "used": 1, "available": 0}


def test_issued_coupon_keeps_discount_snapshot(client, auth_headers):
    headers = auth_headers("admin-a")
    campaign, (code,) = _issue_coupons(client, headers)
    client.put(f"/api/admin/campaigns/{campaign['id']}", json={"discount_value": 50}, headers=headers)

    assert client.get(f"/api/store/coupons/{code}", headers=headers).json()["discount_value"] == "15"
