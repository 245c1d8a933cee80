import pytest


@pytest.fixture()
def audited(client, auth_headers):
    """One created and one deleted campaign in tenant alpha."""
    headers = auth_headers("admin-a")
    kept = client.post(
        "/api/admin/campaigns",
        json={"name": "Kept", "discount_type": "fixed", "discount_value": 5},
        headers=headers,
    ).json()
    dropped = client.post(
        "/api/admin/campaigns",
        json={"name": "Dropped", "discount_type": "fixed", "discount_value": 5},
        headers=headers,
    ).json()
    assert client.delete(f"/api/admin/campaigns/{dropped['id']}", headers=headers).status_code == 200
    return {"headers": headers, "kept": kept, "dropped": dropped}


def test_logs_newest_first_with_actor(client, audited):
    response = client.get("/api/admin/logs", headers=audited["headers"])
    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 3
    assert [item["event_type"] for item in payload["items"]] == ["campaign.deleted", "campaign.created", "campaign.created"]

    deleted, created = payload["items"][0], payload["items"][2]
    assert deleted["level"] == "warning"
    assert deleted["subject_id"] == audited["dropped"]["id"]
    assert (deleted["username"], deleted["user_type"]) == ("admin-a", "admin")
    assert created["level"] == "info"
    assert created["details"]["campaign_code"] == audited["kept"]["campaign_code"]


def test_logs_filters(client, audited):
    headers = audited["headers"]

    by_action = client.get("/api/admin/logs", params={"actionType": "campaign.created"}, headers=headers).json()
    assert by_action["total"] == 2
    assert {item["event_type"] for item in by_action["items"]} == {"campaign.created"}

    warnings = client.get("/t/alpha/api/admin/logs", params={"level": "warning"}, headers=headers).json()
    assert [item["event_type"] for item in warnings["items"]] == ["campaign.deleted"]

    oldest = client.get("/api/admin/logs", params={"order": "asc", "limit": 1}, headers=headers).json()
    assert oldest["total"] == 3
    assert [item["subject_id"] for item in oldest["items"]] == [audited["kept"]["id"]]

    page = client.get("/api/admin/logs", params={"offset": 2}, headers=headers).json()
    assert len(page["items"]) == 1


@pytest.mark.parametrize(("limit", "returned"), [(0, 1), (-5, 1), (2, 2), (10_000, 3)])
def test_logs_limit_is_clamped(client, audited, limit, returned):
    payload = client.get("/api/admin/logs", params={"limit": limit}, headers=audited["headers"]).json()
    assert len(payload["items"]) == returned


def test_logs_reject_unknown_level(client, audited):
    response = client.get("/api/admin/logs", params={"level": "debug"}, headers=audited["headers"])
    assert response.status_code == 400
    assert response.json()["error"] == "level must be one of: info, warning, error"


def test_logs_are_tenant_scoped_except_for_superadmin(client, auth_headers, audited, tenant_ids):
    other = client.get("/api/admin/logs", headers=auth_headers("admin-b")).json()
    assert other == {"total": 0, "items": []}
    assert client.get("/api/admin/logs", headers=auth_headers("store-a")).status_code == 403

    everything = client.get("/t/beta/api/admin/logs", headers=auth_headers("root")).json()
    assert everything["total"] == 3
    assert {item["tenant_id"] for item in everything["items"]} == {tenant_ids["alpha"]}
