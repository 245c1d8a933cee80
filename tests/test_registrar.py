import pytest
from fastapi.routing import APIRoute

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.services.tenancy import TenantContext


def test_register_adds_legacy_and_tenant_routes():
    registrar = DualRouteRegistrar("reports", role="admin")

    @registrar.get("/things/{thing_id}")
    def read_thing(thing_id: str, ctx: TenantContext) -> dict:
        return {"thing_id": thing_id, "tenant": ctx.tenant_slug}

    routes = {
        route.name: route.path
        for route in (*registrar.legacy_router.routes, *registrar.tenant_router.routes)
        if isinstance(route, APIRoute)
    }
    assert routes["legacy:read_thing"] == "/api/reports/things/{thing_id}"
    assert routes["tenant:read_thing"] == "/t/{tenant_slug}/api/reports/things/{thing_id}"
    # The decorator hands back the original handler.
    assert read_thing.__name__ == "read_thing"


def test_register_requires_tenant_context():
    registrar = DualRouteRegistrar("reports", role="admin")

    def no_context(thing_id: str) -> dict:
        return {}

    with pytest.raises(TypeError):
        registrar.register("/things/{thing_id}", "GET", no_context)


def test_shared_handler_serves_both_variants(client, auth_headers):
    headers = auth_headers("admin-a")
    legacy = client.get("/api/admin/campaigns-list", headers=headers)
    scoped = client.get("/t/alpha/api/admin/campaigns-list", headers=headers)
    assert legacy.status_code == scoped.status_code == 200
    assert legacy.json() == scoped.json()
