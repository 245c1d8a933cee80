from fastapi import APIRouter

from couponhub.api.endpoints import analytics, auth, campaigns, coupons, form_links, health, logs, products, users


def build_api_router() -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(auth.router)
    api_router.include_router(auth.tenant_router)
    api_router.include_router(form_links.public_router)
    for registrar in (
        campaigns.admin,
        form_links.admin,
        products.admin,
        coupons.admin,
        coupons.store,
        analytics.admin,
        users.admin,
        logs.admin,
    ):
        for router in registrar.routers:
            api_router.include_router(router)
    return api_router
