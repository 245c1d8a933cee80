from fastapi import Depends
from sqlalchemy.orm import Session

from couponhub.api.registrar import DualRouteRegistrar
from couponhub.db.session import get_db
from couponhub.schemas.products import ProductOut, ProductWriteRequest
from couponhub.services import product_service
from couponhub.services.tenancy import TenantContext

admin = DualRouteRegistrar("admin", role="admin", tags=["products"])


@admin.get("/products")
def list_products(ctx: TenantContext, db: Session = Depends(get_db)) -> list[dict]:
    return [ProductOut.model_validate(product).model_dump(mode="json") for product in product_service.list_products(db, ctx.tenant_id)]


@admin.post("/products")
def create_product(ctx: TenantContext, body: ProductWriteRequest, db: Session = Depends(get_db)) -> dict:
    product = product_service.create_product(db, ctx.tenant_id, body, actor_user_id=ctx.user_id)
    return ProductOut.model_validate(product).model_dump(mode="json")


@admin.put("/products/{product_id}")
def update_product(
    product_id: str,
    ctx: TenantContext,
    body: ProductWriteRequest,
    db: Session = Depends(get_db),
) -> dict:
    product = product_service.update_product(db, ctx.tenant_id, product_id, body, actor_user_id=ctx.user_id)
    return ProductOut.model_validate(product).model_dump(mode="json")


@admin.delete("/products/{product_id}")
def delete_product(product_id: str, ctx: TenantContext, db: Session = Depends(get_db)) -> dict[str, bool]:
    product_service.delete_product(db, ctx.tenant_id, product_id, actor_user_id=ctx.user_id)
    return {"ok": True}
