from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from couponhub.core.errors import NotFoundError
from couponhub.db.guards import store_guard
from couponhub.events import emit_event
from couponhub.models.product import Product
from couponhub.repositories.products import ProductRepository
from couponhub.schemas.products import ProductWriteRequest


logger = logging.getLogger("couponhub.products")

_SKU_CONFLICT = "SKU already exists"


def list_products(db: Session, tenant_id: str) -> list[Product]:
    return ProductRepository(db).list(tenant_id)


def create_product(db: Session, tenant_id: str, body: ProductWriteRequest, *, actor_user_id: str | None = None) -> Product:
    repo = ProductRepository(db)
    with store_guard(db, operation="products.create", tenant_id=tenant_id, conflict_message=_SKU_CONFLICT):
        product = repo.add(
            Product(
                tenant_id=tenant_id,
                name=body.name.strip(),
                value=body.value,
                margin_price=body.margin_price,
                sku=(body.sku or "").strip() or None,
            )
        )
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="product.created",
            payload={"sku": product.sku},
            subject_id=product.id,
            actor_user_id=actor_user_id,
        )
        db.commit()
    db.refresh(product)
    return product


def update_product(
    db: Session,
    tenant_id: str,
    product_id: str,
    body: ProductWriteRequest,
    *,
    actor_user_id: str | None = None,
) -> Product:
    repo = ProductRepository(db)
    product = repo.get(tenant_id, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    with store_guard(
        db,
        operation="products.update",
        tenant_id=tenant_id,
        conflict_message=_SKU_CONFLICT,
        product_id=product_id,
    ):
        product.name = body.name.strip()
        product.value = body.value
        product.margin_price = body.margin_price
        product.sku = (body.sku or "").strip() or None
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="product.updated",
            payload={"sku": product.sku},
            subject_id=product.id,
            actor_user_id=actor_user_id,
        )
        db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, tenant_id: str, product_id: str, *, actor_user_id: str | None = None) -> None:
    repo = ProductRepository(db)
    with store_guard(db, operation="products.delete", tenant_id=tenant_id, product_id=product_id):
        if repo.delete(tenant_id, product_id) == 0:
            db.rollback()
            raise NotFoundError("Product not found")
        emit_event(
            db,
            tenant_id=tenant_id,
            event_type="product.deleted",
            payload={},
            subject_id=product_id,
            actor_user_id=actor_user_id,
            level="warning",
        )
        db.commit()
