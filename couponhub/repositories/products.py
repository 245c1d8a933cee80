from __future__ import annotations

from sqlalchemy import delete
from sqlalchemy.orm import Session

from couponhub.models.product import Product


class ProductRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, tenant_id: str) -> list[Product]:
        return self.db.query(Product).filter(Product.tenant_id == tenant_id).order_by(Product.name.asc()).all()

    def get(self, tenant_id: str, product_id: str) -> Product | None:
        return self.db.query(Product).filter(Product.id == product_id, Product.tenant_id == tenant_id).first()

    def add(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def delete(self, tenant_id: str, product_id: str) -> int:
        result = self.db.execute(
            delete(Product)
            .where(Product.id == product_id, Product.tenant_id == tenant_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount
