"""Product/service catalog CRUD."""

from __future__ import annotations

from typing import Any

from invoice_bot.database.models import Product
from invoice_bot.schemas import ProductRecord
from invoice_bot.services.base_service import BaseService

PRODUCT_FIELDS = ("name", "description", "default_price", "default_vat_rate")


class ProductService(BaseService):
    def _get_owned(self, product_id: int, user_id: int) -> Product | None:
        return (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.user_id == user_id)
            .first()
        )

    def create_product(self, user_id: int, fields: dict[str, Any]) -> ProductRecord:
        product = Product(user_id=user_id, **{name: fields.get(name) for name in PRODUCT_FIELDS})
        self.db.add(product)
        self.commit()
        self.db.refresh(product)
        return ProductRecord.model_validate(product)

    def get_product(self, product_id: int, user_id: int) -> ProductRecord | None:
        product = self._get_owned(product_id, user_id)
        return ProductRecord.model_validate(product) if product else None

    def list_products(self, user_id: int) -> list[ProductRecord]:
        products = self.db.query(Product).filter(Product.user_id == user_id).order_by(Product.name).all()
        return [ProductRecord.model_validate(product) for product in products]

    def update_product(self, product_id: int, user_id: int, fields: dict[str, Any]) -> ProductRecord | None:
        product = self._get_owned(product_id, user_id)
        if product is None:
            return None
        for name in PRODUCT_FIELDS:
            if name in fields:
                setattr(product, name, fields[name])
        self.commit()
        return ProductRecord.model_validate(product)

    def delete_product(self, product_id: int, user_id: int) -> bool:
        product = self._get_owned(product_id, user_id)
        if product is None:
            return False
        self.db.delete(product)
        self.commit()
        return True
