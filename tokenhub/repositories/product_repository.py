from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from tokenhub.models.product import Product as ProductModel
from tokenhub.repositories.base import BaseRepository
from tokenhub.schemas.product import Product as ProductSchema


class ProductRepository(BaseRepository[ProductModel, ProductSchema]):
    """상품 리포지토리. 단가 변경은 Hub 동기화 경로에서만 발생"""

    def __init__(self, db: Session):
        super().__init__(ProductModel, ProductSchema, db)

    def get_by_product_id(self, product_id: str) -> Optional[ProductSchema]:
        return self.get_by_field("product_id", product_id)

    def list_products(self) -> List[ProductSchema]:
        rows = (
            self.db.query(ProductModel)
            .order_by(ProductModel.name, ProductModel.product_id)
            .all()
        )
        return self._to_schemas(rows)

    def upsert_product(
        self, product_id: str, name: str, value_credits_usd: Decimal
    ) -> bool:
        """product_id 기준 생성 또는 갱신. 새로 만들었으면 True"""
        instance = (
            self.db.query(ProductModel)
            .filter(ProductModel.product_id == product_id)
            .first()
        )
        created = instance is None
        if created:
            instance = ProductModel(product_id=product_id)
            self.db.add(instance)

        instance.name = name
        instance.value_credits_usd = value_credits_usd
        try:
            self.db.flush()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return created
