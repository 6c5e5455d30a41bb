import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tokenhub.core.exceptions import HubUnavailableError, MirrorSyncError
from tokenhub.providers.hub.client import HubMirrorClient
from tokenhub.repositories.product_repository import ProductRepository
from tokenhub.schemas.product import Product, ProductSyncResponse

logger = logging.getLogger(__name__)


class ProductService:
    """상품 카탈로그 조회와 Hub 기준 동기화"""

    def __init__(self, db: Session, hub_client: HubMirrorClient):
        self.db = db
        self.hub_client = hub_client
        self.product_repo = ProductRepository(db)

    def list_products(self) -> List[Product]:
        return self.product_repo.list_products()

    async def sync_from_hub(self) -> ProductSyncResponse:
        """Hub의 노출 상품으로 로컬 상품을 생성/갱신

        상품별 실패는 errors에 모아서 반환하고 나머지 상품은 계속 처리합니다.
        """
        try:
            hub_products = await self.hub_client.fetch_visible_products()
        except MirrorSyncError as e:
            logger.error(f"Failed to fetch products from hub: {e}")
            raise HubUnavailableError(
                "Failed to fetch products from hub", details={"reason": str(e)}
            )

        if not hub_products:
            return ProductSyncResponse(message="No products found in hub")

        created = updated = 0
        errors: List[str] = []
        for hub_product in hub_products:
            existing = self.product_repo.get_by_product_id(hub_product.id)
            if (
                existing
                and existing.name == hub_product.name
                and existing.value_credits_usd == hub_product.value
            ):
                continue
            try:
                if self.product_repo.upsert_product(
                    hub_product.id, hub_product.name, hub_product.value
                ):
                    created += 1
                else:
                    updated += 1
            except SQLAlchemyError as e:
                logger.error(f"Failed to sync product {hub_product.id}: {e}")
                errors.append(f"{hub_product.id}: {e.__class__.__name__}")

        logger.info(
            f"Product sync: {len(hub_products)} in hub, {created} created, "
            f"{updated} updated, {len(errors)} errors"
        )
        return ProductSyncResponse(
            total_hub_products=len(hub_products),
            created=created,
            updated=updated,
            errors=errors or None,
        )
