from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class Product(BaseModel):
    """상품 카탈로그 항목"""

    product_id: str = Field(..., description="상품 ID (Hub 기준)")
    name: str = Field(..., description="상품명")
    value_credits_usd: Decimal = Field(..., description="1 credit당 USD 가격")

    class Config:
        from_attributes = True


class HubProduct(BaseModel):
    """Hub에서 내려오는 상품 형태"""

    id: str
    name: str
    value: Decimal


class ProductSyncResponse(BaseModel):
    message: str = "Sync completed"
    total_hub_products: int = 0
    created: int = 0
    updated: int = 0
    errors: Optional[List[str]] = None
