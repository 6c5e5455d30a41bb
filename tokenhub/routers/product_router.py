from typing import List

from fastapi import APIRouter, Depends

from tokenhub.core.auth_middleware import get_current_active_user
from tokenhub.deps import get_product_service
from tokenhub.schemas.product import Product
from tokenhub.schemas.user import User as UserSchema
from tokenhub.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[Product])
def list_products(
    current_user: UserSchema = Depends(get_current_active_user),
    product_service: ProductService = Depends(get_product_service),
) -> List[Product]:
    """상품 카탈로그 (credit당 USD 단가 포함)"""
    return product_service.list_products()
