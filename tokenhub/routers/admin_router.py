"""
관리자 API 라우터 (admin / super_admin 역할 필요)

- GET /admin/analytics: 기간별 결제/토큰/사용자 통계
- GET /admin/users: 사용자 검색 (ID 일치 또는 이메일 부분 일치)
- GET /admin/users/{user_id}/overview: 사용자 잔액/결제/발급/토큰
- POST /admin/users/{user_id}/adjustments: 크레딧 조정 기록
- POST /admin/tokens/{token_id}/lock, /unlock: 토큰 잠금 해제
- POST /admin/products/sync: Hub 상품 동기화 (일부 실패 시 207)
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tokenhub.core.auth_middleware import require_admin
from tokenhub.deps import get_admin_service, get_product_service
from tokenhub.schemas.admin import (
    AdminAdjustmentRequest,
    AnalyticsResponse,
    UserOverviewResponse,
)
from tokenhub.schemas.product import ProductSyncResponse
from tokenhub.schemas.token import AdminAdjustment, Token
from tokenhub.schemas.user import User as UserSchema
from tokenhub.schemas.user import UserSummary
from tokenhub.services.admin_service import AdminService
from tokenhub.services.product_service import ProductService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(
    start: Optional[datetime] = Query(None, description="시작 시각 (ISO 8601)"),
    end: Optional[datetime] = Query(None, description="종료 시각 (ISO 8601)"),
    admin: UserSchema = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> AnalyticsResponse:
    return admin_service.get_analytics(start, end)


@router.get("/users", response_model=List[UserSummary])
def search_users(
    q: str = Query(..., min_length=1, description="사용자 ID 또는 이메일 일부"),
    admin: UserSchema = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> List[UserSummary]:
    return admin_service.search_users(q)


@router.get("/users/{user_id}/overview", response_model=UserOverviewResponse)
def get_user_overview(
    user_id: int = Path(..., description="사용자 ID"),
    admin: UserSchema = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> UserOverviewResponse:
    return admin_service.get_user_overview(user_id)


@router.post("/users/{user_id}/adjustments", response_model=AdminAdjustment)
def adjust_user_credits(
    request: AdminAdjustmentRequest,
    user_id: int = Path(..., description="사용자 ID"),
    admin: UserSchema = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> AdminAdjustment:
    return admin_service.adjust_credits(user_id, request.credits, request.label)


@router.post("/tokens/{token_id}/lock", response_model=Token)
def lock_token(
    token_id: int = Path(..., description="토큰 ID"),
    admin: UserSchema = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> Token:
    return admin_service.set_token_lock(token_id, locked=True)


@router.post("/tokens/{token_id}/unlock", response_model=Token)
def unlock_token(
    token_id: int = Path(..., description="토큰 ID"),
    admin: UserSchema = Depends(require_admin),
    admin_service: AdminService = Depends(get_admin_service),
) -> Token:
    return admin_service.set_token_lock(token_id, locked=False)


@router.post("/products/sync", response_model=ProductSyncResponse)
async def sync_products(
    admin: UserSchema = Depends(require_admin),
    product_service: ProductService = Depends(get_product_service),
):
    result = await product_service.sync_from_hub()
    if result.errors:
        return JSONResponse(status_code=207, content=jsonable_encoder(result))
    return result
