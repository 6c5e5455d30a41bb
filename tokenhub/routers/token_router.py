"""
토큰 API 라우터

- POST /tokens/issue: 토큰 배치 발급
- POST /tokens/refill: 기존 토큰 리필
- GET /tokens: 내 토큰 목록 (batch_tx_id로 필터)
- GET /tokens/export: 토큰 문자열 텍스트 파일 다운로드
- POST /tokens/activate: 토큰 활성화
- GET /tokens/{token_string}/refills: 토큰별 리필 내역

인증: 모든 엔드포인트는 Bearer 토큰 필요. Hub 동기화 실패는 응답의 상태 필드로만 전달됩니다.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from tokenhub.core.auth_middleware import get_current_active_user
from tokenhub.deps import get_token_service
from tokenhub.schemas.token import (
    ActivateTokenRequest,
    IssueTokensRequest,
    IssueTokensResponse,
    RefillRecord,
    RefillTokenRequest,
    RefillTokenResponse,
    Token,
    TokenStateResponse,
)
from tokenhub.schemas.user import User as UserSchema
from tokenhub.services.token_service import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.post("/issue", response_model=IssueTokensResponse)
async def issue_tokens(
    request: IssueTokensRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service),
) -> IssueTokensResponse:
    """
    토큰 배치 발급

    HTTP Status:
        200: 발급 성공 (hub_sync.success가 false여도 발급은 완료됨)
        400: 잔액 부족, 금액 부족
        404: 상품 없음
        422: 입력값 오류
    """
    return await token_service.issue_tokens(current_user.id, request)


@router.post("/refill", response_model=RefillTokenResponse)
async def refill_token(
    request: RefillTokenRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service),
) -> RefillTokenResponse:
    """
    토큰 리필

    HTTP Status:
        200: 리필 성공
        400: 잔액 부족, 금액 부족, 지원하지 않는 모드 (마스터 + credits)
        404: 토큰 없음
        409: 잠긴 토큰, 비활성 토큰, 동시 리필 충돌
    """
    return await token_service.refill_token(current_user.id, request)


@router.get("", response_model=List[Token])
def list_tokens(
    batch_tx_id: Optional[int] = Query(None, description="발급 배치 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service),
) -> List[Token]:
    return token_service.list_tokens(current_user.id, batch_tx_id=batch_tx_id)


@router.get("/export", response_class=PlainTextResponse)
def export_tokens(
    batch_tx_id: Optional[int] = Query(None, description="발급 배치 ID"),
    current_user: UserSchema = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service),
) -> PlainTextResponse:
    filename, content = token_service.export_tokens(
        current_user.id, batch_tx_id=batch_tx_id
    )
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/activate", response_model=TokenStateResponse)
async def activate_token(
    request: ActivateTokenRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service),
) -> TokenStateResponse:
    return await token_service.activate_token(current_user.id, request.token_string)


@router.get("/{token_string}/refills", response_model=List[RefillRecord])
def get_refill_history(
    token_string: str,
    current_user: UserSchema = Depends(get_current_active_user),
    token_service: TokenService = Depends(get_token_service),
) -> List[RefillRecord]:
    return token_service.get_refill_history(current_user.id, token_string)
