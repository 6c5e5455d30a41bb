"""
계정 API 라우터

- GET /account/balance: 사용 가능 잔액 (확정 결제 - 발급/리필 지출)
- GET /account/ledger: 결제, 발급/조정, 리필 내역 (최신순)
"""

from fastapi import APIRouter, Depends

from tokenhub.core.auth_middleware import get_current_active_user
from tokenhub.deps import get_balance_service
from tokenhub.schemas.account import AccountLedgerResponse, BalanceResponse
from tokenhub.schemas.user import User as UserSchema
from tokenhub.services.balance_service import BalanceService

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/balance", response_model=BalanceResponse)
def get_my_balance(
    current_user: UserSchema = Depends(get_current_active_user),
    balance_service: BalanceService = Depends(get_balance_service),
) -> BalanceResponse:
    """내 잔액 조회. 요청마다 전체 내역으로 다시 계산"""
    return balance_service.get_balance(current_user.id)


@router.get("/ledger", response_model=AccountLedgerResponse)
def get_my_ledger(
    current_user: UserSchema = Depends(get_current_active_user),
    balance_service: BalanceService = Depends(get_balance_service),
) -> AccountLedgerResponse:
    return balance_service.get_account_ledger(current_user.id)
