from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from tokenhub.schemas.account import BalanceResponse
from tokenhub.schemas.payment import PaymentRecord
from tokenhub.schemas.token import Token, TransactionEntry
from tokenhub.schemas.user import UserSummary


class PaymentStats(BaseModel):
    total: int = 0
    successful: int = 0
    pending: int = 0
    failed: int = 0
    revenue: Decimal = Decimal("0")


class TokenStats(BaseModel):
    total: int = 0
    product: int = 0
    master: int = 0
    total_credits: int = 0


class UserStats(BaseModel):
    total: int = 0
    recent: int = 0
    with_payments: int = 0


class AnalyticsResponse(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    payments: PaymentStats
    tokens: TokenStats
    users: UserStats


class UserOverviewResponse(BaseModel):
    user: UserSummary
    balance: BalanceResponse
    payments: List[PaymentRecord]
    transactions: List[TransactionEntry]
    tokens: List[Token]


class AdminAdjustmentRequest(BaseModel):
    """관리자 크레딧 조정 요청"""

    credits: int = Field(..., description="조정할 크레딧 (양수: 추가, 음수: 차감)")
    label: Optional[str] = Field(None, max_length=255, description="조정 사유")
