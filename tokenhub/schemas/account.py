from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from tokenhub.schemas.payment import PaymentRecord
from tokenhub.schemas.token import RefillRecord, TransactionEntry


class BalanceResponse(BaseModel):
    """사용 가능한 USD 잔액"""

    balance: Decimal = Field(..., description="사용 가능 잔액 (0 이상)")
    confirmed_usd: Decimal = Field(..., description="확정된 결제 합계")
    spent_usd: Decimal = Field(..., description="발급 + 리필 지출 합계")


class AccountLedgerResponse(BaseModel):
    balance: BalanceResponse
    payments: List[PaymentRecord]
    transactions: List[TransactionEntry]
    refills: List[RefillRecord]
