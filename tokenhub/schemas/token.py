from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tokenhub.core.ledger import FundingMode


class Token(BaseModel):
    """발급된 토큰"""

    id: int
    batch_tx_id: int
    user_id: int
    product_id: Optional[str] = None
    token_string: str
    credits: int
    token_type: Literal["product", "master"]
    activated: bool
    locked: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IssuanceBatch(BaseModel):
    """토큰 발급 배치 (transactions)"""

    id: int
    user_id: int
    token_type: Literal["product", "master"]
    product_id: Optional[str] = None
    token_string: str
    credits: int
    usd_spent: Decimal
    value_credits_usd_label: Optional[str] = None
    token_count: Optional[int] = None
    mode: Optional[str] = None
    fee_usd: Decimal
    credits_per_token: Optional[int] = None
    total_credits: Optional[int] = None
    activated: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminAdjustment(BaseModel):
    """관리자 크레딧 조정 (transactions, usd_spent = 0)"""

    id: int
    user_id: int
    token_type: Literal["admin_adjustment"]
    token_string: str
    credits: int
    usd_spent: Decimal = Decimal("0")
    value_credits_usd_label: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


TransactionEntry = Annotated[
    Union[IssuanceBatch, AdminAdjustment], Field(discriminator="token_type")
]


class RefillRecord(BaseModel):
    """리필 내역 (refill_transactions)"""

    id: int
    user_id: int
    token_id: int
    token_string: str
    token_type: str
    refill_mode: str
    refill_amount: Decimal
    credits_added: int
    usd_spent: Decimal
    fee_usd: Decimal
    credits_before: int
    credits_after: int
    balance_before: Decimal
    balance_after: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MirrorSyncStatus(BaseModel):
    """Hub 미러 동기화 결과 (실패해도 요청 자체는 성공)"""

    success: bool
    error: Optional[str] = None


class IssueTokensRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["product", "master"]
    product_id: Optional[str] = Field(None, alias="productId")
    usd: Optional[Decimal] = None
    credits: Optional[Decimal] = None
    mode: FundingMode = FundingMode.USD
    token_count: int = Field(..., alias="tokenCount")
    prefix_mode: Literal["auto", "custom"] = Field("auto", alias="prefixMode")
    prefix_input: Optional[str] = Field(None, alias="prefixInput")
    total_cost: Optional[Decimal] = Field(
        None, alias="totalCost", description="클라이언트가 계산한 비용 (검증용)"
    )


class IssueTokensResponse(BaseModel):
    success: bool = True
    message: str
    transaction_id: int
    token_count: int
    credits_per_token: int
    total_cost: Decimal
    fee_usd: Decimal
    activated: bool
    tokens: List[str] = Field(default_factory=list)
    hub_sync: MirrorSyncStatus


class RefillTokenRequest(BaseModel):
    token_string: str = Field(..., min_length=1)
    refill_amount: Decimal
    refill_mode: FundingMode
    token_type: Optional[Literal["product", "master"]] = None


class RefillTokenResponse(BaseModel):
    success: bool = True
    message: str = "Token refilled successfully"
    refill_transaction_id: int
    credits_added: int
    usd_spent: Decimal
    fee_usd: Decimal
    new_credits: int
    remaining_balance: Decimal
    hub_update: MirrorSyncStatus


class ActivateTokenRequest(BaseModel):
    token_string: str = Field(..., min_length=1)


class TokenStateResponse(BaseModel):
    token: Token
    hub_sync: Optional[MirrorSyncStatus] = None
