from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class PaymentRecord(BaseModel):
    """결제 내역 항목"""

    id: int
    user_id: int
    invoice_id: Optional[str] = None
    order_id: Optional[str] = None
    status: str
    amount_usd: Optional[Decimal] = None
    amount_crypto: Optional[Decimal] = None
    currency: Optional[str] = None
    pay_currency: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CreateInvoiceRequest(BaseModel):
    amount_usd: Decimal = Field(..., description="충전할 USD 금액 (1 이상)")


class CreateInvoiceResponse(BaseModel):
    payment_id: Optional[str] = Field(None, description="게이트웨이 결제 ID")
    payment_url: Optional[str] = Field(None, description="결제 페이지 URL")
    order_id: str = Field(..., description="주문 ID")


class IpnNotification(BaseModel):
    """게이트웨이 IPN 본문에서 저장에 필요한 값만 정규화"""

    order_id: str
    payment_status: str
    price_amount: Optional[Decimal] = None
    price_currency: str = "USD"
    actually_paid: Optional[Decimal] = None
    pay_currency: str = ""
    invoice_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def amount_usd(self) -> Optional[Decimal]:
        return self.price_amount if self.price_currency == "USD" else None


class IpnAckResponse(BaseModel):
    ok: bool = True
    payment_id: Optional[int] = None
    created: bool = False
