"""
결제 API 라우터

- POST /payments/invoice: 충전 결제 생성 (인증 필요)
- POST /payments/ipn: 게이트웨이 IPN 수신 (x-nowpayments-sig 서명 검증, 인증 없음)
- GET /payments: 내 결제 내역
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request

from tokenhub.core.auth_middleware import get_current_active_user
from tokenhub.deps import get_payment_service
from tokenhub.schemas.payment import (
    CreateInvoiceRequest,
    CreateInvoiceResponse,
    IpnAckResponse,
    PaymentRecord,
)
from tokenhub.schemas.user import User as UserSchema
from tokenhub.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/invoice", response_model=CreateInvoiceResponse)
async def create_invoice(
    request: CreateInvoiceRequest,
    current_user: UserSchema = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> CreateInvoiceResponse:
    return await payment_service.create_invoice(current_user.id, request.amount_usd)


@router.post("/ipn", response_model=IpnAckResponse)
async def receive_ipn(
    request: Request,
    x_nowpayments_sig: Optional[str] = Header(None),
    payment_service: PaymentService = Depends(get_payment_service),
) -> IpnAckResponse:
    """서명은 원문 바이트 기준으로 계산되므로 본문을 파싱하기 전에 그대로 넘김"""
    raw_body = await request.body()
    return payment_service.ingest_ipn(raw_body, x_nowpayments_sig)


@router.get("", response_model=List[PaymentRecord])
def list_payments(
    current_user: UserSchema = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> List[PaymentRecord]:
    return payment_service.list_payments(current_user.id)
