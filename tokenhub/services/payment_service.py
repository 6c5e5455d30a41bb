"""
결제(충전) 서비스

- create_invoice: 게이트웨이에 결제를 만들고 pending 레코드를 저장
- ingest_ipn: 서명 검증 후 order_id 기준으로 결제 상태/금액 upsert
"""

import json
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tokenhub.config import Settings, settings as default_settings
from tokenhub.core.exceptions import (
    InternalServerError,
    InvalidSignatureError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from tokenhub.core.ledger import MIN_INPUT_AMOUNT, require_storable_amount
from tokenhub.core.security import verify_ipn_signature
from tokenhub.core.token_strings import TokenStringFactory
from tokenhub.providers.payments.nowpayments import NowPaymentsClient
from tokenhub.repositories.payment_repository import PaymentRepository
from tokenhub.repositories.user_repository import UserRepository
from tokenhub.schemas.payment import (
    CreateInvoiceResponse,
    IpnAckResponse,
    IpnNotification,
    PaymentRecord,
)

logger = logging.getLogger(__name__)

ORDER_SUFFIX_LENGTH = 8


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _first(body: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if body.get(key) is not None:
            return body[key]
    return None


def parse_ipn_payload(body: Dict[str, Any]) -> IpnNotification:
    """게이트웨이 IPN 본문을 정규화 (통화 코드 대/소문자 포함)"""
    price_currency = str(_first(body, "price_currency", "currency") or "USD").upper()
    pay_currency = str(_first(body, "pay_currency", "currency") or "").lower()
    invoice_id = _first(body, "invoice_id", "id")

    return IpnNotification(
        order_id=str(body.get("order_id") or ""),
        payment_status=str(body.get("payment_status") or ""),
        price_amount=_optional_decimal(_first(body, "price_amount", "order_amount")),
        price_currency=price_currency,
        actually_paid=_optional_decimal(_first(body, "actually_paid", "pay_amount")),
        pay_currency=pay_currency,
        invoice_id=str(invoice_id) if invoice_id is not None else None,
        raw=body,
    )


class PaymentService:
    """결제 생성과 게이트웨이 IPN 반영을 담당하는 서비스"""

    def __init__(
        self,
        db: Session,
        gateway: NowPaymentsClient,
        token_factory: Optional[TokenStringFactory] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.token_factory = token_factory or TokenStringFactory()
        self.settings = settings or default_settings
        self.payment_repo = PaymentRepository(db)
        self.user_repo = UserRepository(db)

    def new_order_id(self, user_id: int) -> str:
        """{user_id}_{unix timestamp}_{random} - IPN에서 소유자를 복원하는 키"""
        suffix = self.token_factory.random_string(ORDER_SUFFIX_LENGTH)
        return f"{user_id}_{int(time.time())}_{suffix}"

    async def create_invoice(
        self, user_id: int, amount_usd: Decimal
    ) -> CreateInvoiceResponse:
        """충전 결제 생성

        Args:
            user_id: 사용자 ID
            amount_usd: 충전 금액 (1 USD 이상)

        Returns:
            CreateInvoiceResponse: 게이트웨이 결제 ID, 결제 페이지 URL, 주문 ID
        """
        amount = require_storable_amount("amount_usd", amount_usd)
        if amount < MIN_INPUT_AMOUNT:
            raise ValidationError(
                f"amount_usd must be at least {MIN_INPUT_AMOUNT}",
                details={"amount_usd": str(amount)},
            )

        order_id = self.new_order_id(user_id)
        body = await self.gateway.create_payment(
            amount, order_id, self.settings.ipn_callback_url
        )

        payment_id = _first(body, "payment_id", "id")
        payment_url = _first(body, "payment_url", "invoice_url")

        try:
            self.payment_repo.upsert_by_order_id(
                order_id,
                user_id,
                {
                    "invoice_id": str(payment_id) if payment_id is not None else None,
                    "status": "pending",
                    "amount_usd": amount,
                    "currency": "USD",
                    "raw": body,
                },
            )
        except SQLAlchemyError:
            logger.exception(f"Failed to store pending payment {order_id}")
            raise PersistenceError("Failed to store payment")

        logger.info(f"Created invoice {payment_id} ({amount} USD) for user {user_id}")
        return CreateInvoiceResponse(
            payment_id=str(payment_id) if payment_id is not None else None,
            payment_url=payment_url,
            order_id=order_id,
        )

    def ingest_ipn(self, raw_body: bytes, signature: Optional[str]) -> IpnAckResponse:
        """게이트웨이 IPN 반영

        서명이 맞지 않으면 어떤 상태도 바꾸지 않고 InvalidSignatureError를 발생시킵니다.
        """
        secret = self.settings.NOWPAYMENTS_IPN_SECRET
        if not secret:
            raise InternalServerError("NOWPAYMENTS_IPN_SECRET is not configured")

        if not verify_ipn_signature(raw_body, signature, secret):
            logger.warning("Invalid IPN signature")
            raise InvalidSignatureError()

        try:
            body = json.loads(raw_body)
        except ValueError:
            raise ValidationError("IPN body is not valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("IPN body must be a JSON object")

        notification = parse_ipn_payload(body)
        if not notification.order_id:
            raise ValidationError("IPN is missing order_id")

        existing = self.payment_repo.get_by_order_id(notification.order_id)
        if existing:
            user_id = existing.user_id
        else:
            owner = notification.order_id.split("_", 1)[0]
            if not owner.isdigit():
                raise ValidationError(
                    "Cannot resolve owner from order_id",
                    details={"order_id": notification.order_id},
                )
            user_id = int(owner)
            if not self.user_repo.exists({"id": user_id}):
                raise NotFoundError(
                    "Order owner not found", details={"order_id": notification.order_id}
                )

        values = {
            "status": notification.payment_status,
            "amount_usd": notification.amount_usd,
            "amount_crypto": notification.actually_paid,
            "currency": notification.price_currency,
            "pay_currency": notification.pay_currency,
            "raw": notification.raw,
        }
        if not existing and notification.invoice_id:
            values["invoice_id"] = notification.invoice_id

        try:
            payment, created = self.payment_repo.upsert_by_order_id(
                notification.order_id, user_id, values
            )
        except SQLAlchemyError:
            logger.exception(f"Failed to upsert payment {notification.order_id}")
            raise PersistenceError("Failed to store payment notification")

        logger.info(
            f"IPN {notification.order_id}: status={notification.payment_status} "
            f"amount_usd={notification.amount_usd} ({'created' if created else 'updated'})"
        )
        return IpnAckResponse(ok=True, payment_id=payment.id, created=created)

    def list_payments(self, user_id: int) -> List[PaymentRecord]:
        return self.payment_repo.list_for_user(user_id)
