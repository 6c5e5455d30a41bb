import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from tokenhub.core.exceptions import InternalServerError, PaymentGatewayError

logger = logging.getLogger(__name__)


class NowPaymentsClient:
    """NOWPayments REST 클라이언트 (결제 생성)"""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> "NowPaymentsClient":
        return cls(
            api_url=settings.NOWPAYMENTS_API_URL,
            api_key=settings.NOWPAYMENTS_API_KEY,
            timeout=settings.NOWPAYMENTS_TIMEOUT_SECONDS,
        )

    async def create_payment(
        self, price_amount: Decimal, order_id: str, ipn_callback_url: str
    ) -> Dict[str, Any]:
        """USD 가격으로 결제를 생성하고 게이트웨이 응답을 그대로 반환

        Raises:
            InternalServerError: API 키 미설정
            PaymentGatewayError: 게이트웨이 오류 응답 또는 통신 실패
        """
        if not self.api_key:
            raise InternalServerError("NOWPAYMENTS_API_KEY is not configured")

        payload = {
            "price_amount": float(price_amount),
            "price_currency": "USD",
            "order_id": order_id,
            "ipn_callback_url": ipn_callback_url,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.api_url}/payment",
                    json=payload,
                    headers={"x-api-key": self.api_key},
                )
        except httpx.TimeoutException:
            logger.error("NOWPayments create payment timeout")
            raise PaymentGatewayError("Payment gateway timeout")
        except httpx.RequestError as exc:
            logger.error(f"NOWPayments request error: {exc}")
            raise PaymentGatewayError("Payment gateway unreachable")

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            logger.error(f"NOWPayments error {response.status_code}: {response.text}")
            raise PaymentGatewayError(
                details={"status_code": response.status_code, "body": body}
            )
        return body or {}
