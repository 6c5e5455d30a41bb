"""
결제(충전) 내역 모델

결제 요청 시 pending 상태로 생성되고, 결제 게이트웨이의 IPN 알림이 올 때마다
같은 order_id 레코드의 상태/금액이 갱신됩니다. 삭제되지 않습니다.
"""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tokenhub.models.base import BaseModel, BigIntPK


class Payment(BaseModel):
    __tablename__ = "payment_history"
    __table_args__ = (Index("idx_payment_history_user", "user_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )

    # 게이트웨이 결제 ID
    invoice_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # {user_id}_{timestamp}_{random} - IPN upsert 키
    order_id: Mapped[Optional[str]] = mapped_column(
        String(128), unique=True, nullable=True
    )

    # 자유 텍스트. 소문자 변환 후 finished/confirmed/completed/paid 일 때만 잔액에 반영
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")

    # USD 이외 통화로 가격이 매겨진 경우 NULL
    amount_usd: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 8), nullable=True)
    amount_crypto: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(30, 12), nullable=True
    )
    currency: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    pay_currency: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    raw: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
