"""
토큰 발급/리필 원장 모델

- Transaction: 발급 배치 1건(=토큰 N개) 또는 관리자 조정 1건. usd_spent는 기록 후 변경하지 않음
- Token: 발급된 개별 토큰. token_string은 전역 유일/불변
- RefillTransaction: 토큰 1개에 대한 리필 1건. 전/후 크레딧과 잔액 스냅샷 저장

잔액 = 확정 결제 합계 - (transactions.usd_spent 합계 + refill_transactions.usd_spent 합계)
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from tokenhub.models.base import BaseModel, BigIntPK


class Transaction(BaseModel):
    __tablename__ = "transactions"
    __table_args__ = (Index("idx_transactions_user", "user_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    product_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # product | master | admin_adjustment
    token_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # 배치 라벨 (BATCH-{N}tokens-xxxx / admin_xxxx)
    token_string: Mapped[str] = mapped_column(Text, nullable=False)

    # 배치 전체 크레딧. 관리자 조정은 음수 가능
    credits: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # 잔액에서 차감되는 금액 (수수료 포함)
    usd_spent: Mapped[Decimal] = mapped_column(
        Numeric(20, 8), nullable=False, default=Decimal("0")
    )
    value_credits_usd_label: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mode: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    fee_usd: Mapped[Decimal] = mapped_column(
        Numeric(20, 8), nullable=False, default=Decimal("0")
    )
    credits_per_token: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    total_credits: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Token(BaseModel):
    __tablename__ = "tokens"
    __table_args__ = (
        Index("idx_tokens_user", "user_id"),
        Index("idx_tokens_batch", "batch_tx_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    batch_tx_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("transactions.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    product_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    token_string: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    credits: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    token_type: Mapped[str] = mapped_column(String(32), nullable=False)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class RefillTransaction(BaseModel):
    __tablename__ = "refill_transactions"
    __table_args__ = (
        Index("idx_refill_transactions_user", "user_id"),
        Index("idx_refill_transactions_token", "token_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    token_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tokens.id"), nullable=False
    )
    token_string: Mapped[str] = mapped_column(String(128), nullable=False)
    token_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # usd | credits
    refill_mode: Mapped[str] = mapped_column(String(16), nullable=False)

    # 사용자가 입력한 값 그대로
    refill_amount: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    credits_added: Mapped[int] = mapped_column(BigInteger, nullable=False)
    usd_spent: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    fee_usd: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    # credits_after = credits_before + credits_added
    credits_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    credits_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)
