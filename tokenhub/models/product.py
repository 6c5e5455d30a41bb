from decimal import Decimal

from sqlalchemy import Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tokenhub.models.base import BaseModel, BigIntPK


class Product(BaseModel):
    """
    상품 카탈로그

    value_credits_usd: 해당 상품 1 credit의 USD 가격.
    Hub에서 동기화(sync)될 때만 변경되며, 발급/리필 로직에서는 읽기 전용입니다.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    product_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    value_credits_usd: Mapped[Decimal] = mapped_column(Numeric(20, 8), nullable=False)

    def __repr__(self):
        return f"<Product(product_id={self.product_id}, rate={self.value_credits_usd})>"
