from decimal import Decimal
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from tokenhub.core.ledger import TokenType
from tokenhub.models.token import Transaction as TransactionModel
from tokenhub.repositories.base import BaseRepository
from tokenhub.schemas.token import AdminAdjustment, IssuanceBatch, TransactionEntry


class TransactionRepository(BaseRepository[TransactionModel, IssuanceBatch]):
    """발급 배치/관리자 조정 리포지토리

    token_type에 따라 IssuanceBatch 또는 AdminAdjustment 스키마로 변환합니다.
    """

    def __init__(self, db: Session):
        super().__init__(TransactionModel, IssuanceBatch, db)

    def _to_schema(self, model_instance) -> Optional[TransactionEntry]:
        if model_instance is None:
            return None
        if model_instance.token_type == TokenType.ADMIN_ADJUSTMENT.value:
            return AdminAdjustment.model_validate(model_instance)
        return IssuanceBatch.model_validate(model_instance)

    def list_for_user(self, user_id: int) -> List[TransactionEntry]:
        rows = (
            self.db.query(TransactionModel)
            .filter(TransactionModel.user_id == user_id)
            .order_by(desc(TransactionModel.created_at), desc(TransactionModel.id))
            .all()
        )
        return self._to_schemas(rows)

    def spent_amounts(self, user_id: int) -> List[Decimal]:
        """잔액 계산용 usd_spent 목록"""
        rows = (
            self.db.query(TransactionModel.usd_spent)
            .filter(TransactionModel.user_id == user_id)
            .all()
        )
        return [row[0] for row in rows]
