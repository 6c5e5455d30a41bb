from decimal import Decimal
from typing import List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from tokenhub.models.token import RefillTransaction as RefillModel
from tokenhub.repositories.base import BaseRepository
from tokenhub.schemas.token import RefillRecord


class RefillRepository(BaseRepository[RefillModel, RefillRecord]):
    """토큰 리필 내역 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(RefillModel, RefillRecord, db)

    def list_for_user(self, user_id: int) -> List[RefillRecord]:
        rows = (
            self.db.query(RefillModel)
            .filter(RefillModel.user_id == user_id)
            .order_by(desc(RefillModel.created_at), desc(RefillModel.id))
            .all()
        )
        return self._to_schemas(rows)

    def list_for_token(self, token_id: int) -> List[RefillRecord]:
        rows = (
            self.db.query(RefillModel)
            .filter(RefillModel.token_id == token_id)
            .order_by(desc(RefillModel.created_at), desc(RefillModel.id))
            .all()
        )
        return self._to_schemas(rows)

    def spent_amounts(self, user_id: int) -> List[Decimal]:
        rows = (
            self.db.query(RefillModel.usd_spent)
            .filter(RefillModel.user_id == user_id)
            .all()
        )
        return [row[0] for row in rows]
