from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from tokenhub.models.payment import Payment as PaymentModel
from tokenhub.repositories.base import BaseRepository
from tokenhub.schemas.payment import PaymentRecord


class PaymentRepository(BaseRepository[PaymentModel, PaymentRecord]):
    """결제 내역 리포지토리 - order_id 기준 upsert, 삭제 없음"""

    def __init__(self, db: Session):
        super().__init__(PaymentModel, PaymentRecord, db)

    def list_for_user(self, user_id: int) -> List[PaymentRecord]:
        """최신순 결제 내역"""
        rows = (
            self.db.query(PaymentModel)
            .filter(PaymentModel.user_id == user_id)
            .order_by(desc(PaymentModel.created_at), desc(PaymentModel.id))
            .all()
        )
        return self._to_schemas(rows)

    def get_by_order_id(self, order_id: str) -> Optional[PaymentRecord]:
        return self.get_by_field("order_id", order_id)

    def upsert_by_order_id(
        self, order_id: str, user_id: int, values: Dict[str, Any]
    ) -> tuple[PaymentRecord, bool]:
        """같은 order_id가 있으면 갱신, 없으면 생성

        Returns:
            (결제 레코드, 새로 생성 여부)
        """
        instance = (
            self.db.query(PaymentModel)
            .filter(PaymentModel.order_id == order_id)
            .first()
        )
        created = instance is None
        if created:
            instance = PaymentModel(order_id=order_id, user_id=user_id)
            self.db.add(instance)

        for key, value in values.items():
            setattr(instance, key, value)

        try:
            self.db.flush()
            self.db.refresh(instance)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self._to_schema(instance), created

    def list_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[PaymentRecord]:
        query = self.db.query(PaymentModel)
        if start is not None:
            query = query.filter(PaymentModel.created_at >= start)
        if end is not None:
            query = query.filter(PaymentModel.created_at <= end)
        return self._to_schemas(query.order_by(PaymentModel.id).all())

