from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, update
from sqlalchemy.orm import Session

from tokenhub.models.token import Token as TokenModel
from tokenhub.repositories.base import BaseRepository
from tokenhub.schemas.token import Token as TokenSchema


class TokenRepository(BaseRepository[TokenModel, TokenSchema]):
    """발급 토큰 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(TokenModel, TokenSchema, db)

    def get_owned(self, user_id: int, token_string: str) -> Optional[TokenSchema]:
        """소유자가 일치하는 토큰만 반환 (다른 사용자의 토큰은 없는 것과 동일)"""
        row = (
            self.db.query(TokenModel)
            .filter(
                TokenModel.token_string == token_string,
                TokenModel.user_id == user_id,
            )
            .first()
        )
        return self._to_schema(row)

    def list_for_user(
        self, user_id: int, batch_tx_id: Optional[int] = None
    ) -> List[TokenSchema]:
        query = self.db.query(TokenModel).filter(TokenModel.user_id == user_id)
        if batch_tx_id is not None:
            query = query.filter(TokenModel.batch_tx_id == batch_tx_id)
        rows = query.order_by(desc(TokenModel.created_at), desc(TokenModel.id)).all()
        return self._to_schemas(rows)

    def bulk_create(self, rows: List[Dict[str, Any]]) -> List[TokenSchema]:
        """여러 토큰을 flush만 하고 반환. commit은 호출자가 담당"""
        instances = [TokenModel(**row) for row in rows]
        self.db.add_all(instances)
        self.db.flush()
        return self._to_schemas(instances)

    def compare_and_set_credits(
        self, token_id: int, expected_credits: int, new_credits: int
    ) -> bool:
        """현재 크레딧이 expected_credits일 때만 갱신 (flush만, commit 없음)

        Returns:
            갱신 성공 여부. 다른 요청이 먼저 바꿨다면 False
        """
        result = self.db.execute(
            update(TokenModel)
            .where(
                TokenModel.id == token_id,
                TokenModel.credits == expected_credits,
            )
            .values(credits=new_credits)
            .execution_options(synchronize_session=False)
        )
        # 이미 로드된 Token 인스턴스가 이전 크레딧을 들고 있지 않도록
        self.db.expire_all()
        return result.rowcount == 1

    def set_flags(self, token_id: int, **flags: bool) -> Optional[TokenSchema]:
        """activated / locked 플래그 변경"""
        allowed = {k: v for k, v in flags.items() if k in ("activated", "locked")}
        return self.update(token_id, **allowed)

    def list_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[TokenSchema]:
        query = self.db.query(TokenModel)
        if start is not None:
            query = query.filter(TokenModel.created_at >= start)
        if end is not None:
            query = query.filter(TokenModel.created_at <= end)
        return self._to_schemas(query.order_by(TokenModel.id).all())
