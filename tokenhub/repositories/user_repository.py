from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from tokenhub.models.user import User as UserModel
from tokenhub.repositories.base import BaseRepository
from tokenhub.schemas.user import User as UserSchema


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리 - 계정 조회/검색"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def search(self, query: str, limit: int = 25) -> List[UserSchema]:
        """숫자면 ID 일치, 아니면 이메일 부분 일치로 검색"""
        query = (query or "").strip()
        if not query:
            return []

        conditions = [UserModel.email.ilike(f"%{query}%")]
        if query.isdigit():
            conditions.append(UserModel.id == int(query))

        rows = (
            self.db.query(UserModel)
            .filter(or_(*conditions))
            .order_by(desc(UserModel.created_at), desc(UserModel.id))
            .limit(limit)
            .all()
        )
        return self._to_schemas(rows)

    def count_created_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> int:
        query = self.db.query(UserModel)
        if start is not None:
            query = query.filter(UserModel.created_at >= start)
        if end is not None:
            query = query.filter(UserModel.created_at <= end)
        return query.count()
