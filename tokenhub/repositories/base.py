from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Query, Session

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장

    commit=False로 호출하면 flush만 수행합니다. 여러 테이블 쓰기를 하나의
    트랜잭션으로 묶어야 하는 서비스가 마지막에 직접 commit 합니다.
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def _to_schemas(self, model_instances: List[Any]) -> List[SchemaType]:
        return [self._to_schema(instance) for instance in model_instances]

    def _filtered(self, filters: Optional[Dict[str, Any]] = None) -> Query:
        query = self.db.query(self.model_class)
        for key, value in (filters or {}).items():
            if hasattr(self.model_class, key):
                query = query.filter(getattr(self.model_class, key) == value)
        return query

    def _persist(self, instance: Any, commit: bool) -> Optional[SchemaType]:
        """flush 후 DB 기본값(created_at 등)을 다시 읽고, 필요하면 commit"""
        self.db.add(instance)
        try:
            self.db.flush()
            self.db.refresh(instance)
            if commit:
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self._to_schema(instance)

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        return self._to_schema(self._filtered({"id": id}).first())

    def get_by_field(self, field_name: str, value: Any) -> Optional[SchemaType]:
        """특정 필드로 단건 조회"""
        return self._to_schema(self._filtered({field_name: value}).first())

    def create(self, commit: bool = True, **kwargs) -> Optional[SchemaType]:
        return self._persist(self.model_class(**kwargs), commit)

    def update(
        self, instance_id: Any, commit: bool = True, **kwargs
    ) -> Optional[SchemaType]:
        """존재하는 컬럼만 갱신. 대상이 없으면 None"""
        instance = self._filtered({"id": instance_id}).first()
        if not instance:
            return None

        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)
        return self._persist(instance, commit)

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return self._filtered(filters).count()

    def exists(self, filters: Dict[str, Any]) -> bool:
        return self._filtered(filters).first() is not None
