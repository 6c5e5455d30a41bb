from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional

from tokenhub.models.user import UserRole


class User(BaseModel):
    id: int
    email: EmailStr
    is_active: bool = True
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)


class UserSummary(BaseModel):
    id: int
    email: EmailStr
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
