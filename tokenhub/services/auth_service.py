import logging
from typing import Optional

from sqlalchemy.orm import Session

from tokenhub.config import Settings, settings as default_settings
from tokenhub.core.exceptions import AuthenticationError
from tokenhub.core.security import decode_access_token
from tokenhub.repositories.user_repository import UserRepository
from tokenhub.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)


class AuthService:
    """외부 인증 제공자가 발급한 JWT를 검증하고 로컬 사용자와 연결"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.user_repo = UserRepository(db)

    def get_current_user(self, token: str) -> UserSchema:
        payload = decode_access_token(token, secret_key=self.settings.SECRET_KEY)
        user = self.user_repo.get_by_id(payload.user_id)
        if not user:
            logger.warning(f"Token for unknown user {payload.user_id}")
            raise AuthenticationError("User not found")
        return user
