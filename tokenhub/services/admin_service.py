import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tokenhub.core.exceptions import NotFoundError, PersistenceError, ValidationError
from tokenhub.core.ledger import (
    CONFIRMED_PAYMENT_STATUSES,
    FAILED_PAYMENT_STATUSES,
    PENDING_PAYMENT_STATUSES,
    TokenType,
    to_decimal,
)
from tokenhub.core.token_strings import TokenStringFactory
from tokenhub.repositories.payment_repository import PaymentRepository
from tokenhub.repositories.token_repository import TokenRepository
from tokenhub.repositories.transaction_repository import TransactionRepository
from tokenhub.repositories.user_repository import UserRepository
from tokenhub.schemas.admin import (
    AnalyticsResponse,
    PaymentStats,
    TokenStats,
    UserOverviewResponse,
    UserStats,
)
from tokenhub.schemas.token import AdminAdjustment, Token
from tokenhub.schemas.user import UserSummary
from tokenhub.services.balance_service import BalanceService

logger = logging.getLogger(__name__)

RECENT_USERS_WINDOW = timedelta(days=30)
USER_SEARCH_LIMIT = 25


class AdminService:
    """관리자 화면용 통계, 사용자 조회, 크레딧 조정, 토큰 잠금"""

    def __init__(self, db: Session, token_factory: Optional[TokenStringFactory] = None):
        self.db = db
        self.token_factory = token_factory or TokenStringFactory()
        self.balance_service = BalanceService(db)
        self.user_repo = UserRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.token_repo = TokenRepository(db)

    def get_analytics(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> AnalyticsResponse:
        """기간별 결제/토큰/사용자 통계

        Args:
            start: 시작 시각 (없으면 전체 기간, 최근 가입자는 30일)
            end: 종료 시각
        """
        payments = self.payment_repo.list_between(start, end)
        payment_stats = PaymentStats(total=len(payments))
        for payment in payments:
            status = (payment.status or "").strip().lower()
            if status in CONFIRMED_PAYMENT_STATUSES:
                payment_stats.successful += 1
                payment_stats.revenue += to_decimal(payment.amount_usd)
            elif status in PENDING_PAYMENT_STATUSES:
                payment_stats.pending += 1
            elif status in FAILED_PAYMENT_STATUSES:
                payment_stats.failed += 1

        tokens = self.token_repo.list_between(start, end)
        token_stats = TokenStats(total=len(tokens))
        for token in tokens:
            if token.token_type == TokenType.MASTER.value:
                token_stats.master += 1
            else:
                token_stats.product += 1
            token_stats.total_credits += token.credits

        recent_start = start or datetime.now(timezone.utc) - RECENT_USERS_WINDOW
        user_stats = UserStats(
            total=self.user_repo.count(),
            recent=self.user_repo.count_created_between(recent_start, end),
            with_payments=len({payment.user_id for payment in payments}),
        )

        return AnalyticsResponse(
            start=start,
            end=end,
            payments=payment_stats,
            tokens=token_stats,
            users=user_stats,
        )

    def search_users(self, query: str) -> List[UserSummary]:
        users = self.user_repo.search(query, limit=USER_SEARCH_LIMIT)
        return [UserSummary.model_validate(user.model_dump()) for user in users]

    def _require_user(self, user_id: int):
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return user

    def get_user_overview(self, user_id: int) -> UserOverviewResponse:
        user = self._require_user(user_id)
        return UserOverviewResponse(
            user=UserSummary.model_validate(user.model_dump()),
            balance=self.balance_service.get_balance(user_id),
            payments=self.payment_repo.list_for_user(user_id),
            transactions=self.transaction_repo.list_for_user(user_id),
            tokens=self.token_repo.list_for_user(user_id),
        )

    def adjust_credits(
        self, user_id: int, credits: int, label: Optional[str] = None
    ) -> AdminAdjustment:
        """관리자 크레딧 조정 기록 (잔액에는 영향 없음, usd_spent = 0)"""
        if credits == 0:
            raise ValidationError("credits must not be zero")
        self._require_user(user_id)

        try:
            adjustment = self.transaction_repo.create(
                user_id=user_id,
                token_type=TokenType.ADMIN_ADJUSTMENT.value,
                token_string=self.token_factory.adjustment_label(),
                credits=credits,
                usd_spent=Decimal("0"),
                fee_usd=Decimal("0"),
                value_credits_usd_label=label,
                activated=True,
            )
        except SQLAlchemyError:
            logger.exception(f"Failed to record admin adjustment for user {user_id}")
            raise PersistenceError("Failed to record adjustment")

        logger.info(f"Admin adjustment for user {user_id}: {credits:+d} credits")
        return adjustment

    def set_token_lock(self, token_id: int, locked: bool) -> Token:
        if not self.token_repo.exists({"id": token_id}):
            raise NotFoundError("Token not found", details={"token_id": token_id})
        try:
            token = self.token_repo.set_flags(token_id, locked=locked)
        except SQLAlchemyError:
            logger.exception(f"Failed to update lock on token {token_id}")
            raise PersistenceError("Failed to update token")
        logger.info(f"Token {token_id} {'locked' if locked else 'unlocked'}")
        return token
