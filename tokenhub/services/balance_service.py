import logging

from sqlalchemy.orm import Session

from tokenhub.core.ledger import BalanceSnapshot, calculate_balance
from tokenhub.repositories.payment_repository import PaymentRepository
from tokenhub.repositories.refill_repository import RefillRepository
from tokenhub.repositories.transaction_repository import TransactionRepository
from tokenhub.schemas.account import AccountLedgerResponse, BalanceResponse

logger = logging.getLogger(__name__)


class BalanceService:
    """결제/지출 내역 전체로부터 잔액을 매번 다시 계산하는 서비스"""

    def __init__(self, db: Session):
        self.db = db
        self.payment_repo = PaymentRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.refill_repo = RefillRepository(db)

    def get_snapshot(self, user_id: int) -> BalanceSnapshot:
        """사용자 잔액 스냅샷

        Args:
            user_id: 사용자 ID

        Returns:
            BalanceSnapshot: 확정 결제 합계, 지출 합계, 잔액
        """
        payments = self.payment_repo.list_for_user(user_id)
        spends = self.transaction_repo.spent_amounts(
            user_id
        ) + self.refill_repo.spent_amounts(user_id)
        return calculate_balance(payments, spends)

    def get_balance(self, user_id: int) -> BalanceResponse:
        snapshot = self.get_snapshot(user_id)
        return BalanceResponse(
            balance=snapshot.balance,
            confirmed_usd=snapshot.confirmed_usd,
            spent_usd=snapshot.spent_usd,
        )

    def get_account_ledger(self, user_id: int) -> AccountLedgerResponse:
        """결제, 발급/조정, 리필 내역 (각각 최신순)"""
        payments = self.payment_repo.list_for_user(user_id)
        transactions = self.transaction_repo.list_for_user(user_id)
        refills = self.refill_repo.list_for_user(user_id)

        snapshot = calculate_balance(payments, transactions + refills)
        logger.info(
            f"Ledger for user {user_id}: {len(payments)} payments, "
            f"{len(transactions)} transactions, {len(refills)} refills"
        )
        return AccountLedgerResponse(
            balance=BalanceResponse(
                balance=snapshot.balance,
                confirmed_usd=snapshot.confirmed_usd,
                spent_usd=snapshot.spent_usd,
            ),
            payments=payments,
            transactions=transactions,
            refills=refills,
        )
