"""
토큰 발급/리필 서비스

발급: 입력 검증 → 프리픽스 → 상품 조회 → 비용 계산 → 잔액 확인 → (배치 + 토큰) 저장 → Hub 미러
리필: 토큰 조회 → 잠금/활성화 확인 → 비용 계산 → 잔액 확인 → (리필 기록 + 크레딧 CAS) 저장 → Hub 미러

두 쓰기는 하나의 DB 트랜잭션으로 커밋되고, Hub 미러 실패는 결과의 상태 필드로만 보고됩니다.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tokenhub.config import Settings, settings as default_settings
from tokenhub.core.exceptions import (
    ConcurrentUpdateError,
    LockedError,
    MirrorSyncError,
    NotActivatedError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from tokenhub.core.ledger import (
    TokenType,
    ensure_affordable,
    quantize_usd,
    quote_issuance,
    quote_refill,
    validate_issuance_inputs,
)
from tokenhub.core.token_strings import TokenStringFactory
from tokenhub.providers.hub.client import HubMirrorClient
from tokenhub.repositories.product_repository import ProductRepository
from tokenhub.repositories.refill_repository import RefillRepository
from tokenhub.repositories.token_repository import TokenRepository
from tokenhub.repositories.transaction_repository import TransactionRepository
from tokenhub.schemas.token import (
    IssueTokensRequest,
    IssueTokensResponse,
    MirrorSyncStatus,
    RefillRecord,
    RefillTokenRequest,
    RefillTokenResponse,
    Token,
    TokenStateResponse,
)
from tokenhub.services.balance_service import BalanceService

logger = logging.getLogger(__name__)


class TokenService:
    """토큰 발급, 리필, 활성화, 조회를 담당하는 서비스"""

    def __init__(
        self,
        db: Session,
        hub_client: HubMirrorClient,
        token_factory: Optional[TokenStringFactory] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.hub_client = hub_client
        self.token_factory = token_factory or TokenStringFactory()
        self.settings = settings or default_settings
        self.balance_service = BalanceService(db)
        self.product_repo = ProductRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.token_repo = TokenRepository(db)
        self.refill_repo = RefillRepository(db)

    async def _mirror(self, action: str, call: Awaitable) -> MirrorSyncStatus:
        try:
            await call
            return MirrorSyncStatus(success=True)
        except MirrorSyncError as e:
            logger.warning(f"Hub {action} not mirrored: {e}")
            return MirrorSyncStatus(success=False, error=str(e))

    def _get_owned_token(self, user_id: int, token_string: str) -> Token:
        token = self.token_repo.get_owned(user_id, token_string)
        if not token:
            raise NotFoundError(
                "Token not found or access denied",
                details={"token_string": token_string},
            )
        return token

    def _product_rate(self, product_id: Optional[str]):
        if not product_id:
            raise ValidationError("productId is required for product tokens")
        product = self.product_repo.get_by_product_id(product_id)
        if not product:
            raise NotFoundError(
                "Product not found", details={"product_id": product_id}
            )
        return product.value_credits_usd

    def _unique_token_strings(
        self, prefix: str, credits: int, token_type: TokenType, count: int
    ) -> List[str]:
        token_strings: List[str] = []
        seen = set()
        while len(token_strings) < count:
            candidate = self.token_factory.token_string(prefix, credits, token_type)
            if candidate in seen:
                continue
            seen.add(candidate)
            token_strings.append(candidate)
        return token_strings

    async def issue_tokens(
        self, user_id: int, request: IssueTokensRequest
    ) -> IssueTokensResponse:
        """토큰 배치 발급

        Args:
            user_id: 발급 요청 사용자 ID
            request: 발급 요청 (유형, 상품, 금액/크레딧, 수량, 프리픽스)

        Returns:
            IssueTokensResponse: 배치 ID, 비용, 수수료, 활성화 여부, Hub 동기화 상태

        Raises:
            ValidationError, NotFoundError, AmountTooSmallError,
            InsufficientBalanceError, PersistenceError
        """
        token_type = TokenType(request.type)
        validate_issuance_inputs(
            token_type,
            request.token_count,
            request.mode,
            usd=request.usd,
            credits=request.credits,
        )
        prefix = self.token_factory.resolve_prefix(
            request.prefix_mode, request.prefix_input
        )

        rate = None
        product_id = None
        if token_type == TokenType.PRODUCT:
            product_id = request.product_id
            rate = self._product_rate(product_id)

        quote = quote_issuance(
            token_type,
            request.token_count,
            request.mode,
            usd=request.usd,
            credits=request.credits,
            rate=rate,
        )

        if request.total_cost is not None and quantize_usd(
            request.total_cost
        ) != quantize_usd(quote.total_cost):
            raise ValidationError(
                "Total cost does not match the server quote",
                details={
                    "client_total_cost": str(request.total_cost),
                    "total_cost": str(quote.total_cost),
                },
            )

        snapshot = self.balance_service.get_snapshot(user_id)
        ensure_affordable(snapshot.balance, quote.total_cost)

        activated = self.settings.TOKENS_ACTIVATED_ON_ISSUE
        token_strings = self._unique_token_strings(
            prefix, quote.credits_per_token, token_type, quote.quantity
        )

        try:
            batch = self.transaction_repo.create(
                commit=False,
                user_id=user_id,
                product_id=product_id,
                token_type=token_type.value,
                token_string=self.token_factory.batch_label(quote.quantity),
                credits=quote.total_credits,
                usd_spent=quote.total_cost,
                value_credits_usd_label=quote.value_label,
                token_count=quote.quantity,
                mode=quote.mode.value,
                fee_usd=quote.fee_usd,
                credits_per_token=quote.credits_per_token,
                total_credits=quote.total_credits,
                activated=activated,
            )
            self.token_repo.bulk_create(
                [
                    {
                        "batch_tx_id": batch.id,
                        "user_id": user_id,
                        "product_id": product_id,
                        "token_string": token_string,
                        "credits": quote.credits_per_token,
                        "token_type": token_type.value,
                        "activated": activated,
                        "locked": False,
                    }
                    for token_string in token_strings
                ]
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Failed to persist token batch for user {user_id}")
            raise PersistenceError(
                "Failed to generate tokens", details={"reason": str(e.__class__.__name__)}
            )

        logger.info(
            f"Issued {quote.quantity} {token_type.value} tokens for user {user_id} "
            f"(batch {batch.id}, cost {quote.total_cost})"
        )

        hub_rows = []
        for token_string in token_strings:
            row = {
                "token": token_string,
                "credits": quote.credits_per_token,
                "activated": activated,
            }
            if product_id:
                row["product_id"] = product_id
            hub_rows.append(row)
        hub_sync = await self._mirror(
            "issuance", self.hub_client.upsert_tokens(token_type.value, hub_rows)
        )

        return IssueTokensResponse(
            message=f"{quote.quantity} tokens generated successfully",
            transaction_id=batch.id,
            token_count=quote.quantity,
            credits_per_token=quote.credits_per_token,
            total_cost=quote.total_cost,
            fee_usd=quote.fee_usd,
            activated=activated,
            tokens=token_strings,
            hub_sync=hub_sync,
        )

    async def refill_token(
        self, user_id: int, request: RefillTokenRequest
    ) -> RefillTokenResponse:
        """기존 토큰에 크레딧 추가

        Raises:
            NotFoundError, LockedError, NotActivatedError, UnsupportedModeError,
            AmountTooSmallError, InsufficientBalanceError, ConcurrentUpdateError,
            PersistenceError
        """
        token = self._get_owned_token(user_id, request.token_string)
        token_type = TokenType(token.token_type)

        if request.token_type and TokenType(request.token_type) != token_type:
            raise ValidationError(
                "token_type does not match the stored token",
                details={"token_type": token_type.value},
            )
        if token.locked:
            raise LockedError("Token is locked")
        if not token.activated:
            raise NotActivatedError()

        rate = None
        if token_type == TokenType.PRODUCT:
            rate = self._product_rate(token.product_id)

        quote = quote_refill(
            token_type, request.refill_mode, request.refill_amount, rate=rate
        )

        snapshot = self.balance_service.get_snapshot(user_id)
        ensure_affordable(snapshot.balance, quote.usd_spent)

        credits_before = token.credits
        credits_after = credits_before + quote.credits_added

        try:
            refill = self.refill_repo.create(
                commit=False,
                user_id=user_id,
                token_id=token.id,
                token_string=token.token_string,
                token_type=token_type.value,
                refill_mode=quote.mode.value,
                refill_amount=quote.amount,
                credits_added=quote.credits_added,
                usd_spent=quote.usd_spent,
                fee_usd=quote.fee_usd,
                credits_before=credits_before,
                credits_after=credits_after,
                balance_before=snapshot.balance,
                balance_after=snapshot.balance - quote.usd_spent,
            )
            swapped = self.token_repo.compare_and_set_credits(
                token.id, credits_before, credits_after
            )
            if not swapped:
                self.db.rollback()
                logger.warning(
                    f"Concurrent refill detected on token {token.id} for user {user_id}"
                )
                raise ConcurrentUpdateError()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Failed to persist refill for token {token.id}")
            raise PersistenceError(
                "Failed to refill token", details={"reason": str(e.__class__.__name__)}
            )

        logger.info(
            f"Refilled token {token.id} for user {user_id}: "
            f"+{quote.credits_added} credits ({credits_before} -> {credits_after}), "
            f"cost {quote.usd_spent}"
        )

        hub_update = await self._mirror(
            "refill",
            self.hub_client.update_credits(
                token_type.value, token.token_string, credits_after
            ),
        )

        return RefillTokenResponse(
            refill_transaction_id=refill.id,
            credits_added=quote.credits_added,
            usd_spent=quote.usd_spent,
            fee_usd=quote.fee_usd,
            new_credits=credits_after,
            remaining_balance=refill.balance_after,
            hub_update=hub_update,
        )

    async def activate_token(self, user_id: int, token_string: str) -> TokenStateResponse:
        """비활성 토큰 활성화 후 Hub에 반영"""
        token = self._get_owned_token(user_id, token_string)
        if token.locked:
            raise LockedError("Token is locked")
        if token.activated:
            return TokenStateResponse(token=token)

        try:
            token = self.token_repo.set_flags(token.id, activated=True)
        except SQLAlchemyError:
            logger.exception(f"Failed to activate token {token.id}")
            raise PersistenceError("Failed to activate token")

        hub_sync = await self._mirror(
            "activation",
            self.hub_client.set_activated(token.token_type, token.token_string, True),
        )
        logger.info(f"Activated token {token.id} for user {user_id}")
        return TokenStateResponse(token=token, hub_sync=hub_sync)

    def list_tokens(self, user_id: int, batch_tx_id: Optional[int] = None) -> List[Token]:
        return self.token_repo.list_for_user(user_id, batch_tx_id=batch_tx_id)

    def export_tokens(
        self, user_id: int, batch_tx_id: Optional[int] = None
    ) -> Tuple[str, str]:
        """토큰 문자열을 줄 단위 텍스트로 내보내기

        Returns:
            (파일명, 본문)
        """
        tokens = self.list_tokens(user_id, batch_tx_id=batch_tx_id)
        if not tokens:
            raise NotFoundError("No tokens to export")

        if batch_tx_id is not None:
            filename = f"tokens-batch-{batch_tx_id}.txt"
        else:
            filename = f"tokens-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.txt"
        content = "\n".join(token.token_string for token in tokens) + "\n"
        return filename, content

    def get_refill_history(self, user_id: int, token_string: str) -> List[RefillRecord]:
        token = self._get_owned_token(user_id, token_string)
        return self.refill_repo.list_for_token(token.id)
