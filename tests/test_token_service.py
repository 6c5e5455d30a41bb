import re
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from tokenhub.config import Settings
from tokenhub.core.exceptions import (
    ConcurrentUpdateError,
    InsufficientBalanceError,
    LockedError,
    NotActivatedError,
    NotFoundError,
    PersistenceError,
    UnsupportedModeError,
    ValidationError,
)
from tokenhub.models import RefillTransaction, Token, Transaction
from tokenhub.schemas.token import IssueTokensRequest, RefillTokenRequest
from tokenhub.services.balance_service import BalanceService
from tokenhub.services.token_service import TokenService

from conftest import FakeHubClient


def make_service(db, hub, token_factory, **settings_overrides):
    settings = Settings(**settings_overrides)
    return TokenService(db=db, hub_client=hub, token_factory=token_factory, settings=settings)


def product_request(**overrides):
    data = {
        "type": "product",
        "productId": "gpt-basic",
        "usd": "10",
        "mode": "usd",
        "tokenCount": 5,
        "prefixMode": "custom",
        "prefixInput": "GPT",
    }
    data.update(overrides)
    return IssueTokensRequest(**data)


@pytest.fixture
def service(db, hub, token_factory):
    return make_service(db, hub, token_factory)


class TestIssueTokens:
    """토큰 발급 테스트"""

    @pytest.mark.asyncio
    async def test_product_batch(self, service, db, user, product, fund, hub):
        # Arrange
        fund(user.id, 100)

        # Act
        result = await service.issue_tokens(user.id, product_request())

        # Assert
        assert result.success is True
        assert result.token_count == 5
        assert result.credits_per_token == 1000
        assert result.total_cost == Decimal("50.0001")
        assert result.fee_usd == Decimal("0.0001")
        assert result.activated is True
        assert result.hub_sync.success is True

        tokens = db.query(Token).filter(Token.batch_tx_id == result.transaction_id).all()
        assert len(tokens) == 5
        assert len({t.token_string for t in tokens}) == 5
        for token in tokens:
            assert re.fullmatch(r"GPT-1000-[A-Za-z0-9]{15}", token.token_string)
            assert token.credits == 1000
            assert token.product_id == "gpt-basic"

        batch = db.query(Transaction).one()
        assert batch.usd_spent == Decimal("50.0001")
        assert batch.total_credits == 5000
        assert batch.token_string.startswith("BATCH-5tokens-")

        assert BalanceService(db).get_snapshot(user.id).balance == Decimal("49.9999")

        name, token_type, rows = hub.calls[0]
        assert name == "upsert_tokens"
        assert token_type == "product"
        assert [row["token"] for row in rows] == result.tokens
        assert rows[0]["credits"] == 1000

    @pytest.mark.asyncio
    async def test_master_token(self, service, db, user, fund):
        fund(user.id, 30)

        result = await service.issue_tokens(
            user.id,
            IssueTokensRequest(type="master", usd="25", tokenCount=1, prefixMode="auto"),
        )

        assert result.total_cost == Decimal("25.0001")
        assert result.credits_per_token == 25
        token = db.query(Token).one()
        assert token.token_type == "master"
        assert token.product_id is None
        assert re.fullmatch(r"[A-Za-z0-9]{4}-25USD-[A-Za-z0-9]{15}", token.token_string)

    @pytest.mark.asyncio
    async def test_hub_failure_keeps_local_issuance(self, db, user, product, fund, token_factory):
        fund(user.id, 100)
        service = make_service(db, FakeHubClient(fail_with="hub down"), token_factory)

        result = await service.issue_tokens(user.id, product_request())

        assert result.success is True
        assert result.hub_sync.success is False
        assert result.hub_sync.error == "hub down"
        assert db.query(Token).count() == 5

    @pytest.mark.asyncio
    async def test_insufficient_balance_writes_nothing(self, service, db, user, product, fund, hub):
        fund(user.id, 10)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await service.issue_tokens(user.id, product_request())

        assert exc_info.value.balance == Decimal("10")
        assert exc_info.value.required == Decimal("50.0001")
        assert db.query(Transaction).count() == 0
        assert db.query(Token).count() == 0
        assert hub.calls == []

    @pytest.mark.asyncio
    async def test_pending_payment_is_not_spendable(self, service, user, product, fund):
        fund(user.id, 100, status="pending")

        with pytest.raises(InsufficientBalanceError):
            await service.issue_tokens(user.id, product_request())

    @pytest.mark.asyncio
    async def test_master_fractional_usd_rejected(self, service, db, user, fund, hub):
        fund(user.id, 100)

        with pytest.raises(ValidationError):
            await service.issue_tokens(
                user.id, IssueTokensRequest(type="master", usd="2.5", tokenCount=4)
            )

        assert db.query(Token).count() == 0
        assert hub.calls == []

    @pytest.mark.asyncio
    async def test_stored_spend_matches_quoted_cost(self, service, db, user, product, fund):
        fund(user.id, 100)

        with pytest.raises(ValidationError):
            await service.issue_tokens(
                user.id, product_request(usd="10.000000001", tokenCount=1)
            )
        assert db.query(Transaction).count() == 0

        result = await service.issue_tokens(
            user.id, product_request(usd="10.00000001", tokenCount=1)
        )

        batch = db.query(Transaction).one()
        assert batch.usd_spent == result.total_cost == Decimal("10.00010001")
        assert BalanceService(db).get_snapshot(user.id).balance == Decimal("89.99989999")

    @pytest.mark.asyncio
    async def test_unknown_product(self, service, user, fund):
        fund(user.id, 100)

        with pytest.raises(NotFoundError):
            await service.issue_tokens(user.id, product_request(productId="missing"))

    @pytest.mark.asyncio
    async def test_quantity_checked_before_product_lookup(self, service, user):
        with pytest.raises(ValidationError):
            await service.issue_tokens(
                user.id, product_request(productId="missing", tokenCount=0)
            )
        with pytest.raises(ValidationError):
            await service.issue_tokens(user.id, product_request(tokenCount=1001))

    @pytest.mark.asyncio
    async def test_invalid_custom_prefix(self, service, user, product, fund):
        fund(user.id, 100)

        with pytest.raises(ValidationError):
            await service.issue_tokens(user.id, product_request(prefixInput="TOOLONG"))

    @pytest.mark.asyncio
    async def test_client_total_cost_must_match_quote(self, service, db, user, product, fund):
        fund(user.id, 100)

        with pytest.raises(ValidationError):
            await service.issue_tokens(user.id, product_request(totalCost="50"))
        assert db.query(Transaction).count() == 0

        result = await service.issue_tokens(user.id, product_request(totalCost="50.0001"))
        assert result.total_cost == Decimal("50.0001")

    @pytest.mark.asyncio
    async def test_token_insert_failure_rolls_back_batch(
        self, service, db, user, product, fund, monkeypatch
    ):
        fund(user.id, 100)

        def broken_bulk_create(rows):
            raise SQLAlchemyError("insert failed")

        monkeypatch.setattr(service.token_repo, "bulk_create", broken_bulk_create)

        with pytest.raises(PersistenceError):
            await service.issue_tokens(user.id, product_request())

        assert db.query(Transaction).count() == 0
        assert BalanceService(db).get_snapshot(user.id).balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_tokens_inactive_when_configured(self, db, hub, token_factory, user, product, fund):
        fund(user.id, 100)
        service = make_service(db, hub, token_factory, TOKENS_ACTIVATED_ON_ISSUE=False)

        result = await service.issue_tokens(user.id, product_request(tokenCount=1))

        assert result.activated is False
        assert db.query(Token).one().activated is False


async def issue_one(service, user_id, **overrides):
    result = await service.issue_tokens(
        user_id, product_request(tokenCount=1, **overrides)
    )
    return result.tokens[0]


class TestRefillToken:
    """토큰 리필 테스트"""

    @pytest.mark.asyncio
    async def test_product_usd_refill(self, service, db, user, product, fund, hub):
        fund(user.id, 100)
        token_string = await issue_one(service, user.id)

        result = await service.refill_token(
            user.id,
            RefillTokenRequest(token_string=token_string, refill_amount="10", refill_mode="usd"),
        )

        assert result.credits_added == 999
        assert result.usd_spent == Decimal("10")
        assert result.new_credits == 1999
        # 100 - 10.0001 (issuance) - 10 (refill)
        assert result.remaining_balance == Decimal("79.9999")
        assert result.hub_update.success is True

        refill = db.query(RefillTransaction).one()
        assert refill.credits_before == 1000
        assert refill.credits_after == 1999
        assert refill.balance_before == Decimal("89.9999")
        assert refill.balance_after == Decimal("79.9999")
        assert db.query(Token).one().credits == 1999
        assert hub.calls[-1] == ("update_credits", "product", token_string, 1999)

    @pytest.mark.asyncio
    async def test_product_credits_refill(self, service, db, user, product, fund):
        fund(user.id, 100)
        token_string = await issue_one(service, user.id)

        result = await service.refill_token(
            user.id,
            RefillTokenRequest(
                token_string=token_string, refill_amount="500", refill_mode="credits"
            ),
        )

        assert result.credits_added == 500
        assert result.usd_spent == Decimal("5.0001")
        assert BalanceService(db).get_snapshot(user.id).spent_usd == Decimal("15.0002")

    @pytest.mark.asyncio
    async def test_master_refill(self, service, user, fund):
        fund(user.id, 100)
        issued = await service.issue_tokens(
            user.id, IssueTokensRequest(type="master", usd="5", tokenCount=1)
        )

        result = await service.refill_token(
            user.id,
            RefillTokenRequest(
                token_string=issued.tokens[0],
                refill_amount="10",
                refill_mode="usd",
                token_type="master",
            ),
        )

        assert result.credits_added == 9
        assert result.new_credits == 14

    @pytest.mark.asyncio
    async def test_master_credits_mode_rejected(self, service, db, user, fund):
        fund(user.id, 100)
        issued = await service.issue_tokens(
            user.id, IssueTokensRequest(type="master", usd="5", tokenCount=1)
        )

        with pytest.raises(UnsupportedModeError):
            await service.refill_token(
                user.id,
                RefillTokenRequest(
                    token_string=issued.tokens[0], refill_amount="10", refill_mode="credits"
                ),
            )
        assert db.query(RefillTransaction).count() == 0

    @pytest.mark.asyncio
    async def test_token_type_mismatch(self, service, user, product, fund):
        fund(user.id, 100)
        token_string = await issue_one(service, user.id)

        with pytest.raises(ValidationError):
            await service.refill_token(
                user.id,
                RefillTokenRequest(
                    token_string=token_string,
                    refill_amount="10",
                    refill_mode="usd",
                    token_type="master",
                ),
            )

    @pytest.mark.asyncio
    async def test_other_users_token_is_not_found(self, service, user, other_user, product, fund):
        fund(user.id, 100)
        fund(other_user.id, 100)
        token_string = await issue_one(service, user.id)

        with pytest.raises(NotFoundError):
            await service.refill_token(
                other_user.id,
                RefillTokenRequest(token_string=token_string, refill_amount="10", refill_mode="usd"),
            )

    @pytest.mark.asyncio
    async def test_locked_token(self, service, db, user, product, fund):
        fund(user.id, 100)
        token_string = await issue_one(service, user.id)
        db.query(Token).update({"locked": True})
        db.commit()

        with pytest.raises(LockedError):
            await service.refill_token(
                user.id,
                RefillTokenRequest(token_string=token_string, refill_amount="10", refill_mode="usd"),
            )

    @pytest.mark.asyncio
    async def test_inactive_token_then_activation(self, db, hub, token_factory, user, product, fund):
        fund(user.id, 100)
        service = make_service(db, hub, token_factory, TOKENS_ACTIVATED_ON_ISSUE=False)
        token_string = await issue_one(service, user.id)
        request = RefillTokenRequest(
            token_string=token_string, refill_amount="10", refill_mode="usd"
        )

        with pytest.raises(NotActivatedError):
            await service.refill_token(user.id, request)

        state = await service.activate_token(user.id, token_string)
        assert state.token.activated is True
        assert state.hub_sync.success is True
        assert hub.calls[-1] == ("set_activated", "product", token_string, True)

        result = await service.refill_token(user.id, request)
        assert result.credits_added == 999

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, service, db, user, product, fund):
        fund(user.id, 15)
        token_string = await issue_one(service, user.id)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await service.refill_token(
                user.id,
                RefillTokenRequest(token_string=token_string, refill_amount="10", refill_mode="usd"),
            )

        assert exc_info.value.balance == Decimal("4.9999")
        assert db.query(Token).one().credits == 1000

    @pytest.mark.asyncio
    async def test_lost_race_rolls_back_refill_record(
        self, service, db, user, product, fund, monkeypatch
    ):
        fund(user.id, 100)
        token_string = await issue_one(service, user.id)
        monkeypatch.setattr(
            service.token_repo, "compare_and_set_credits", lambda *args: False
        )

        with pytest.raises(ConcurrentUpdateError):
            await service.refill_token(
                user.id,
                RefillTokenRequest(token_string=token_string, refill_amount="10", refill_mode="usd"),
            )

        assert db.query(RefillTransaction).count() == 0
        assert db.query(Token).one().credits == 1000

    @pytest.mark.asyncio
    async def test_compare_and_set_detects_stale_credits(self, service, db, user, product, fund):
        fund(user.id, 100)
        await issue_one(service, user.id)
        token = db.query(Token).one()

        assert service.token_repo.compare_and_set_credits(token.id, 999, 5000) is False
        assert service.token_repo.compare_and_set_credits(token.id, 1000, 1500) is True
        db.commit()
        assert db.query(Token).one().credits == 1500

    @pytest.mark.asyncio
    async def test_hub_failure_reported_not_raised(self, db, token_factory, user, product, fund):
        fund(user.id, 100)
        hub = FakeHubClient()
        service = make_service(db, hub, token_factory)
        token_string = await issue_one(service, user.id)
        hub.fail_with = "HUB API credentials not configured"

        result = await service.refill_token(
            user.id,
            RefillTokenRequest(token_string=token_string, refill_amount="10", refill_mode="usd"),
        )

        assert result.hub_update.success is False
        assert result.hub_update.error == "HUB API credentials not configured"
        assert db.query(Token).one().credits == 1999

    @pytest.mark.asyncio
    async def test_refill_history(self, service, user, product, fund):
        fund(user.id, 100)
        token_string = await issue_one(service, user.id)
        for amount in ("10", "20"):
            await service.refill_token(
                user.id,
                RefillTokenRequest(token_string=token_string, refill_amount=amount, refill_mode="usd"),
            )

        history = service.get_refill_history(user.id, token_string)

        assert [entry.credits_added for entry in history] == [1999, 999]


class TestTokenQueries:
    @pytest.mark.asyncio
    async def test_export_batch(self, service, user, product, fund):
        fund(user.id, 100)
        result = await service.issue_tokens(user.id, product_request(tokenCount=3))

        filename, content = service.export_tokens(user.id, batch_tx_id=result.transaction_id)

        assert filename == f"tokens-batch-{result.transaction_id}.txt"
        assert sorted(content.splitlines()) == sorted(result.tokens)

    def test_export_without_tokens(self, service, user):
        with pytest.raises(NotFoundError):
            service.export_tokens(user.id)

    @pytest.mark.asyncio
    async def test_list_filters_by_batch(self, service, user, product, fund):
        fund(user.id, 100)
        first = await service.issue_tokens(user.id, product_request(tokenCount=2))
        await service.issue_tokens(user.id, product_request(tokenCount=1))

        assert len(service.list_tokens(user.id)) == 3
        batch_tokens = service.list_tokens(user.id, batch_tx_id=first.transaction_id)
        assert sorted(t.token_string for t in batch_tokens) == sorted(first.tokens)
