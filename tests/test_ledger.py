from decimal import Decimal

import pytest

from tokenhub.core.exceptions import (
    AmountTooSmallError,
    InsufficientBalanceError,
    UnsupportedModeError,
    ValidationError,
)
from tokenhub.core.ledger import (
    FIXED_FEE_USD,
    FundingMode,
    TokenType,
    calculate_balance,
    ensure_affordable,
    floor_credits,
    quote_issuance,
    quote_refill,
)


def payment(amount, status="finished"):
    return {"status": status, "amount_usd": amount}


class TestBalance:
    """잔액 계산 테스트"""

    def test_confirmed_minus_spent(self):
        snapshot = calculate_balance(
            [payment("60"), payment("40")], [Decimal("37.5001")]
        )
        assert snapshot.confirmed_usd == Decimal("100")
        assert snapshot.spent_usd == Decimal("37.5001")
        assert snapshot.balance == Decimal("62.4999")

    def test_never_negative(self):
        snapshot = calculate_balance([payment("10")], [Decimal("25.0001")])
        assert snapshot.balance == Decimal("0")

    def test_empty_history(self):
        assert calculate_balance([], []).balance == Decimal("0")

    @pytest.mark.parametrize("status", ["Pending", "FAILED", "waiting", "", None])
    def test_unconfirmed_statuses_contribute_nothing(self, status):
        snapshot = calculate_balance([payment("50", status=status)], [])
        assert snapshot.confirmed_usd == Decimal("0")

    @pytest.mark.parametrize("status", ["finished", "Confirmed", "COMPLETED", "paid"])
    def test_confirmed_statuses_case_insensitive(self, status):
        snapshot = calculate_balance([payment("50", status=status)], [])
        assert snapshot.confirmed_usd == Decimal("50")

    def test_null_amount_counts_as_zero(self):
        snapshot = calculate_balance([payment(None), payment("5")], [])
        assert snapshot.confirmed_usd == Decimal("5")

    def test_additivity(self):
        payments = [payment("20")]
        spends = [Decimal("3")]
        before = calculate_balance(payments, spends).balance

        after_payment = calculate_balance(payments + [payment("7.5")], spends).balance
        after_spend = calculate_balance(payments, spends + [Decimal("2.25")]).balance

        assert after_payment - before == Decimal("7.5")
        assert before - after_spend == Decimal("2.25")

    def test_spend_records_and_amounts_mix(self):
        class Spend:
            usd_spent = Decimal("1.5")

        snapshot = calculate_balance([payment("10")], [Spend(), Decimal("2"), None])
        assert snapshot.spent_usd == Decimal("3.5")

    def test_ensure_affordable_reports_balance_and_required(self):
        with pytest.raises(InsufficientBalanceError) as exc_info:
            ensure_affordable(Decimal("10"), Decimal("50.0001"))

        assert exc_info.value.balance == Decimal("10")
        assert exc_info.value.required == Decimal("50.0001")
        assert exc_info.value.details == {"balance": "10", "required": "50.0001"}

    def test_ensure_affordable_exact_amount(self):
        ensure_affordable(Decimal("25.0001"), Decimal("25.0001"))


class TestIssuanceQuote:
    """발급 비용 계산 테스트"""

    def test_floor_never_rounds_up(self):
        assert floor_credits(Decimal("9.999"), Decimal("0.01")) == 999

    def test_product_usd_batch(self):
        quote = quote_issuance(
            TokenType.PRODUCT, 5, FundingMode.USD, usd=10, rate=Decimal("0.01")
        )
        assert quote.credits_per_token == 1000
        assert quote.total_credits == 5000
        assert quote.total_cost == Decimal("50.0001")
        assert quote.fee_usd == FIXED_FEE_USD

    def test_product_credits_mode(self):
        quote = quote_issuance(
            TokenType.PRODUCT, 2, FundingMode.CREDITS, credits=300, rate=Decimal("0.02")
        )
        assert quote.credits_per_token == 300
        assert quote.usd_per_token == Decimal("6.00")
        assert quote.total_cost == Decimal("12.0001")

    def test_master_single_token(self):
        quote = quote_issuance(TokenType.MASTER, 1, FundingMode.CREDITS, usd=25)
        assert quote.credits_per_token == 25
        assert quote.mode == FundingMode.USD
        assert quote.total_cost == Decimal("25.0001")
        assert quote.value_label == "USD"

    @pytest.mark.parametrize("quantity", [1, 7, 1000])
    def test_fee_charged_once_per_batch(self, quantity):
        quote = quote_issuance(
            TokenType.PRODUCT, quantity, FundingMode.USD, usd=2, rate=Decimal("0.5")
        )
        assert quote.total_cost == Decimal("2") * quantity + FIXED_FEE_USD

    @pytest.mark.parametrize("quantity", [0, 1001, -3, 2.5, True, "5"])
    def test_quantity_out_of_range(self, quantity):
        with pytest.raises(ValidationError):
            quote_issuance(
                TokenType.PRODUCT, quantity, FundingMode.USD, usd=10, rate=Decimal("0.01")
            )

    def test_inputs_below_one_rejected(self):
        with pytest.raises(ValidationError):
            quote_issuance(TokenType.MASTER, 1, usd=Decimal("0.99"))
        with pytest.raises(ValidationError):
            quote_issuance(
                TokenType.PRODUCT, 1, FundingMode.CREDITS, credits=0, rate=Decimal("0.01")
            )

    def test_fractional_credits_rejected(self):
        with pytest.raises(ValidationError):
            quote_issuance(
                TokenType.PRODUCT, 1, FundingMode.CREDITS, credits="2.5", rate=Decimal("0.01")
            )

    def test_usd_below_rate_yields_no_credits(self):
        with pytest.raises(AmountTooSmallError):
            quote_issuance(TokenType.PRODUCT, 1, FundingMode.USD, usd=1, rate=Decimal("2"))

    def test_master_fractional_usd_rejected(self):
        # 마스터 크레딧은 토큰당 USD와 같아야 하므로 내림으로 잃는 금액이 없어야 함
        with pytest.raises(ValidationError):
            quote_issuance(TokenType.MASTER, 4, usd="2.5")

    @pytest.mark.parametrize("usd", ["10.000000001", "1.123456789"])
    def test_usd_beyond_stored_precision_rejected(self, usd):
        with pytest.raises(ValidationError):
            quote_issuance(
                TokenType.PRODUCT, 1, FundingMode.USD, usd=usd, rate=Decimal("0.01")
            )

    def test_usd_at_stored_precision_accepted(self):
        quote = quote_issuance(
            TokenType.PRODUCT, 3, FundingMode.USD, usd="10.12345678", rate=Decimal("0.01")
        )
        assert quote.total_cost == Decimal("30.37047034")
        assert quote.total_cost == quote.total_cost.quantize(Decimal("0.00000001"))

    def test_admin_adjustment_is_not_issuable(self):
        with pytest.raises(ValidationError):
            quote_issuance(TokenType.ADMIN_ADJUSTMENT, 1, usd=5)


class TestRefillQuote:
    """리필 비용 계산 테스트"""

    def test_product_usd_mode_deducts_fee_before_conversion(self):
        quote = quote_refill(TokenType.PRODUCT, FundingMode.USD, 10, rate=Decimal("0.01"))
        assert quote.credits_added == 999
        assert quote.usd_spent == Decimal("10")

    def test_product_credits_mode_adds_fee_on_top(self):
        quote = quote_refill(
            TokenType.PRODUCT, FundingMode.CREDITS, 500, rate=Decimal("0.01")
        )
        assert quote.credits_added == 500
        assert quote.usd_spent == Decimal("5.0001")

    def test_product_credits_mode_floors_amount(self):
        quote = quote_refill(
            TokenType.PRODUCT, FundingMode.CREDITS, "12.9", rate=Decimal("1")
        )
        assert quote.credits_added == 12

    def test_master_usd_mode_one_to_one_after_fee(self):
        quote = quote_refill(TokenType.MASTER, FundingMode.USD, 10)
        assert quote.credits_added == 9
        assert quote.usd_spent == Decimal("10")

    def test_master_credits_mode_rejected(self):
        with pytest.raises(UnsupportedModeError):
            quote_refill(TokenType.MASTER, FundingMode.CREDITS, 10)

    def test_master_fractional_usd_rejected(self):
        with pytest.raises(ValidationError):
            quote_refill(TokenType.MASTER, FundingMode.USD, "10.5")

    def test_fee_consumes_whole_amount(self):
        with pytest.raises(AmountTooSmallError):
            quote_refill(TokenType.PRODUCT, FundingMode.USD, "0.0001", rate=Decimal("0.01"))

    def test_amount_flooring_to_zero_credits(self):
        with pytest.raises(AmountTooSmallError):
            quote_refill(TokenType.PRODUCT, FundingMode.USD, "0.005", rate=Decimal("0.01"))
        with pytest.raises(AmountTooSmallError):
            quote_refill(TokenType.PRODUCT, FundingMode.CREDITS, "0.5", rate=Decimal("0.01"))

    def test_amount_beyond_stored_precision_rejected(self):
        with pytest.raises(ValidationError):
            quote_refill(
                TokenType.PRODUCT, FundingMode.USD, "10.000000001", rate=Decimal("0.01")
            )
        with pytest.raises(ValidationError):
            quote_refill(TokenType.PRODUCT, FundingMode.USD, "NaN", rate=Decimal("0.01"))

    def test_trailing_zeros_are_not_extra_precision(self):
        quote = quote_refill(
            TokenType.PRODUCT, FundingMode.USD, "10.0000000000", rate=Decimal("0.01")
        )
        assert quote.credits_added == 999

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, amount):
        with pytest.raises(ValidationError):
            quote_refill(TokenType.PRODUCT, FundingMode.USD, amount, rate=Decimal("0.01"))

    def test_credits_added_is_always_positive(self):
        for amount in ["1", "2.5", "10", "99.99"]:
            quote = quote_refill(
                TokenType.PRODUCT, FundingMode.USD, amount, rate=Decimal("0.01")
            )
            assert quote.credits_added >= 1
