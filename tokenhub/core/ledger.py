"""
잔액/수수료/크레딧 환산 규칙

대시보드, 관리자 화면, 토큰 발급/리필 API가 모두 같은 결과를 내야 하는 계산을
한 곳에 모아 둔 모듈입니다. DB나 HTTP에 의존하지 않는 순수 함수만 둡니다.

- 수수료: 발급 요청 1회, 리필 요청 1회마다 고정 0.0001 USD
- 크레딧: USD에서 환산할 때는 항상 내림(floor)
- 잔액: 확정된 결제 합계 - (발급 + 리필) 지출 합계, 0 미만이면 0
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Optional, Union

from tokenhub.core.exceptions import (
    AmountTooSmallError,
    InsufficientBalanceError,
    UnsupportedModeError,
    ValidationError,
)

FIXED_FEE_USD = Decimal("0.0001")

# 마스터 토큰: 1 USD = 1 credit
MASTER_CREDIT_RATE_USD = Decimal("1")

CONFIRMED_PAYMENT_STATUSES = frozenset({"finished", "confirmed", "completed", "paid"})
PENDING_PAYMENT_STATUSES = frozenset({"pending"})
FAILED_PAYMENT_STATUSES = frozenset({"failed", "cancelled", "expired"})

MIN_TOKENS_PER_BATCH = 1
MAX_TOKENS_PER_BATCH = 1000
MIN_INPUT_AMOUNT = Decimal("1")

USD_QUANTUM = Decimal("0.0001")

# 금액 컬럼 Numeric(20, 8)의 소수 자릿수
STORED_DECIMAL_PLACES = 8

Number = Union[Decimal, int, float, str]


class TokenType(str, Enum):
    PRODUCT = "product"
    MASTER = "master"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class FundingMode(str, Enum):
    USD = "usd"
    CREDITS = "credits"


def to_decimal(value: Optional[Number]) -> Decimal:
    """None은 0으로, float은 문자열을 거쳐 Decimal로 변환"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid numeric value: {value!r}")


def quantize_usd(value: Number) -> Decimal:
    return to_decimal(value).quantize(USD_QUANTUM)


def floor_credits(usd: Number, rate: Number) -> int:
    """USD 금액을 크레딧으로 환산 (항상 내림)"""
    rate_dec = to_decimal(rate)
    if rate_dec <= 0:
        raise ValidationError(
            "Credit rate must be positive", details={"rate": str(rate_dec)}
        )
    return int((to_decimal(usd) / rate_dec).to_integral_value(rounding=ROUND_FLOOR))


def is_confirmed_status(status: Optional[str]) -> bool:
    return (status or "").strip().lower() in CONFIRMED_PAYMENT_STATUSES


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceSnapshot:
    confirmed_usd: Decimal
    spent_usd: Decimal
    balance: Decimal


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def calculate_balance(
    payments: Iterable[Any], spends: Iterable[Any]
) -> BalanceSnapshot:
    """결제 내역과 지출 내역으로부터 사용 가능한 잔액을 계산

    Args:
        payments: ``status``와 ``amount_usd``를 가진 결제 레코드 (객체 또는 dict)
        spends: ``usd_spent``를 가진 레코드 또는 금액 자체

    Returns:
        BalanceSnapshot: 확정 결제 합계, 지출 합계, 잔액 (0 이상)
    """
    confirmed = sum(
        (
            to_decimal(_field(p, "amount_usd"))
            for p in payments
            if is_confirmed_status(_field(p, "status"))
        ),
        Decimal("0"),
    )

    spent = Decimal("0")
    for spend in spends:
        if isinstance(spend, (Decimal, int, float, str)) or spend is None:
            spent += to_decimal(spend)
        else:
            spent += to_decimal(_field(spend, "usd_spent"))

    balance = max(Decimal("0"), confirmed - spent)
    return BalanceSnapshot(confirmed_usd=confirmed, spent_usd=spent, balance=balance)


def ensure_affordable(balance: Number, required: Number) -> None:
    balance_dec = to_decimal(balance)
    required_dec = to_decimal(required)
    if required_dec > balance_dec:
        raise InsufficientBalanceError(
            f"Insufficient balance. Required: ${required_dec:.4f}, Available: ${balance_dec:.4f}",
            balance=balance_dec,
            required=required_dec,
        )


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IssuanceQuote:
    token_type: TokenType
    mode: FundingMode
    quantity: int
    credits_per_token: int
    usd_per_token: Decimal
    total_credits: int
    fee_usd: Decimal
    total_cost: Decimal
    value_label: str


def validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(
            "Token count must be an integer", details={"token_count": quantity}
        )
    if not MIN_TOKENS_PER_BATCH <= quantity <= MAX_TOKENS_PER_BATCH:
        raise ValidationError(
            f"Token count must be between {MIN_TOKENS_PER_BATCH} and {MAX_TOKENS_PER_BATCH}",
            details={"token_count": quantity},
        )
    return quantity


def require_storable_amount(name: str, value: Number) -> Decimal:
    """저장 시 잘리지 않는 금액인지 확인 (소수 8자리 이하, 유한값)

    견적/잔액 확인에 쓴 값과 DB에 기록되는 값이 항상 같아야 합니다.
    """
    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValidationError(f"{name} must be a finite number", details={name: str(amount)})
    if amount.normalize().as_tuple().exponent < -STORED_DECIMAL_PLACES:
        raise ValidationError(
            f"{name} supports at most {STORED_DECIMAL_PLACES} decimal places",
            details={name: str(amount)},
        )
    return amount


def _require_min_amount(name: str, value: Optional[Number]) -> Decimal:
    if value is None:
        raise ValidationError(f"{name} is required", details={name: None})
    amount = require_storable_amount(name, value)
    if amount < MIN_INPUT_AMOUNT:
        raise ValidationError(
            f"{name} must be at least {MIN_INPUT_AMOUNT}", details={name: str(amount)}
        )
    return amount


def _require_whole_credits(value: Optional[Number]) -> int:
    credits_amount = _require_min_amount("credits", value)
    if credits_amount != credits_amount.to_integral_value():
        raise ValidationError(
            "credits must be a whole number",
            details={"credits": str(credits_amount)},
        )
    return int(credits_amount)


def validate_issuance_inputs(
    token_type: TokenType,
    quantity: int,
    mode: FundingMode = FundingMode.USD,
    usd: Optional[Number] = None,
    credits: Optional[Number] = None,
) -> None:
    """상품/잔액 조회 전에 끝나야 하는 입력값 검증"""
    token_type = TokenType(token_type)
    mode = FundingMode(mode)
    validate_quantity(quantity)

    if token_type == TokenType.ADMIN_ADJUSTMENT:
        raise ValidationError("Admin adjustments cannot be issued as tokens")

    if token_type == TokenType.MASTER:
        # 마스터 크레딧 = 토큰당 USD, 정수 USD만 허용
        usd_amount = _require_min_amount("usd", usd)
        if usd_amount != usd_amount.to_integral_value():
            raise ValidationError(
                "Master tokens accept only whole USD amounts",
                details={"usd": str(usd_amount)},
            )
    elif mode == FundingMode.USD:
        _require_min_amount("usd", usd)
    else:
        _require_whole_credits(credits)


def quote_issuance(
    token_type: TokenType,
    quantity: int,
    mode: FundingMode = FundingMode.USD,
    usd: Optional[Number] = None,
    credits: Optional[Number] = None,
    rate: Optional[Number] = None,
) -> IssuanceQuote:
    """토큰 배치 발급 비용과 토큰당 크레딧 계산

    - product + usd: credits = floor(usd / rate)
    - product + credits: 입력한 정수 크레딧 그대로, 토큰당 비용 = credits * rate
    - master: 항상 USD, 1 USD = 1 credit
    - 총 비용 = 토큰당 비용 * 수량 + 고정 수수료 (수량과 무관하게 1회)
    """
    token_type = TokenType(token_type)
    mode = FundingMode(mode)
    validate_issuance_inputs(token_type, quantity, mode, usd=usd, credits=credits)

    if token_type == TokenType.MASTER:
        # 마스터 토큰은 모드와 무관하게 USD로만 발급
        usd_per_token = to_decimal(usd)
        credits_per_token = floor_credits(usd_per_token, MASTER_CREDIT_RATE_USD)
        mode = FundingMode.USD
        value_label = "USD"
    else:
        if rate is None:
            raise ValidationError("Product rate is required for product tokens")
        rate_dec = to_decimal(rate)
        if mode == FundingMode.USD:
            usd_per_token = to_decimal(usd)
            credits_per_token = floor_credits(usd_per_token, rate_dec)
        else:
            credits_per_token = _require_whole_credits(credits)
            usd_per_token = credits_per_token * rate_dec
        value_label = str(rate_dec)

    if credits_per_token <= 0:
        raise AmountTooSmallError(
            "Amount too small to generate any credits",
            details={"usd_per_token": str(usd_per_token)},
        )

    total_cost = usd_per_token * quantity + FIXED_FEE_USD

    return IssuanceQuote(
        token_type=token_type,
        mode=mode,
        quantity=quantity,
        credits_per_token=credits_per_token,
        usd_per_token=usd_per_token,
        total_credits=credits_per_token * quantity,
        fee_usd=FIXED_FEE_USD,
        total_cost=total_cost,
        value_label=value_label,
    )


# ---------------------------------------------------------------------------
# Refill
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RefillQuote:
    token_type: TokenType
    mode: FundingMode
    amount: Decimal
    credits_added: int
    usd_spent: Decimal
    fee_usd: Decimal


def _available_after_fee(amount: Decimal) -> Decimal:
    available = amount - FIXED_FEE_USD
    if available <= 0:
        raise AmountTooSmallError(
            f"Amount too small. Need at least ${FIXED_FEE_USD:.4f} to cover the fee",
            details={"amount": str(amount), "fee_usd": str(FIXED_FEE_USD)},
        )
    return available


def quote_refill(
    token_type: TokenType,
    mode: FundingMode,
    amount: Number,
    rate: Optional[Number] = None,
) -> RefillQuote:
    """기존 토큰 리필 시 추가 크레딧과 비용 계산

    - product + credits: credits = floor(amount), cost = credits * rate + fee
    - product + usd: credits = floor((amount - fee) / rate), cost = amount
    - master + usd: credits = floor(amount - fee), cost = amount (정수 USD만 허용)
    - master + credits: 지원하지 않음
    """
    token_type = TokenType(token_type)
    mode = FundingMode(mode)
    amount_dec = require_storable_amount("amount", amount)

    if amount_dec <= 0:
        raise ValidationError(
            "Refill amount must be greater than 0", details={"amount": str(amount_dec)}
        )

    if token_type == TokenType.MASTER:
        if mode != FundingMode.USD:
            raise UnsupportedModeError("Master tokens only support USD refill mode")
        if amount_dec != amount_dec.to_integral_value():
            raise ValidationError(
                "Master tokens accept only whole USD amounts",
                details={"amount": str(amount_dec)},
            )
        available = _available_after_fee(amount_dec)
        credits_added = floor_credits(available, MASTER_CREDIT_RATE_USD)
        usd_spent = amount_dec
    elif token_type == TokenType.PRODUCT:
        if rate is None:
            raise ValidationError("Product rate is required for product tokens")
        rate_dec = to_decimal(rate)
        if mode == FundingMode.CREDITS:
            credits_added = int(amount_dec.to_integral_value(rounding=ROUND_FLOOR))
            usd_spent = credits_added * rate_dec + FIXED_FEE_USD
        else:
            available = _available_after_fee(amount_dec)
            credits_added = floor_credits(available, rate_dec)
            usd_spent = amount_dec
    else:
        raise ValidationError(f"Tokens of type {token_type.value} cannot be refilled")

    if credits_added <= 0:
        raise AmountTooSmallError(
            "Amount too small to generate any credits",
            details={"amount": str(amount_dec)},
        )

    return RefillQuote(
        token_type=token_type,
        mode=mode,
        amount=amount_dec,
        credits_added=credits_added,
        usd_spent=usd_spent,
        fee_usd=FIXED_FEE_USD,
    )
