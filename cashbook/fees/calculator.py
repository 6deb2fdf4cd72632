"""
Service Fee Calculator

Pure functions over (transaction type, base amount, fee option). Nothing
here touches a ledger, so the counter screen can quote a fee live while
the operator is still typing.

Schedules:
- Cash In / Cash Out: tiered brackets by amount, every fee option allowed.
- Mobile Loading Service: small tiered table, always added to the amount.
- Skyro / Home Credit Payment: flat fee, always added.
- Misc Payment: no fee, always free.

CRITICAL: All arithmetic is Decimal. A float amount is converted through
str() so 0.1 stays 0.1.
"""

from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Optional, Union

from cashbook.ledger.errors import TransactionValidationError
from cashbook.models.transaction import FeeOption, FeeQuote, TransactionType


Amount = Union[Decimal, int, float, str]

ZERO = Decimal("0")


# =============================================================================
# FEE SCHEDULES
# =============================================================================

def _build_cash_brackets() -> list[tuple[Decimal, Decimal]]:
    """(upper bound, fee) pairs, ascending. The first bound that holds wins."""
    brackets = [
        (Decimal("100"), Decimal("5")),
        (Decimal("500"), Decimal("10")),
        (Decimal("1000"), Decimal("15")),
    ]
    # 1500 -> 20, 2000 -> 30, then +10 per 500 up to 20000 -> 390
    brackets.append((Decimal("1500"), Decimal("20")))
    for step, bound in enumerate(range(2000, 20001, 500), start=1):
        brackets.append((Decimal(bound), Decimal(20 + 10 * step)))
    return brackets


CASH_BRACKETS = _build_cash_brackets()

CASH_BRACKET_CEILING = Decimal("20000")
CASH_BRACKET_CEILING_FEE = Decimal("390")
CASH_OVERFLOW_STEP = Decimal("500")
CASH_OVERFLOW_FEE_PER_STEP = Decimal("10")

MOBILE_LOADING_BRACKETS = [
    (Decimal("99"), Decimal("5")),
    (Decimal("499"), Decimal("10")),
    (Decimal("999"), Decimal("20")),
]
MOBILE_LOADING_TOP_THRESHOLD = Decimal("1000")
MOBILE_LOADING_TOP_FEE = Decimal("30")

FLAT_PAYMENT_FEE = Decimal("15")


# Types whose fee option is not the operator's choice.
_FORCED_FEE_OPTIONS = {
    TransactionType.MOBILE_LOADING: FeeOption.ADD_TO_AMOUNT,
    TransactionType.SKYRO_PAYMENT: FeeOption.ADD_TO_AMOUNT,
    TransactionType.HOME_CREDIT_PAYMENT: FeeOption.ADD_TO_AMOUNT,
    TransactionType.MISC_PAYMENT: FeeOption.FREE,
}


def to_amount(value: Amount, field: str = "amount") -> Decimal:
    """
    Coerce user input to Decimal.

    Raises TransactionValidationError for non-numeric or negative input.
    """
    if isinstance(value, bool):
        raise TransactionValidationError(f"{field} must be numeric, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise TransactionValidationError(f"{field} must be numeric, got {value!r}")
    if not amount.is_finite():
        raise TransactionValidationError(f"{field} must be a finite number, got {value!r}")
    if amount < 0:
        raise TransactionValidationError(f"{field} cannot be negative, got {amount}")
    return amount


class FeeCalculator:
    """
    Fee policy for every transaction type.

    Stateless; every method is a classmethod so callers never need an
    instance, but one can be injected where a seam is handy.
    """

    @classmethod
    def effective_fee_option(
        cls,
        transaction_type: TransactionType,
        selected: Optional[Union[FeeOption, str]] = None,
    ) -> FeeOption:
        """
        The option that actually applies (forced types ignore the selection).

        Raises:
            TransactionValidationError: the selection is not a known option
        """
        transaction_type = TransactionType.parse(transaction_type)
        forced = _FORCED_FEE_OPTIONS.get(transaction_type)
        if forced is not None:
            return forced
        if not selected:
            return FeeOption.ADD_TO_AMOUNT
        try:
            return FeeOption.parse(selected)
        except ValueError as e:
            raise TransactionValidationError(str(e))

    @classmethod
    def allowed_fee_options(cls, transaction_type: TransactionType) -> list[FeeOption]:
        transaction_type = TransactionType.parse(transaction_type)
        forced = _FORCED_FEE_OPTIONS.get(transaction_type)
        if forced is not None:
            return [forced]
        return list(FeeOption)

    @classmethod
    def calculate_fee(
        cls,
        transaction_type: TransactionType,
        amount: Amount,
        fee_option: Optional[Union[FeeOption, str]] = None,
    ) -> Decimal:
        """
        Service fee for one transaction.

        Skyro and Home Credit always return the flat fee here, even for a
        zero amount. Only quote() zeroes the fee when the base is zero.

        Raises:
            TransactionValidationError: amount is negative / not a number,
                the type is unknown, or the fee option is unknown
        """
        try:
            transaction_type = TransactionType.parse(transaction_type)
        except ValueError as e:
            raise TransactionValidationError(str(e))
        amount = to_amount(amount)
        option = cls.effective_fee_option(transaction_type, fee_option)

        if transaction_type is TransactionType.MISC_PAYMENT:
            return ZERO
        if transaction_type is TransactionType.MOBILE_LOADING:
            return cls._mobile_loading_fee(amount)
        if transaction_type in (
            TransactionType.SKYRO_PAYMENT,
            TransactionType.HOME_CREDIT_PAYMENT,
        ):
            return FLAT_PAYMENT_FEE
        if option is FeeOption.FREE:
            return ZERO
        return cls._cash_transfer_fee(amount)

    @staticmethod
    def _cash_transfer_fee(amount: Decimal) -> Decimal:
        if amount <= 0:
            return ZERO
        for upper_bound, fee in CASH_BRACKETS:
            if amount <= upper_bound:
                return fee
        excess = amount - CASH_BRACKET_CEILING
        steps = (excess / CASH_OVERFLOW_STEP).to_integral_value(rounding=ROUND_CEILING)
        return CASH_BRACKET_CEILING_FEE + steps * CASH_OVERFLOW_FEE_PER_STEP

    @staticmethod
    def _mobile_loading_fee(amount: Decimal) -> Decimal:
        if amount <= 0:
            return ZERO
        for upper_bound, fee in MOBILE_LOADING_BRACKETS:
            if amount <= upper_bound:
                return fee
        if amount >= MOBILE_LOADING_TOP_THRESHOLD:
            return MOBILE_LOADING_TOP_FEE
        # 999 < amount < 1000 matches no tier
        return ZERO

    @classmethod
    def quote(
        cls,
        transaction_type: TransactionType,
        amount: Amount,
        fee_option: Optional[Union[FeeOption, str]] = None,
    ) -> FeeQuote:
        """
        Fee plus what the customer pays and receives.

        A zero base amount quotes everything as zero, including the flat
        fee types. This is the only place that rule applies; calculate_fee()
        still reports the flat fee for a zero amount.
        """
        fee = cls.calculate_fee(transaction_type, amount, fee_option)
        transaction_type = TransactionType.parse(transaction_type)
        base = to_amount(amount)
        option = cls.effective_fee_option(transaction_type, fee_option)

        if base == 0:
            return FeeQuote(
                transaction_type=transaction_type,
                base_amount=base,
                fee_option=option,
                fee=ZERO,
                customer_pays=ZERO,
                customer_receives=ZERO,
            )

        if option is FeeOption.ADD_TO_AMOUNT:
            customer_pays, customer_receives = base + fee, base
        elif option is FeeOption.DEDUCT_FROM_AMOUNT:
            customer_pays, customer_receives = base, base - fee
        else:
            customer_pays, customer_receives = base, base

        return FeeQuote(
            transaction_type=transaction_type,
            base_amount=base,
            fee_option=option,
            fee=fee,
            customer_pays=customer_pays,
            customer_receives=customer_receives,
        )
