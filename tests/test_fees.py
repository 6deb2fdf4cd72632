"""
Tests for the service fee schedules.
"""

import pytest
from decimal import Decimal

from cashbook.fees import FeeCalculator, to_amount
from cashbook.ledger import TransactionValidationError
from cashbook.models.transaction import FeeOption, TransactionType


CASH_IN = TransactionType.CASH_IN
CASH_OUT = TransactionType.CASH_OUT
MOBILE = TransactionType.MOBILE_LOADING


class TestCashTransferFees:
    """Tests for the Cash In / Cash Out bracket table."""

    @pytest.mark.parametrize("amount, fee", [
        ("0", "0"),
        ("1", "5"),
        ("100", "5"),
        ("100.01", "10"),
        ("500", "10"),
        ("1000", "15"),
        ("1001", "20"),
        ("1500", "20"),
        ("2000", "30"),
        ("2500", "40"),
        ("2501", "50"),
        ("10000", "190"),
        ("20000", "390"),
    ])
    def test_bracket_table(self, amount, fee):
        """Test each bracket boundary."""
        assert FeeCalculator.calculate_fee(CASH_IN, amount) == Decimal(fee)
        assert FeeCalculator.calculate_fee(CASH_OUT, amount) == Decimal(fee)

    @pytest.mark.parametrize("amount, fee", [
        ("20000.01", "400"),
        ("20500", "400"),
        ("20501", "410"),
        ("21000", "410"),
        ("30000", "590"),
    ])
    def test_above_table_adds_ten_per_500(self, amount, fee):
        """Test the open-ended step above 20,000."""
        assert FeeCalculator.calculate_fee(CASH_IN, amount) == Decimal(fee)

    def test_free_option_has_no_fee(self):
        assert FeeCalculator.calculate_fee(CASH_IN, "5000", FeeOption.FREE) == Decimal("0")

    def test_deduct_option_uses_same_table(self):
        fee = FeeCalculator.calculate_fee(CASH_OUT, "1000", FeeOption.DEDUCT_FROM_AMOUNT)
        assert fee == Decimal("15")


class TestMobileLoadingFees:
    """Tests for the Mobile Loading Service schedule."""

    @pytest.mark.parametrize("amount, fee", [
        ("0", "0"),
        ("50", "5"),
        ("99", "5"),
        ("100", "10"),
        ("499", "10"),
        ("500", "20"),
        ("999", "20"),
        ("1000", "30"),
        ("5000", "30"),
    ])
    def test_schedule(self, amount, fee):
        assert FeeCalculator.calculate_fee(MOBILE, amount) == Decimal(fee)

    def test_gap_between_999_and_1000_has_no_fee(self):
        """Test amounts strictly between 999 and 1000 match no tier."""
        assert FeeCalculator.calculate_fee(MOBILE, "999.50") == Decimal("0")

    def test_selected_option_is_ignored(self):
        fee = FeeCalculator.calculate_fee(MOBILE, "100", FeeOption.FREE)
        assert fee == Decimal("10")


class TestFlatAndFreeFees:
    """Tests for the fixed-fee and no-fee types."""

    @pytest.mark.parametrize("transaction_type", [
        TransactionType.SKYRO_PAYMENT,
        TransactionType.HOME_CREDIT_PAYMENT,
    ])
    def test_flat_fee(self, transaction_type):
        assert FeeCalculator.calculate_fee(transaction_type, "1") == Decimal("15")
        assert FeeCalculator.calculate_fee(transaction_type, "99999") == Decimal("15")

    def test_misc_payment_is_free(self):
        assert FeeCalculator.calculate_fee(TransactionType.MISC_PAYMENT, "5000") == Decimal("0")


class TestFeeOptions:
    """Tests for locked and selectable fee options."""

    def test_cash_transfers_allow_every_option(self):
        assert FeeCalculator.allowed_fee_options(CASH_IN) == list(FeeOption)

    def test_forced_options(self):
        assert FeeCalculator.allowed_fee_options(MOBILE) == [FeeOption.ADD_TO_AMOUNT]
        assert FeeCalculator.allowed_fee_options(TransactionType.MISC_PAYMENT) == [FeeOption.FREE]

    def test_effective_option_defaults_to_add(self):
        assert FeeCalculator.effective_fee_option(CASH_OUT) is FeeOption.ADD_TO_AMOUNT

    def test_effective_option_overrides_selection(self):
        effective = FeeCalculator.effective_fee_option(
            TransactionType.MISC_PAYMENT, FeeOption.ADD_TO_AMOUNT
        )
        assert effective is FeeOption.FREE


class TestFeeOptionsAsText:
    """Tests for fee options arriving as plain strings from a form."""

    def test_free_string_waives_the_fee(self):
        assert FeeCalculator.calculate_fee("Cash In", 1000, "free") == Decimal("0")

    def test_free_string_quote_is_consistent(self):
        quote = FeeCalculator.quote("Cash In", 1000, "free")
        assert quote.fee_option is FeeOption.FREE
        assert quote.fee == Decimal("0")
        assert quote.customer_pays == Decimal("1000")

    def test_deduct_string_reduces_what_customer_receives(self):
        quote = FeeCalculator.quote("Cash Out", 1000, "deduct_from_amount")
        assert quote.fee_option is FeeOption.DEDUCT_FROM_AMOUNT
        assert quote.customer_pays == Decimal("1000")
        assert quote.customer_receives == Decimal("985")

    @pytest.mark.parametrize("text", ["add_to_amount", "ADD_TO_AMOUNT", "Add Fee"])
    def test_add_spellings(self, text):
        assert FeeCalculator.effective_fee_option(CASH_IN, text) is FeeOption.ADD_TO_AMOUNT

    def test_label_string(self):
        assert FeeCalculator.effective_fee_option(CASH_OUT, "Deduct Fee") is FeeOption.DEDUCT_FROM_AMOUNT

    def test_unknown_string_raises(self):
        with pytest.raises(TransactionValidationError, match="Unknown fee option"):
            FeeCalculator.quote(CASH_IN, "1000", "half off")

    def test_forced_type_ignores_string(self):
        quote = FeeCalculator.quote(TransactionType.SKYRO_PAYMENT, "500", "free")
        assert quote.fee_option is FeeOption.ADD_TO_AMOUNT
        assert quote.fee == Decimal("15")


class TestQuote:
    """Tests for what the customer pays and receives."""

    def test_add_fee(self):
        quote = FeeCalculator.quote(CASH_IN, "1000", FeeOption.ADD_TO_AMOUNT)
        assert quote.fee == Decimal("15")
        assert quote.customer_pays == Decimal("1015")
        assert quote.customer_receives == Decimal("1000")

    def test_deduct_fee(self):
        quote = FeeCalculator.quote(CASH_OUT, "1000", FeeOption.DEDUCT_FROM_AMOUNT)
        assert quote.customer_pays == Decimal("1000")
        assert quote.customer_receives == Decimal("985")

    def test_free(self):
        quote = FeeCalculator.quote(CASH_IN, "1000", FeeOption.FREE)
        assert quote.fee == Decimal("0")
        assert quote.customer_pays == Decimal("1000")
        assert quote.customer_receives == Decimal("1000")

    def test_quote_reports_effective_option(self):
        quote = FeeCalculator.quote(TransactionType.SKYRO_PAYMENT, "500", FeeOption.FREE)
        assert quote.fee_option is FeeOption.ADD_TO_AMOUNT
        assert quote.customer_pays == Decimal("515")

    def test_zero_amount_quotes_zero(self):
        """Test a blank amount field shows nothing to pay, even for flat fees."""
        quote = FeeCalculator.quote(TransactionType.HOME_CREDIT_PAYMENT, "0")
        assert quote.customer_pays == Decimal("0")
        assert quote.fee == Decimal("0")

    def test_calculate_fee_keeps_flat_fee_at_zero(self):
        """Test the zero-amount rule belongs to quote() only."""
        assert FeeCalculator.calculate_fee(TransactionType.HOME_CREDIT_PAYMENT, "0") == Decimal("15")

    def test_accepts_label_strings(self):
        quote = FeeCalculator.quote("Mobile Loading Service", 100)
        assert quote.transaction_type is MOBILE
        assert quote.customer_pays == Decimal("110")


class TestInputValidation:
    """Tests for rejected input."""

    def test_negative_amount_raises(self):
        with pytest.raises(TransactionValidationError, match="negative"):
            FeeCalculator.calculate_fee(CASH_IN, "-1")

    def test_non_numeric_amount_raises(self):
        with pytest.raises(TransactionValidationError, match="numeric"):
            FeeCalculator.quote(CASH_IN, "abc")

    def test_unknown_type_raises(self):
        with pytest.raises(TransactionValidationError):
            FeeCalculator.calculate_fee("Lottery", "100")

    def test_validation_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            to_amount("nan")

    def test_float_goes_through_str(self):
        assert to_amount(0.1) == Decimal("0.1")
