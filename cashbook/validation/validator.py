"""
Two-Stage Transaction Validation

DESIGN DECISION: A counter transaction is validated in two distinct stages
before the processor is allowed to post it:

STAGE 1 - SCHEMA VALIDATION:
- Amount present and greater than zero
- A source of funds / payment method was selected
- This catches half-filled forms

STAGE 2 - SEMANTIC VALIDATION:
- Misc Payment must say what it was for
- A waived fee on Cash In / Cash Out must say why
- What the customer pays should match the fee quote
- Unusually large amounts
- Payment methods that will fall back to the Others ledger
- This catches transactions that would post but look wrong at day's end

Stage 2 only runs if stage 1 passed.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; errors block posting, warnings are shown to the operator.
"""

from typing import Optional

from cashbook.config import AppSettings, get_settings
from cashbook.models.ledger import LedgerKind, format_currency
from cashbook.models.transaction import (
    FeeOption,
    FeeQuote,
    TransactionRequest,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from cashbook.processing.processor import RELOADER_SIM


class TransactionValidator:
    """
    Validates a TransactionRequest (and its fee quote) in two stages.

    Stage 1: Schema validation
    Stage 2: Semantic validation
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
    ):
        """
        Initialize validator.

        Args:
            settings: App settings to use. Defaults to the cached settings.
        """
        self._settings = settings or get_settings().app

    def _validate_schema(
        self,
        request: TransactionRequest,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if request.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the amount being sent, loaded or paid",
            ))

        if not request.source_of_funds:
            issues.append(ValidationIssue(
                field="source_of_funds",
                issue_type="missing",
                message=f"{request.transaction_type.value} needs a source of funds",
                severity="error",
                suggested_fix="Select where the money goes to or comes from",
            ))

        # Processing credits Cash here, not Others
        if request.is_paid_with_checked and not request.paid_with:
            issues.append(ValidationIssue(
                field="paid_with",
                issue_type="missing",
                message="'Paid with' is ticked but no payment method was selected",
                severity="warning",
                suggested_fix="The payment will be credited to Cash",
            ))

        # Schema is valid if no errors (warnings are okay)
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        request: TransactionRequest,
        quote: Optional[FeeQuote],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        symbol = self._settings.currency_symbol
        transaction_type = request.transaction_type

        if (
            transaction_type is TransactionType.MISC_PAYMENT
            and self._settings.require_misc_payment_description
            and not request.notes
        ):
            issues.append(ValidationIssue(
                field="notes",
                issue_type="missing",
                message="Misc Payment needs a description",
                severity="error",
                suggested_fix="Describe what the payment was for",
            ))

        if (
            transaction_type.is_cash_transfer
            and quote is not None
            and quote.fee_option is FeeOption.FREE
            and self._settings.require_free_cash_transfer_reason
            and not request.notes
        ):
            issues.append(ValidationIssue(
                field="notes",
                issue_type="missing",
                message=f"Free {transaction_type.value} needs a reason for waiving the fee",
                severity="error",
                suggested_fix="Add a note explaining why no fee was charged",
            ))

        if quote is not None and request.customer_pays != quote.customer_pays:
            issues.append(ValidationIssue(
                field="customer_pays",
                issue_type="inconsistent",
                message=(
                    f"Customer pays {format_currency(request.customer_pays, symbol)} "
                    f"but the fee schedule says {format_currency(quote.customer_pays, symbol)}"
                ),
                severity="warning",
                suggested_fix="Please verify the amount collected",
            ))

        if request.amount > self._settings.large_amount_threshold:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({format_currency(request.amount, symbol)}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        issues.extend(self._check_ledger_names(request))

        # Semantic validation passes if no errors
        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    @staticmethod
    def _check_ledger_names(request: TransactionRequest) -> list[ValidationIssue]:
        """Warn when a payment method will land in Others only by fallback."""
        issues = []

        source = request.source_of_funds
        is_reloader = (
            request.transaction_type is TransactionType.MOBILE_LOADING
            and source.casefold() == RELOADER_SIM.casefold()
        )
        if source and not is_reloader and not LedgerKind.is_known_name(source):
            issues.append(ValidationIssue(
                field="source_of_funds",
                issue_type="unknown_ledger",
                message=f"'{source}' is not a known ledger and will be recorded under Others",
                severity="warning",
                suggested_fix="Pick Cash, GCash, PayMaya or Others if that was a typo",
            ))

        if (
            request.is_paid_with_checked
            and request.paid_with
            and not LedgerKind.is_known_name(request.paid_with)
        ):
            issues.append(ValidationIssue(
                field="paid_with",
                issue_type="unknown_ledger",
                message=(
                    f"'{request.paid_with}' is not a known ledger "
                    "and will be recorded under Others"
                ),
                severity="warning",
            ))

        return issues

    def validate(
        self,
        request: TransactionRequest,
        quote: Optional[FeeQuote] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            request: The request about to be posted
            quote: Fee quote for the same request, if one was computed

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(request)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(request, quote)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a summary of validation results for the counter screen.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ This transaction can't be saved yet:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        lines.append("")
        if result.is_valid:
            lines.append("You can still save, but please double-check.")
        else:
            lines.append("Please fix the issues above before saving.")

        return "\n".join(lines)
