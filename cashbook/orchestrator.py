"""
Main Orchestrator for Cashbook

This module ties together all the components and defines the
end-to-end flows for:
1. Recording a transaction (quote → validate → post → audit → persist)
2. Deleting a transaction (reverse every ledger → audit → persist)
3. Display ordering, reset, load and persist
4. Queries (ledgers, balances, end-of-day summary)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is posted until validation passes
- Persistence never runs while the registry lock is held
- Every change is audited

CRITICAL: A failed persist does NOT roll back the ledgers. In-memory state
stays authoritative; persist() reports False and the caller may retry.
"""

import asyncio
from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from cashbook.audit import AuditLogger, create_correlation_id
from cashbook.config import AppSettings, get_settings
from cashbook.fees import FeeCalculator
from cashbook.ledger import (
    ConsistencyViolation,
    LedgerRegistry,
    TransactionValidationError,
)
from cashbook.models.ledger import LedgerEntry, LedgerKind, LedgerSnapshot
from cashbook.models.transaction import (
    FeeOption,
    FeeQuote,
    LedgerSummary,
    TransactionReceipt,
    TransactionType,
    ValidationResult,
)
from cashbook.processing import Posting, TransactionProcessor
from cashbook.queries import LedgerQueryExecutor
from cashbook.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from cashbook.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class LedgerService:
    """
    Command and query surface for the counter.

    Flow for recording a transaction:
    1. Quote → FeeCalculator derives fee and customer-pays
    2. Validate → Two-stage validation (errors block, warnings pass through)
    3. Post → TransactionProcessor numbers and posts under the registry lock
    4. Audit → One event per transaction
    5. Persist → Exported state written to storage, lock already released
    """

    def __init__(
        self,
        registry: Optional[LedgerRegistry] = None,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().app
        self._registry = registry or LedgerRegistry()
        self._processor = TransactionProcessor(self._registry)
        self._validator = validator or TransactionValidator(self._settings)
        self._queries = LedgerQueryExecutor(self._registry)
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        # Persists are serialized so an older export never overwrites a newer one
        self._persist_lock = asyncio.Lock()

    @property
    def registry(self) -> LedgerRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def load(self) -> bool:
        """
        Replace in-memory state with the stored one.

        Returns False if storage is empty or not configured.

        Raises:
            StorageError: storage could not be read
            ConsistencyViolation: stored state is corrupt
        """
        if self._storage is None:
            return False

        state = await self._storage.load_state()
        if state is None:
            return False

        try:
            self._registry.load_state(state)
        except ConsistencyViolation as e:
            await self._audit_logger.log_consistency_violation(
                ledger="registry",
                error_message=str(e),
            )
            raise

        await self._audit_logger.log_state_loaded(
            entry_count=len(state.entries),
            next_transaction_number=self._registry.peek_next_transaction_number(),
        )
        return True

    async def persist(self, correlation_id: Optional[UUID] = None) -> bool:
        """
        Write the current state to storage.

        Returns True on success, False if storage failed or isn't configured.
        """
        if self._storage is None:
            return False

        async with self._persist_lock:
            # Export holds the registry lock only for the copy
            state = self._registry.export_state()
            try:
                saved = await self._storage.persist_state(state)
            except StorageError as e:
                await self._audit_logger.log_persist_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                return False

        if saved:
            await self._audit_logger.log_state_persisted(
                entry_count=len(state.entries),
                correlation_id=correlation_id,
            )
        return saved

    async def _persist_if_enabled(self, correlation_id: UUID) -> bool:
        if not self._settings.persist_after_every_change:
            return False
        return await self.persist(correlation_id)

    async def verify(self) -> None:
        """Check every ledger's balance invariant; audit and re-raise on failure."""
        try:
            self._registry.verify()
        except ConsistencyViolation as e:
            await self._audit_logger.log_consistency_violation(
                ledger="registry",
                error_message=str(e),
            )
            raise

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def record_transaction(
        self,
        transaction_type: Union[str, TransactionType],
        amount,
        customer_pays=None,
        source_of_funds: str = "",
        paid_with: Optional[str] = None,
        is_paid_with_checked: bool = False,
        notes: str = "",
        fee_option: Optional[Union[FeeOption, str]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> TransactionReceipt:
        """
        Quote, validate, post and persist one transaction.

        If customer_pays is omitted, the quoted amount is used.

        Raises:
            TransactionValidationError: nothing was posted
        """
        correlation_id = correlation_id or create_correlation_id()
        label = str(getattr(transaction_type, "value", transaction_type))

        try:
            quote = FeeCalculator.quote(transaction_type, amount, fee_option)
            request = self._processor.build_request(
                quote.transaction_type,
                amount,
                quote.customer_pays if customer_pays is None else customer_pays,
                source_of_funds,
                paid_with,
                is_paid_with_checked,
                notes,
            )
        except TransactionValidationError as e:
            await self._audit_logger.log_transaction_rejected(
                transaction_type=label,
                issues=e.issues or [{"message": str(e)}],
                correlation_id=correlation_id,
            )
            raise

        result = self._validator.validate(request, quote)
        if not result.is_valid:
            issues = [issue.model_dump() for issue in result.issues if issue.severity == "error"]
            await self._audit_logger.log_transaction_rejected(
                transaction_type=label,
                issues=issues,
                correlation_id=correlation_id,
            )
            raise TransactionValidationError(
                self._validator.get_user_friendly_summary(result),
                issues=issues,
            )

        number, entries = self._processor.process(request)

        await self._audit_logger.log_transaction_processed(
            transaction_number=number,
            transaction_type=request.transaction_type.value,
            entries=entries,
            correlation_id=correlation_id,
        )
        persisted = await self._persist_if_enabled(correlation_id)

        return TransactionReceipt(
            transaction_number=number,
            quote=quote,
            entries=entries,
            persisted=persisted,
            warnings=result.warnings,
        )

    async def process_transaction(
        self,
        transaction_type: Union[str, TransactionType],
        amount,
        customer_pays,
        source_of_funds: str = "",
        paid_with: Optional[str] = None,
        is_paid_with_checked: bool = False,
        notes: str = "",
        fee_option: Optional[Union[FeeOption, str]] = None,
    ) -> int:
        """Same as record_transaction(), returning only the transaction number."""
        receipt = await self.record_transaction(
            transaction_type,
            amount,
            customer_pays=customer_pays,
            source_of_funds=source_of_funds,
            paid_with=paid_with,
            is_paid_with_checked=is_paid_with_checked,
            notes=notes,
            fee_option=fee_option,
        )
        return receipt.transaction_number

    async def delete_transaction(
        self,
        transaction_number: int,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Remove a whole transaction from every ledger.

        Returns False if no entry carried that number.
        """
        correlation_id = correlation_id or create_correlation_id()
        removed = self._registry.delete_transaction_entries(transaction_number)

        await self._audit_logger.log_transaction_deleted(
            transaction_number=transaction_number,
            entries=removed,
            correlation_id=correlation_id,
        )
        if removed:
            await self._persist_if_enabled(correlation_id)
        return bool(removed)

    async def set_manual_order(
        self,
        kind: LedgerKind,
        entry_ids: Iterable[UUID],
    ) -> list[UUID]:
        """Replace one ledger's display order. Returns the override stored."""
        correlation_id = create_correlation_id()
        stored = self._registry.set_manual_order(kind, entry_ids)
        await self._audit_logger.log_ledger_order_changed(
            ledger=kind.value,
            entry_count=len(stored),
            correlation_id=correlation_id,
        )
        await self._persist_if_enabled(correlation_id)
        return stored

    async def set_all_credits_order(self, entry_ids: Iterable[UUID]) -> list[UUID]:
        """Replace the all-credits display order. Returns the override stored."""
        correlation_id = create_correlation_id()
        stored = self._registry.set_all_credits_order(entry_ids)
        await self._audit_logger.log_all_credits_order_changed(
            entry_count=len(stored),
            correlation_id=correlation_id,
        )
        await self._persist_if_enabled(correlation_id)
        return stored

    async def reset(self) -> None:
        """Clear every ledger and restart numbering at #001."""
        correlation_id = create_correlation_id()
        with self._registry.exclusive():
            discarded = self._registry.entry_count()
            self._registry.reset()
        await self._audit_logger.log_ledgers_reset(
            entry_count=discarded,
            correlation_id=correlation_id,
        )
        await self._persist_if_enabled(correlation_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_ledger(self, kind: Union[LedgerKind, str]) -> LedgerSnapshot:
        return self._registry.get_ledger(LedgerKind.from_name(kind))

    def get_all_ledgers(self) -> dict[LedgerKind, LedgerSnapshot]:
        return self._registry.get_all_ledgers()

    def total_balance(self) -> Decimal:
        return self._registry.total_balance()

    def all_credits_ordered(self) -> list[LedgerEntry]:
        return self._registry.all_credits_ordered()

    def transaction_details(self, transaction_number: int) -> list[LedgerEntry]:
        return self._registry.transaction_details(transaction_number)

    def quote_fee(
        self,
        transaction_type: Union[str, TransactionType],
        amount,
        fee_option: Optional[Union[FeeOption, str]] = None,
    ) -> FeeQuote:
        return FeeCalculator.quote(transaction_type, amount, fee_option)

    def preview_transaction(
        self,
        transaction_type: Union[str, TransactionType],
        amount,
        customer_pays,
        source_of_funds: str = "",
        paid_with: Optional[str] = None,
        is_paid_with_checked: bool = False,
        notes: str = "",
        fee_option: Optional[Union[FeeOption, str]] = None,
    ) -> tuple[list[Posting], ValidationResult]:
        """
        Where the money would go and what validation says, without posting.

        Raises:
            TransactionValidationError: the input can't even be parsed
        """
        request = self._processor.build_request(
            transaction_type,
            amount,
            customer_pays,
            source_of_funds,
            paid_with,
            is_paid_with_checked,
            notes,
        )
        quote = FeeCalculator.quote(request.transaction_type, request.amount, fee_option)
        return self._processor.plan_postings(request), self._validator.validate(request, quote)

    def summary(self) -> LedgerSummary:
        return self._queries.summary()

    def end_of_day_report(self) -> str:
        return self._queries.format_report(
            self._queries.summary(),
            currency_symbol=self._settings.currency_symbol,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (ledger_service, sheets_client)
    """
    sheets_client = None
    ledger_storage: LedgerStorageInterface = InMemoryLedgerStorage()
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            ledger_storage = InMemoryLedgerStorage()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        audit_logger = AuditLogger()  # Local-only logging

    service = LedgerService(
        registry=LedgerRegistry(),
        storage=ledger_storage,
        audit_logger=audit_logger,
    )

    return service, sheets_client
