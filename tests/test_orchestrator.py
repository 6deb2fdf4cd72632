"""
Tests for the LedgerService flows and the audit logger.

Storage is in-memory or mocked; no API calls are made.
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from cashbook.audit import AuditLogger
from cashbook.config import AppSettings
from cashbook.ledger import ConsistencyViolation, LedgerRegistry, TransactionValidationError
from cashbook.models.audit import AuditEventBuilder, AuditEventType
from cashbook.models.ledger import EntryDirection, LedgerEntry, LedgerKind, LedgerState
from cashbook.models.transaction import FeeOption
from cashbook.orchestrator import LedgerService, create_app_components
from cashbook.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    StorageError,
)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(persist_after_every_change=True)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def service(storage, audit_storage, settings) -> LedgerService:
    return LedgerService(
        registry=LedgerRegistry(),
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
    )


def _event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class TestRecordTransaction:
    """Tests for the quote → validate → post → persist flow."""

    @pytest.mark.asyncio
    async def test_records_and_persists(self, service, storage, audit_storage):
        receipt = await service.record_transaction("Cash In", "1000", source_of_funds="GCash")

        assert receipt.transaction_number == 1
        assert receipt.transaction_label == "#001"
        assert receipt.quote.customer_pays == Decimal("1015")
        assert receipt.persisted is True
        assert len(receipt.entries) == 2

        stored = await storage.load_state()
        assert len(stored.entries) == 2
        assert stored.next_transaction_number == 2
        assert _event_types(audit_storage) == [
            AuditEventType.TRANSACTION_PROCESSED,
            AuditEventType.STATE_PERSISTED,
        ]

    @pytest.mark.asyncio
    async def test_explicit_customer_pays_is_posted(self, service):
        receipt = await service.record_transaction(
            "Cash In", "1000", customer_pays="1010", source_of_funds="GCash"
        )
        credit = [e for e in receipt.entries if e.is_credit][0]
        assert credit.amount == Decimal("1010")
        assert len(receipt.warnings) == 1

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(self, service, audit_storage):
        await service.record_transaction("Cash In", "100", source_of_funds="GCash")
        correlation_ids = {e.correlation_id for e in audit_storage.events}
        assert len(correlation_ids) == 1
        assert None not in correlation_ids

    @pytest.mark.asyncio
    async def test_validation_failure_posts_nothing(self, service, storage, audit_storage):
        with pytest.raises(TransactionValidationError) as exc_info:
            await service.record_transaction("Misc Payment", "50", source_of_funds="Cash")

        assert exc_info.value.issues[0]["field"] == "notes"
        assert service.registry.entry_count() == 0
        assert service.registry.peek_next_transaction_number() == 1
        assert await storage.load_state() is None
        assert _event_types(audit_storage) == [AuditEventType.TRANSACTION_REJECTED]

    @pytest.mark.asyncio
    async def test_negative_amount_is_rejected_and_audited(self, service, audit_storage):
        with pytest.raises(TransactionValidationError):
            await service.record_transaction("Cash In", "-1", source_of_funds="GCash")
        assert _event_types(audit_storage) == [AuditEventType.TRANSACTION_REJECTED]

    @pytest.mark.asyncio
    async def test_free_cash_in_with_reason(self, service):
        receipt = await service.record_transaction(
            "Cash In", "1000", source_of_funds="GCash",
            fee_option=FeeOption.FREE, notes="staff",
        )
        credit = [e for e in receipt.entries if e.is_credit][0]
        assert credit.amount == Decimal("1000")

    @pytest.mark.asyncio
    async def test_process_transaction_returns_number(self, service):
        first = await service.process_transaction("Cash In", "1000", "1015", "GCash")
        second = await service.process_transaction("Cash Out", "500", "510", "PayMaya")
        assert (first, second) == (1, 2)
        assert service.total_balance() == Decimal("25")

    @pytest.mark.asyncio
    async def test_process_transaction_with_free_option(self, service):
        number = await service.process_transaction(
            "Cash Out", "1000", "1000", "GCash", notes="owner's relative", fee_option="free",
        )
        credit = [e for e in service.transaction_details(number) if e.is_credit][0]
        assert credit.amount == Decimal("1000")
        assert service.total_balance() == Decimal("0")

    @pytest.mark.asyncio
    async def test_process_transaction_free_option_needs_reason(self, service):
        with pytest.raises(TransactionValidationError):
            await service.process_transaction(
                "Cash In", "1000", "1000", "GCash", fee_option=FeeOption.FREE,
            )
        assert service.registry.entry_count() == 0

    @pytest.mark.asyncio
    async def test_record_transaction_deduct_option_has_no_warning(self, service):
        receipt = await service.record_transaction(
            "Cash Out", "1000", customer_pays="1000", source_of_funds="GCash",
            fee_option="deduct_from_amount",
        )
        assert receipt.quote.fee_option is FeeOption.DEDUCT_FROM_AMOUNT
        assert receipt.quote.customer_receives == Decimal("985")
        assert receipt.warnings == []

    @pytest.mark.asyncio
    async def test_persist_disabled(self, storage, audit_storage):
        service = LedgerService(
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            settings=AppSettings(persist_after_every_change=False),
        )
        receipt = await service.record_transaction("Cash In", "100", source_of_funds="GCash")
        assert receipt.persisted is False
        assert await storage.load_state() is None


class TestPersistFailure:
    """Tests for storage failures."""

    @pytest.mark.asyncio
    async def test_failed_persist_keeps_memory_state(self, audit_storage, settings):
        storage = MagicMock()
        storage.persist_state = AsyncMock(side_effect=StorageError("sheet unavailable"))
        service = LedgerService(
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
        )

        receipt = await service.record_transaction("Cash In", "1000", source_of_funds="GCash")

        assert receipt.persisted is False
        assert service.registry.entry_count() == 2
        failed = [e for e in audit_storage.events if e.event_type == AuditEventType.PERSIST_FAILED]
        assert failed[0].error_message == "sheet unavailable"

    @pytest.mark.asyncio
    async def test_retry_persist_succeeds(self, audit_storage, settings):
        storage = MagicMock()
        storage.persist_state = AsyncMock(side_effect=[StorageError("timeout"), True])
        service = LedgerService(
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
        )
        await service.record_transaction("Cash In", "1000", source_of_funds="GCash")

        assert await service.persist() is True
        state = storage.persist_state.call_args.args[0]
        assert len(state.entries) == 2

    @pytest.mark.asyncio
    async def test_no_storage_configured(self, settings):
        service = LedgerService(settings=settings)
        assert await service.persist() is False
        assert await service.load() is False


class TestDeleteAndOrdering:
    """Tests for delete, ordering and reset commands."""

    @pytest.mark.asyncio
    async def test_delete_transaction(self, service, storage, audit_storage):
        await service.process_transaction("Cash In", "1000", "1015", "GCash")
        number = await service.process_transaction("Cash Out", "500", "510", "PayMaya")

        assert await service.delete_transaction(number) is True

        assert service.transaction_details(number) == []
        assert service.get_ledger(LedgerKind.PAYMAYA).balance == Decimal("0")
        stored = await storage.load_state()
        assert {e.transaction_number for e in stored.entries} == {1}
        assert AuditEventType.TRANSACTION_DELETED in _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_delete_missing(self, service, storage, audit_storage):
        assert await service.delete_transaction(99) is False
        assert _event_types(audit_storage) == [AuditEventType.DELETE_NOTHING_FOUND]
        assert storage.persist_count == 0

    @pytest.mark.asyncio
    async def test_set_manual_order(self, service, storage):
        await service.process_transaction("Cash In", "100", "105", "GCash")
        await service.process_transaction("Cash In", "200", "210", "GCash")
        cash = service.get_ledger("cash").entries

        stored = await service.set_manual_order(
            LedgerKind.CASH, [cash[1].entry_id, cash[0].entry_id]
        )

        assert stored == [cash[1].entry_id, cash[0].entry_id]
        assert [e.transaction_number for e in service.get_ledger(LedgerKind.CASH).entries] == [2, 1]
        persisted = await storage.load_state()
        assert persisted.manual_orders[LedgerKind.CASH] == stored

    @pytest.mark.asyncio
    async def test_set_all_credits_order(self, service):
        await service.process_transaction("Cash In", "100", "105", "GCash")
        await service.process_transaction("Cash Out", "200", "210", "PayMaya")
        credits = service.all_credits_ordered()

        await service.set_all_credits_order([credits[1].entry_id])

        assert [e.entry_id for e in service.all_credits_ordered()] == [
            credits[1].entry_id, credits[0].entry_id,
        ]

    @pytest.mark.asyncio
    async def test_reset(self, service, audit_storage):
        await service.process_transaction("Cash In", "100", "105", "GCash")
        await service.reset()

        assert service.total_balance() == Decimal("0")
        assert await service.process_transaction("Cash In", "100", "105", "GCash") == 1
        reset_event = [e for e in audit_storage.events if e.event_type == AuditEventType.LEDGERS_RESET][0]
        assert reset_event.details["entry_count"] == 2


class TestLoad:
    """Tests for restoring persisted state."""

    @pytest.mark.asyncio
    async def test_load_restores_ledgers(self, storage, audit_storage, settings):
        first = LedgerService(storage=storage, audit_logger=AuditLogger(), settings=settings)
        await first.process_transaction("Cash In", "1000", "1015", "GCash")

        second = LedgerService(
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
        )
        assert await second.load() is True

        assert second.get_ledger(LedgerKind.GCASH).balance == Decimal("-1000")
        assert await second.process_transaction("Cash In", "10", "15", "GCash") == 2
        assert _event_types(audit_storage)[0] == AuditEventType.STATE_LOADED

    @pytest.mark.asyncio
    async def test_corrupt_state_is_audited_and_raised(self, audit_storage, settings):
        entry = LedgerEntry(
            transaction_number=1,
            transaction_type="Cash In",
            direction=EntryDirection.CREDIT,
            amount=Decimal("5"),
            ledger=LedgerKind.CASH,
        )
        storage = InMemoryLedgerStorage(LedgerState(entries=[entry, entry]))
        service = LedgerService(
            storage=storage,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
        )

        with pytest.raises(ConsistencyViolation):
            await service.load()
        assert _event_types(audit_storage) == [AuditEventType.CONSISTENCY_VIOLATION]


class TestQueries:
    """Tests for the query surface."""

    @pytest.mark.asyncio
    async def test_summary_and_report(self, service):
        await service.process_transaction("Cash In", "1000", "1015", "GCash")
        summary = service.summary()
        assert summary.total_balance == Decimal("15")
        assert "₱15.00" in service.end_of_day_report()

    def test_quote_fee(self, service):
        quote = service.quote_fee("Skyro Payment", "300")
        assert quote.customer_pays == Decimal("315")

    def test_preview_does_not_post(self, service):
        postings, result = service.preview_transaction("Cash Out", "1000", "1015", "GCash")
        assert [p.ledger for p in postings] == [LedgerKind.GCASH, LedgerKind.CASH]
        assert result.is_valid
        assert service.registry.entry_count() == 0

    def test_get_all_ledgers(self, service):
        assert set(service.get_all_ledgers()) == set(LedgerKind)


class TestAuditLogger:
    """Tests for local + storage audit logging."""

    @pytest.mark.asyncio
    async def test_local_only(self):
        assert await AuditLogger().log(AuditEventBuilder.ledgers_reset(0)) is True

    @pytest.mark.asyncio
    async def test_storage_exception_is_not_raised(self):
        storage = MagicMock()
        storage.append_event = AsyncMock(side_effect=RuntimeError("down"))
        logger = AuditLogger(storage)
        assert await logger.log(AuditEventBuilder.ledgers_reset(0)) is False


class TestAppComponents:
    """Tests for the factory."""

    def test_without_storage(self):
        service, sheets_client = create_app_components(use_storage=False)
        assert isinstance(service, LedgerService)
        assert sheets_client is None
