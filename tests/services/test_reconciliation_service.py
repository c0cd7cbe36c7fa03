"""
Tests for bank-feed import, matching and reconciliation snapshots.
"""

from datetime import date
from decimal import Decimal

import pytest

from tenant_ledger.exceptions import (
    AlreadyMatchedError,
    ClosedPeriodError,
    ValidationError,
)
from tenant_ledger.models.enums import AccountType, EntryType, TransactionType
from tenant_ledger.schemas.ledger import EntryCreate, RecordTransactionRequest
from tenant_ledger.schemas.period import ClosePeriodRequest
from tenant_ledger.schemas.reconcile import BankTransactionIn
from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.period_service import PeriodService
from tenant_ledger.services.reconciliation_service import (
    ReconciliationService,
    amounts_match,
)


def deposit(db_session, ledger, reference_id, amount, effective_date=date(2024, 6, 5)):
    """Helper: cash in from the owner, committed."""
    txn = LedgerService(db_session).record_transaction(
        ledger.id,
        RecordTransactionRequest(
            transaction_type=TransactionType.TRANSFER,
            reference_id=reference_id,
            entries=[
                EntryCreate(
                    account_type=AccountType.CASH,
                    entry_type=EntryType.DEBIT,
                    amount=Decimal(amount),
                ),
                EntryCreate(
                    account_type=AccountType.OWNER_EQUITY,
                    entry_type=EntryType.CREDIT,
                    amount=Decimal(amount),
                ),
            ],
            effective_date=effective_date,
        ),
    )
    db_session.commit()
    return txn


def import_bank(db_session, ledger, *records):
    """Helper: import (external_id, amount, date) tuples, return their ids."""
    service = ReconciliationService(db_session)
    service.import_bank_transactions(
        ledger.id,
        [
            BankTransactionIn(
                external_id=external_id,
                amount=Decimal(amount),
                transaction_date=day,
            )
            for external_id, amount, day in records
        ],
    )
    db_session.commit()
    unmatched = service.list_unmatched(ledger.id).bank_transactions
    by_external = {b.external_id: b.id for b in unmatched}
    return [by_external[external_id] for external_id, _, _ in records]


class TestImport:

    def test_duplicates_skipped(self, db_session, ledger):
        service = ReconciliationService(db_session)
        records = [
            BankTransactionIn(
                external_id="bank-1", amount=Decimal("10"), transaction_date=date(2024, 6, 1)
            ),
            BankTransactionIn(
                external_id="bank-2", amount=Decimal("20"), transaction_date=date(2024, 6, 2)
            ),
        ]
        service.import_bank_transactions(ledger.id, records)
        db_session.commit()

        result = service.import_bank_transactions(ledger.id, records)

        assert result.imported == 0
        assert result.skipped_duplicates == 2


class TestManualMatch:

    def test_match_and_unmatch(self, db_session, ledger):
        txn = deposit(db_session, ledger, "dep-1", "150")
        [bank_id] = import_bank(db_session, ledger, ("bank-1", "150", date(2024, 6, 6)))
        service = ReconciliationService(db_session)

        service.match(ledger.id, txn.id, bank_id)
        db_session.commit()
        assert service.list_unmatched(ledger.id).bank_transactions == []

        result = service.unmatch(ledger.id, txn.id)
        db_session.commit()
        assert not result.matched
        assert len(service.list_unmatched(ledger.id).bank_transactions) == 1

    def test_transaction_cannot_be_matched_twice(self, db_session, ledger):
        txn = deposit(db_session, ledger, "dep-1", "150")
        first, second = import_bank(
            db_session, ledger,
            ("bank-1", "150", date(2024, 6, 6)),
            ("bank-2", "150", date(2024, 6, 7)),
        )
        service = ReconciliationService(db_session)
        service.match(ledger.id, txn.id, first)
        db_session.commit()

        with pytest.raises(AlreadyMatchedError):
            service.match(ledger.id, txn.id, second)

    def test_bank_record_cannot_be_matched_twice(self, db_session, ledger):
        txn_a = deposit(db_session, ledger, "dep-a", "150")
        txn_b = deposit(db_session, ledger, "dep-b", "150")
        [bank_id] = import_bank(db_session, ledger, ("bank-1", "150", date(2024, 6, 6)))
        service = ReconciliationService(db_session)
        service.match(ledger.id, txn_a.id, bank_id)
        db_session.commit()

        with pytest.raises(AlreadyMatchedError):
            service.match(ledger.id, txn_b.id, bank_id)

    def test_unmatch_requires_a_match(self, db_session, ledger):
        txn = deposit(db_session, ledger, "dep-1", "150")

        with pytest.raises(ValidationError):
            ReconciliationService(db_session).unmatch(ledger.id, txn.id)

    def test_no_matching_inside_closed_period(self, db_session, ledger):
        txn = deposit(db_session, ledger, "dep-1", "150", effective_date=date(2024, 5, 20))
        [bank_id] = import_bank(db_session, ledger, ("bank-1", "150", date(2024, 5, 21)))
        PeriodService(db_session).close_period(
            ledger.id, ClosePeriodRequest(year=2024, month=5)
        )
        db_session.commit()

        with pytest.raises(ClosedPeriodError):
            ReconciliationService(db_session).match(ledger.id, txn.id, bank_id)


class TestAutoMatch:

    def test_amounts_match_by_magnitude_within_a_cent(self):
        assert amounts_match(Decimal("100.00"), Decimal("-100.01"))
        assert not amounts_match(Decimal("100.00"), Decimal("100.02"))

    def test_unique_amounts_are_paired(self, db_session, ledger):
        txn_a = deposit(db_session, ledger, "dep-a", "100")
        txn_b = deposit(db_session, ledger, "dep-b", "250")
        bank_a, bank_b = import_bank(
            db_session, ledger,
            ("bank-a", "100", date(2024, 6, 6)),
            ("bank-b", "250", date(2024, 6, 7)),
        )

        result = ReconciliationService(db_session).auto_match(ledger.id)
        db_session.commit()

        pairs = {(p.transaction_id, p.bank_transaction_id) for p in result.pairs}
        assert pairs == {(txn_a.id, bank_a), (txn_b.id, bank_b)}

    def test_ambiguous_candidates_left_for_a_human(self, db_session, ledger):
        deposit(db_session, ledger, "dep-a", "100")
        deposit(db_session, ledger, "dep-b", "100")
        [bank_id] = import_bank(db_session, ledger, ("bank-a", "100", date(2024, 6, 6)))

        result = ReconciliationService(db_session).auto_match(ledger.id)

        assert result.matched == 0
        assert result.ambiguous_bank_transaction_ids == [bank_id]

    def test_one_transaction_with_two_bank_candidates_is_ambiguous(self, db_session, ledger):
        deposit(db_session, ledger, "dep-a", "100")
        import_bank(
            db_session, ledger,
            ("bank-a", "100", date(2024, 6, 6)),
            ("bank-b", "100", date(2024, 6, 7)),
        )
        service = ReconciliationService(db_session)

        result = service.auto_match(ledger.id)
        db_session.commit()

        assert result.matched == 0
        assert len(result.ambiguous_bank_transaction_ids) == 2

    def test_repeated_runs_do_not_rematch(self, db_session, ledger):
        deposit(db_session, ledger, "dep-a", "100")
        import_bank(db_session, ledger, ("bank-a", "100", date(2024, 6, 6)))
        service = ReconciliationService(db_session)

        first = service.auto_match(ledger.id)
        db_session.commit()
        second = service.auto_match(ledger.id)

        assert first.matched == 1
        assert second.matched == 0

    def test_manually_matched_transaction_not_reused(self, db_session, ledger):
        txn = deposit(db_session, ledger, "dep-a", "100")
        first, second = import_bank(
            db_session, ledger,
            ("bank-a", "100", date(2024, 6, 6)),
            ("bank-b", "100", date(2024, 6, 7)),
        )
        service = ReconciliationService(db_session)
        service.match(ledger.id, txn.id, first)
        db_session.commit()

        result = service.auto_match(ledger.id)

        assert result.matched == 0
        unmatched = service.list_unmatched(ledger.id).bank_transactions
        assert [b.id for b in unmatched] == [second]


class TestReconciliationSnapshot:

    def test_snapshot_counts_and_verifies(self, db_session, ledger):
        txn = deposit(db_session, ledger, "dep-1", "100")
        matched, _ = import_bank(
            db_session, ledger,
            ("bank-1", "100", date(2024, 6, 6)),
            ("bank-2", "-40", date(2024, 6, 9)),
        )
        service = ReconciliationService(db_session)
        service.match(ledger.id, txn.id, matched)
        db_session.commit()

        snapshot = service.create_snapshot(ledger.id, as_of_date=date(2024, 6, 30))
        db_session.commit()

        assert snapshot.period_start == date(2024, 6, 1)
        assert snapshot.matched_count == 1
        assert snapshot.unmatched_count == 1
        assert snapshot.matched_total == Decimal("100")
        assert snapshot.unmatched_total == Decimal("-40")
        assert service.get_snapshot(ledger.id, snapshot.snapshot_id).integrity_valid
