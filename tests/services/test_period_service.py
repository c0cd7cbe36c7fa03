"""
Tests for period close and trial balance snapshots.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tenant_ledger.exceptions import PeriodAlreadyClosedError, UnbalancedLedgerError
from tenant_ledger.models.accounting_period import AccountingPeriod
from tenant_ledger.models.entry import Entry
from tenant_ledger.models.enums import (
    AccountType,
    EntryType,
    PeriodStatus,
    PeriodType,
    TransactionStatus,
    TransactionType,
)
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.models.trial_balance_snapshot import TrialBalanceSnapshot
from tenant_ledger.schemas.ledger import EntryCreate, RecordTransactionRequest
from tenant_ledger.schemas.period import ClosePeriodRequest
from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.period_service import PeriodService, period_bounds


def fund(db_session, ledger, reference_id, amount, effective_date):
    """Helper: owner puts cash into the business."""
    return LedgerService(db_session).record_transaction(
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


class TestPeriodBounds:

    def test_month(self):
        assert period_bounds(2024, month=2) == (
            date(2024, 2, 1), date(2024, 2, 29), PeriodType.MONTHLY, 2
        )

    def test_quarter(self):
        assert period_bounds(2023, quarter=4) == (
            date(2023, 10, 1), date(2023, 12, 31), PeriodType.QUARTERLY, 4
        )


class TestClosePeriod:

    def test_close_creates_closed_period_and_snapshot(self, db_session, ledger):
        fund(db_session, ledger, "f-1", "500", date(2024, 5, 10))
        db_session.commit()

        period, snapshot = PeriodService(db_session).close_period(
            ledger.id, ClosePeriodRequest(year=2024, month=5, notes="May close")
        )
        db_session.commit()

        assert period.status == PeriodStatus.CLOSED
        assert period.period_start == date(2024, 5, 1)
        assert period.period_end == date(2024, 5, 31)
        assert period.snapshot_id == snapshot.id
        assert period.closing_hash == snapshot.balance_hash
        assert snapshot.total_debits == Decimal("500")
        assert snapshot.total_credits == Decimal("500")
        assert snapshot.is_balanced
        assert len(snapshot.balance_hash) == 64

    def test_snapshot_taken_as_of_period_end(self, db_session, ledger):
        fund(db_session, ledger, "f-may", "500", date(2024, 5, 10))
        fund(db_session, ledger, "f-jun", "200", date(2024, 6, 3))
        db_session.commit()

        _, snapshot = PeriodService(db_session).close_period(
            ledger.id, ClosePeriodRequest(year=2024, month=5)
        )

        assert snapshot.as_of_date == date(2024, 5, 31)
        assert snapshot.total_debits == Decimal("500")

    def test_closing_twice_is_a_conflict(self, db_session, ledger):
        service = PeriodService(db_session)
        service.close_period(ledger.id, ClosePeriodRequest(year=2024, quarter=1))
        db_session.commit()

        with pytest.raises(PeriodAlreadyClosedError) as exc_info:
            service.close_period(ledger.id, ClosePeriodRequest(year=2024, quarter=1))
        db_session.rollback()

        assert exc_info.value.status_code == 409
        snapshots = db_session.execute(
            select(func.count()).select_from(TrialBalanceSnapshot)
        ).scalar_one()
        assert snapshots == 1

    def test_unbalanced_ledger_cannot_close(self, db_session, ledger):
        # Bypass record_transaction to plant a one-sided entry
        cash = LedgerService(db_session).find_account(ledger.id, AccountType.CASH)
        txn = Transaction(
            ledger_id=ledger.id,
            transaction_type=TransactionType.ADJUSTMENT,
            reference_id="corrupt",
            description="",
            amount=Decimal("10"),
            currency="USD",
            status=TransactionStatus.COMPLETED,
            effective_date=date(2024, 7, 1),
            details={},
        )
        txn.entries = [Entry(account=cash, entry_type=EntryType.DEBIT, amount=Decimal("10"))]
        db_session.add(txn)
        db_session.commit()

        with pytest.raises(UnbalancedLedgerError) as exc_info:
            PeriodService(db_session).close_period(
                ledger.id, ClosePeriodRequest(year=2024, month=7)
            )

        assert exc_info.value.details["difference"] == "10.0000"

    def test_list_periods(self, db_session, ledger):
        service = PeriodService(db_session)
        service.close_period(ledger.id, ClosePeriodRequest(year=2024, month=2))
        service.close_period(ledger.id, ClosePeriodRequest(year=2024, month=1))
        db_session.commit()

        periods = service.list_periods(ledger.id)

        assert [p.period_number for p in periods] == [1, 2]


class TestConcurrentClose:

    def close_elsewhere_first(
        self, service, ledger_id, request, session_factory, monkeypatch
    ):
        """
        Make `service` lose the close: a second session closes the
        same period after `service` has read it, before it writes.
        """
        balance_check = service.ledger_service.balance_check

        def closed_by_other_session(*args):
            other = session_factory()
            try:
                PeriodService(other).close_period(ledger_id, request)
                other.commit()
            finally:
                other.close()
            return balance_check(*args)

        monkeypatch.setattr(
            service.ledger_service, "balance_check", closed_by_other_session
        )

    def snapshot_count(self, db_session):
        return db_session.execute(
            select(func.count()).select_from(TrialBalanceSnapshot)
        ).scalar_one()

    def test_loser_of_new_period_race(
        self, db_session, ledger, session_factory, monkeypatch
    ):
        fund(db_session, ledger, "f-1", "500", date(2024, 5, 10))
        db_session.commit()
        ledger_id = ledger.id
        request = ClosePeriodRequest(year=2024, month=5)
        service = PeriodService(db_session)
        self.close_elsewhere_first(
            service, ledger_id, request, session_factory, monkeypatch
        )

        with pytest.raises(PeriodAlreadyClosedError) as exc_info:
            service.close_period(ledger_id, request)

        assert exc_info.value.status_code == 409
        [period] = service.list_periods(ledger_id)
        assert period.status == PeriodStatus.CLOSED
        assert self.snapshot_count(db_session) == 1
        assert period.snapshot_id is not None

    def test_loser_of_open_period_race(
        self, db_session, ledger, session_factory, monkeypatch
    ):
        fund(db_session, ledger, "f-1", "500", date(2024, 5, 10))
        db_session.add(AccountingPeriod(
            ledger_id=ledger.id,
            period_type=PeriodType.MONTHLY,
            period_start=date(2024, 5, 1),
            period_end=date(2024, 5, 31),
            fiscal_year=2024,
            period_number=5,
            status=PeriodStatus.OPEN,
        ))
        db_session.commit()
        ledger_id = ledger.id
        request = ClosePeriodRequest(year=2024, month=5)
        service = PeriodService(db_session)
        self.close_elsewhere_first(
            service, ledger_id, request, session_factory, monkeypatch
        )

        with pytest.raises(PeriodAlreadyClosedError) as exc_info:
            service.close_period(ledger_id, request)

        assert "period_id" in exc_info.value.details
        [period] = service.list_periods(ledger_id)
        db_session.refresh(period)
        assert period.status == PeriodStatus.CLOSED
        assert self.snapshot_count(db_session) == 1
        [snapshot] = db_session.execute(select(TrialBalanceSnapshot)).scalars().all()
        assert period.snapshot_id == snapshot.id


class TestSnapshotIntegrity:

    def test_untouched_snapshot_verifies(self, db_session, ledger):
        fund(db_session, ledger, "f-1", "80", date(2024, 8, 8))
        service = PeriodService(db_session)
        snapshot = service.create_snapshot(ledger.id, as_of=date(2024, 8, 31))
        db_session.commit()

        result = service.verify_snapshot(ledger.id, snapshot.id)

        assert result.integrity_valid
        assert result.stored_hash == result.computed_hash

    def test_tampered_snapshot_fails_verification(self, db_session, ledger):
        fund(db_session, ledger, "f-1", "80", date(2024, 8, 8))
        service = PeriodService(db_session)
        snapshot = service.create_snapshot(ledger.id, as_of=date(2024, 8, 31))
        db_session.commit()

        tampered = [dict(line) for line in snapshot.balances]
        tampered[0]["balance"] = "999999.0000"
        snapshot.balances = tampered
        db_session.commit()

        assert not service.verify_snapshot(ledger.id, snapshot.id).integrity_valid
