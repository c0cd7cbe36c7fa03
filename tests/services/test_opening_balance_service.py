"""
Tests for recording opening balances.
"""

from datetime import date
from decimal import Decimal

import pytest

from tenant_ledger.exceptions import (
    OpeningBalanceExistsError,
    OpeningBalanceMismatchError,
    ValidationError,
)
from tenant_ledger.models.enums import AccountType, TransactionType
from tenant_ledger.schemas.adjustment import OpeningBalanceLine, RecordOpeningBalanceRequest
from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.opening_balance_service import OpeningBalanceService


def opening_request(*lines, as_of=date(2024, 1, 1)):
    return RecordOpeningBalanceRequest(
        as_of_date=as_of,
        balances=[
            OpeningBalanceLine(account_type=account_type, balance=balance)
            for account_type, balance in lines
        ],
    )


BALANCED = (
    (AccountType.CASH, 1000000),
    (AccountType.ACCOUNTS_RECEIVABLE, 250000),
    (AccountType.CREDIT_CARD, -150000),
    (AccountType.OWNER_EQUITY, -1100000),
)


class TestRecordOpeningBalance:

    def test_balanced_opening_balances_recorded(self, db_session, ledger):
        opening, summary = OpeningBalanceService(db_session).record_opening_balance(
            ledger.id, opening_request(*BALANCED)
        )
        db_session.commit()

        assert summary.total_assets == Decimal("12500.00")
        assert summary.total_liabilities == Decimal("1500.00")
        assert summary.total_equity == Decimal("11000.00")
        assert summary.accounts_set == 4

        txn = LedgerService(db_session).get_transaction(ledger.id, opening.transaction_id)
        assert txn.transaction_type == TransactionType.OPENING_BALANCE
        assert txn.effective_date == date(2024, 1, 1)
        assert len(txn.entries) == 4

    def test_ledger_balanced_after_opening_balances(self, db_session, ledger):
        OpeningBalanceService(db_session).record_opening_balance(
            ledger.id, opening_request(*BALANCED)
        )
        db_session.commit()

        service = LedgerService(db_session)
        cash = service.find_account(ledger.id, AccountType.CASH)
        card = service.find_account(ledger.id, AccountType.CREDIT_CARD)
        assert service.is_ledger_balanced(ledger.id)
        assert service.compute_account_balance(cash.id) == Decimal("10000.00")
        assert service.compute_account_balance(card.id) == Decimal("1500.00")

    def test_only_once_per_ledger(self, db_session, ledger):
        service = OpeningBalanceService(db_session)
        service.record_opening_balance(ledger.id, opening_request(*BALANCED))
        db_session.commit()

        with pytest.raises(OpeningBalanceExistsError):
            service.record_opening_balance(
                ledger.id, opening_request(*BALANCED, as_of=date(2024, 2, 1))
            )

    def test_accounting_equation_must_hold(self, db_session, ledger):
        with pytest.raises(OpeningBalanceMismatchError) as exc_info:
            OpeningBalanceService(db_session).record_opening_balance(
                ledger.id,
                opening_request(
                    (AccountType.CASH, 500000),
                    (AccountType.OWNER_EQUITY, -400000),
                ),
            )

        details = exc_info.value.details
        assert Decimal(details["total_assets"]) == Decimal("5000")
        assert Decimal(details["total_equity"]) == Decimal("4000")
        assert Decimal(details["difference"]) == Decimal("1000")

    def test_expense_accounts_rejected(self, db_session, ledger):
        with pytest.raises(ValidationError):
            OpeningBalanceService(db_session).record_opening_balance(
                ledger.id,
                opening_request(
                    (AccountType.CASH, 1000),
                    (AccountType.EXPENSE, -1000),
                ),
            )

    def test_zero_lines_skipped(self, db_session, ledger):
        opening, summary = OpeningBalanceService(db_session).record_opening_balance(
            ledger.id,
            opening_request(
                (AccountType.CASH, 20000),
                (AccountType.TAX_RESERVE, 0),
                (AccountType.OWNER_EQUITY, -20000),
            ),
        )
        db_session.commit()

        txn = LedgerService(db_session).get_transaction(ledger.id, opening.transaction_id)
        assert len(txn.entries) == 2
        assert summary.accounts_set == 3
