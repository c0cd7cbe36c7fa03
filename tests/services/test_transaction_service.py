"""
Tests for sales, expenses and payouts.
"""

from decimal import Decimal

import pytest

from tenant_ledger.exceptions import ValidationError
from tenant_ledger.models.enums import AccountType, TransactionType
from tenant_ledger.schemas.organization import LedgerCreate
from tenant_ledger.schemas.transaction import ExpenseRequest, PayoutRequest, SaleRequest
from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.organization_service import OrganizationService
from tenant_ledger.services.transaction_service import TransactionService, split_sale


def balance_of(db_session, ledger, account_type, entity_id=None):
    service = LedgerService(db_session)
    account = service.find_account(ledger.id, account_type, entity_id)
    return service.compute_account_balance(account.id)


class TestSplitSale:

    def test_default_split(self):
        assert split_sale(Decimal("100.00"), Decimal("80")) == (
            Decimal("80.00"), Decimal("20.00")
        )

    def test_rounding_goes_to_creator_and_remainder_to_platform(self):
        creator, platform = split_sale(Decimal("0.99"), Decimal("33.33"))

        assert creator == Decimal("0.33")
        assert creator + platform == Decimal("0.99")


class TestSale:

    def test_hundred_dollar_sale_split_80_20(self, db_session, ledger):
        result = TransactionService(db_session).record_sale(
            ledger.id,
            SaleRequest(reference_id="sale-100", creator_id="creator_1", amount=10000),
        )
        db_session.commit()

        assert result.creator_amount == Decimal("80.00")
        assert result.platform_amount == Decimal("20.00")
        assert balance_of(db_session, ledger, AccountType.CASH) == Decimal("100")
        assert balance_of(
            db_session, ledger, AccountType.CREATOR_BALANCE, "creator_1"
        ) == Decimal("80")
        assert balance_of(db_session, ledger, AccountType.PLATFORM_REVENUE) == Decimal("20")
        assert LedgerService(db_session).is_ledger_balanced(ledger.id)

    def test_ledger_default_percent_applies(self, db_session, make_ledger):
        org, _, _ = make_ledger()
        ledger, _ = OrganizationService(db_session).create_ledger(
            org.id, LedgerCreate(name="Generous", default_creator_percent=Decimal("90"))
        )
        db_session.commit()

        result = TransactionService(db_session).record_sale(
            ledger.id,
            SaleRequest(reference_id="sale-90", creator_id="creator_1", amount=5000),
        )

        assert result.creator_amount == Decimal("45.00")
        assert result.platform_amount == Decimal("5.00")

    def test_processing_fee_borne_by_platform(self, db_session, ledger):
        TransactionService(db_session).record_sale(
            ledger.id,
            SaleRequest(
                reference_id="sale-fee",
                creator_id="creator_1",
                amount=10000,
                processing_fee=320,
            ),
        )
        db_session.commit()

        assert balance_of(db_session, ledger, AccountType.CASH) == Decimal("96.80")
        assert balance_of(db_session, ledger, AccountType.PROCESSING_FEES) == Decimal("3.20")
        assert balance_of(
            db_session, ledger, AccountType.CREATOR_BALANCE, "creator_1"
        ) == Decimal("80")


class TestExpense:

    def test_cash_expense(self, db_session, ledger):
        txn = TransactionService(db_session).record_expense(
            ledger.id,
            ExpenseRequest(reference_id="exp-1", amount=4999, description="Hosting"),
        )
        db_session.commit()

        assert txn.transaction_type == TransactionType.EXPENSE
        assert balance_of(db_session, ledger, AccountType.EXPENSE) == Decimal("49.99")
        assert balance_of(db_session, ledger, AccountType.CASH) == Decimal("-49.99")

    def test_credit_card_expense(self, db_session, ledger):
        TransactionService(db_session).record_expense(
            ledger.id,
            ExpenseRequest(
                reference_id="exp-2",
                amount=1500,
                description="Domain",
                paid_with_credit_card=True,
            ),
        )
        db_session.commit()

        assert balance_of(db_session, ledger, AccountType.CREDIT_CARD) == Decimal("15.00")


class TestPayout:

    def test_payout_reduces_creator_balance(self, db_session, ledger):
        service = TransactionService(db_session)
        service.record_sale(
            ledger.id,
            SaleRequest(reference_id="sale-1", creator_id="creator_1", amount=10000),
        )
        service.record_payout(
            ledger.id,
            PayoutRequest(reference_id="po-1", creator_id="creator_1", amount=5000),
        )
        db_session.commit()

        assert balance_of(
            db_session, ledger, AccountType.CREATOR_BALANCE, "creator_1"
        ) == Decimal("30")
        assert balance_of(db_session, ledger, AccountType.CASH) == Decimal("50")

    def test_payout_over_balance_rejected(self, db_session, ledger):
        service = TransactionService(db_session)
        service.record_sale(
            ledger.id,
            SaleRequest(reference_id="sale-1", creator_id="creator_1", amount=1000),
        )
        db_session.commit()

        with pytest.raises(ValidationError) as exc_info:
            service.record_payout(
                ledger.id,
                PayoutRequest(reference_id="po-1", creator_id="creator_1", amount=900),
            )

        assert exc_info.value.details["available"] == "8.0000"

    def test_payout_to_unknown_creator_rejected(self, db_session, ledger):
        with pytest.raises(ValidationError):
            TransactionService(db_session).record_payout(
                ledger.id,
                PayoutRequest(reference_id="po-x", creator_id="nobody", amount=100),
            )
