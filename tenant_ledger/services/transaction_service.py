"""
Transaction service: sales, expenses and payouts.

Each operation translates a business event into balanced
entries and posts them through LedgerService, so every rule
there (balance, duplicate reference, period guard) applies.

Accounting:
    Sale     DEBIT cash, CREDIT creator balance and platform revenue
    Expense  DEBIT expense, CREDIT cash (or credit card)
    Payout   DEBIT creator balance, CREDIT cash
"""

import uuid
from decimal import Decimal

from sqlalchemy.orm import Session

from tenant_ledger.config import get_settings
from tenant_ledger.exceptions import ValidationError
from tenant_ledger.models.enums import AccountType, EntryType, TransactionType
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.money import cents_to_amount, round_cents
from tenant_ledger.schemas.ledger import EntryCreate, RecordTransactionRequest
from tenant_ledger.schemas.transaction import (
    ExpenseRequest,
    PayoutRequest,
    SaleRequest,
    SaleResponse,
)
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.ledger_service import LedgerService


def split_sale(amount: Decimal, creator_percent: Decimal) -> tuple[Decimal, Decimal]:
    """
    Split a gross amount into (creator, platform) shares.

    The creator share is rounded half up to the cent and the
    platform gets the remainder, so the two always add up.
    """
    creator = round_cents(amount * creator_percent / Decimal("100"))
    return creator, amount - creator


class TransactionService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit = AuditService(db)

    def _creator_percent(self, ledger_id: uuid.UUID, requested: Decimal | None) -> Decimal:
        if requested is not None:
            return requested
        ledger = self.ledger_service.get_ledger(ledger_id)
        if ledger.default_creator_percent is not None:
            return Decimal(ledger.default_creator_percent)
        return get_settings().DEFAULT_CREATOR_PERCENT

    def record_sale(self, ledger_id: uuid.UUID, request: SaleRequest) -> SaleResponse:
        amount = cents_to_amount(request.amount)
        creator_percent = self._creator_percent(ledger_id, request.creator_percent)
        creator_amount, platform_amount = split_sale(amount, creator_percent)
        fee = cents_to_amount(request.processing_fee)

        entries = [
            EntryCreate(
                account_type=AccountType.CASH,
                entry_type=EntryType.DEBIT,
                amount=amount,
            ),
        ]
        if creator_amount > 0:
            entries.append(EntryCreate(
                account_type=AccountType.CREATOR_BALANCE,
                entity_id=request.creator_id,
                entry_type=EntryType.CREDIT,
                amount=creator_amount,
            ))
        if platform_amount > 0:
            entries.append(EntryCreate(
                account_type=AccountType.PLATFORM_REVENUE,
                entry_type=EntryType.CREDIT,
                amount=platform_amount,
            ))
        if fee > 0:
            entries.extend([
                EntryCreate(
                    account_type=AccountType.PROCESSING_FEES,
                    entry_type=EntryType.DEBIT,
                    amount=fee,
                ),
                EntryCreate(
                    account_type=AccountType.CASH,
                    entry_type=EntryType.CREDIT,
                    amount=fee,
                ),
            ])

        txn = self.ledger_service.record_transaction(
            ledger_id,
            RecordTransactionRequest(
                transaction_type=TransactionType.SALE,
                reference_id=request.reference_id,
                description=request.description or f"Sale {request.reference_id}",
                entries=entries,
                effective_date=request.effective_date,
                details={
                    "creator_id": request.creator_id,
                    "creator_percent": str(creator_percent),
                    "creator_amount": str(creator_amount),
                    "platform_amount": str(platform_amount),
                    "processing_fee": str(fee),
                },
            ),
        )
        self.audit.record(
            "record_sale", "transaction", txn.id, ledger_id=ledger_id,
            details={"reference_id": request.reference_id, "amount": request.amount},
        )
        return SaleResponse(
            transaction_id=txn.id,
            amount=amount,
            creator_amount=creator_amount,
            platform_amount=platform_amount,
        )

    def record_expense(
        self, ledger_id: uuid.UUID, request: ExpenseRequest
    ) -> Transaction:
        amount = cents_to_amount(request.amount)
        paid_from = (
            AccountType.CREDIT_CARD if request.paid_with_credit_card
            else AccountType.CASH
        )
        txn = self.ledger_service.record_transaction(
            ledger_id,
            RecordTransactionRequest(
                transaction_type=TransactionType.EXPENSE,
                reference_id=request.reference_id,
                description=request.description,
                entries=[
                    EntryCreate(
                        account_type=AccountType.EXPENSE,
                        entry_type=EntryType.DEBIT,
                        amount=amount,
                    ),
                    EntryCreate(
                        account_type=paid_from,
                        entry_type=EntryType.CREDIT,
                        amount=amount,
                    ),
                ],
                effective_date=request.effective_date,
                details={"category": request.category},
            ),
        )
        self.audit.record(
            "record_expense", "transaction", txn.id, ledger_id=ledger_id,
            details={"reference_id": request.reference_id, "amount": request.amount},
        )
        return txn

    def record_payout(
        self, ledger_id: uuid.UUID, request: PayoutRequest
    ) -> Transaction:
        """
        Pay a creator out of their accumulated balance.

        Checks sufficient balance before proceeding.
        """
        amount = cents_to_amount(request.amount)
        account = self.ledger_service.find_account(
            ledger_id, AccountType.CREATOR_BALANCE, request.creator_id
        )
        available = (
            self.ledger_service.compute_account_balance(account.id)
            if account else Decimal("0")
        )
        if available < amount:
            raise ValidationError(
                f"Insufficient balance: available={available}, requested={amount}",
                details={
                    "creator_id": request.creator_id,
                    "available": str(available),
                    "requested": str(amount),
                },
            )

        txn = self.ledger_service.record_transaction(
            ledger_id,
            RecordTransactionRequest(
                transaction_type=TransactionType.PAYOUT,
                reference_id=request.reference_id,
                description=request.description or f"Payout to {request.creator_id}",
                entries=[
                    EntryCreate(
                        account_id=account.id,
                        entry_type=EntryType.DEBIT,
                        amount=amount,
                    ),
                    EntryCreate(
                        account_type=AccountType.CASH,
                        entry_type=EntryType.CREDIT,
                        amount=amount,
                    ),
                ],
                effective_date=request.effective_date,
                details={"creator_id": request.creator_id},
            ),
        )
        self.audit.record(
            "record_payout", "transaction", txn.id, ledger_id=ledger_id,
            details={"creator_id": request.creator_id, "amount": request.amount},
        )
        return txn
