"""
Opening balance service.

Records a ledger's starting position exactly once. The lines
arrive as signed cents (positive = debit, negative = credit) and
must satisfy assets = liabilities + equity before anything is
written.
"""

import uuid
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenant_ledger.exceptions import (
    OpeningBalanceExistsError,
    OpeningBalanceMismatchError,
    ValidationError,
)
from tenant_ledger.models.enums import (
    AccountClass,
    EntryType,
    TransactionType,
    ACCOUNT_CLASS_BY_TYPE,
)
from tenant_ledger.models.opening_balance import OpeningBalance
from tenant_ledger.money import cents_to_amount, within_tolerance
from tenant_ledger.schemas.adjustment import (
    OpeningBalanceSummary,
    RecordOpeningBalanceRequest,
)
from tenant_ledger.schemas.ledger import EntryCreate, RecordTransactionRequest
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.ledger_service import LedgerService, check_entry_sides

logger = structlog.get_logger(__name__)


class OpeningBalanceService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit = AuditService(db)

    def get_opening_balance(self, ledger_id: uuid.UUID) -> OpeningBalance | None:
        return self.db.execute(
            select(OpeningBalance).where(OpeningBalance.ledger_id == ledger_id)
        ).scalar_one_or_none()

    def record_opening_balance(
        self, ledger_id: uuid.UUID, request: RecordOpeningBalanceRequest
    ) -> tuple[OpeningBalance, OpeningBalanceSummary]:
        """
        Post the opening balance transaction.

        Raises OpeningBalanceExistsError if the ledger already has
        opening balances, and OpeningBalanceMismatchError (with
        the three totals) if the accounting equation fails.
        """
        ledger = self.ledger_service.get_ledger(ledger_id)

        if self.get_opening_balance(ledger.id):
            raise OpeningBalanceExistsError(
                "Opening balances already recorded for this ledger"
            )

        total_assets = Decimal("0")
        total_liabilities = Decimal("0")
        total_equity = Decimal("0")
        for line in request.balances:
            amount = cents_to_amount(line.balance)
            account_class = ACCOUNT_CLASS_BY_TYPE[line.account_type]
            if account_class == AccountClass.ASSET:
                total_assets += amount
            elif account_class == AccountClass.LIABILITY:
                total_liabilities += abs(amount)
            elif account_class in (AccountClass.EQUITY, AccountClass.REVENUE):
                total_equity += abs(amount)
            else:
                raise ValidationError(
                    f"{line.account_type.value} is not a balance sheet account"
                )

        difference = total_assets - (total_liabilities + total_equity)
        if not within_tolerance(difference, self.ledger_service.tolerance):
            raise OpeningBalanceMismatchError(
                "Opening balances don't balance",
                details={
                    "total_assets": str(total_assets),
                    "total_liabilities": str(total_liabilities),
                    "total_equity": str(total_equity),
                    "difference": str(difference),
                },
            )

        entries = [
            EntryCreate(
                account_type=line.account_type,
                entity_id=line.entity_id,
                entry_type=EntryType.DEBIT if line.balance > 0 else EntryType.CREDIT,
                amount=abs(cents_to_amount(line.balance)),
            )
            for line in request.balances
            if line.balance != 0
        ]
        check_entry_sides(entries)
        txn = self.ledger_service.record_transaction(
            ledger.id,
            RecordTransactionRequest(
                transaction_type=TransactionType.OPENING_BALANCE,
                reference_id=f"opening_{request.as_of_date.isoformat()}",
                description=f"Opening balances as of {request.as_of_date.isoformat()}",
                entries=entries,
                effective_date=request.as_of_date,
                details={
                    "source": request.source.value,
                    "source_description": request.source_description,
                },
            ),
        )

        opening = OpeningBalance(
            ledger_id=ledger.id,
            transaction_id=txn.id,
            as_of_date=request.as_of_date,
            source=request.source,
            source_description=request.source_description,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity,
        )
        self.db.add(opening)
        self.db.flush()

        self.audit.record(
            "record_opening_balance", "opening_balance", opening.id,
            ledger_id=ledger.id,
            details={
                "as_of_date": request.as_of_date.isoformat(),
                "source": request.source.value,
                "accounts": len(request.balances),
            },
        )
        logger.info(
            "opening_balance_recorded",
            ledger_id=str(ledger.id),
            transaction_id=str(txn.id),
            total_assets=str(total_assets),
        )

        summary = OpeningBalanceSummary(
            as_of_date=request.as_of_date,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity,
            accounts_set=len(request.balances),
        )
        return opening, summary
