"""
Correction service: reversals, forward corrections and adjustments.

History in a closed period is never rewritten. Fixing a
transaction there means posting its exact mirror image (debits
and credits swapped) on the next open date, with an adjustment
journal row explaining why. In an open period a reversal is
posted in place and the original is marked reversed.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenant_ledger.exceptions import TransactionAlreadyReversedError, ValidationError
from tenant_ledger.models.adjustment_journal import AdjustmentJournal
from tenant_ledger.models.base import utcnow
from tenant_ledger.models.enums import (
    AdjustmentType,
    TransactionStatus,
    TransactionType,
)
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.money import cents_to_amount
from tenant_ledger.schemas.adjustment import (
    RecordAdjustmentRequest,
    ReverseTransactionRequest,
    ReverseTransactionResponse,
)
from tenant_ledger.schemas.ledger import EntryCreate, RecordTransactionRequest
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.ledger_service import LedgerService, check_entry_sides

logger = structlog.get_logger(__name__)


def reversal_reference(original: Transaction) -> str:
    return f"reversal_{original.id}"


class CorrectionService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit = AuditService(db)

    def _check_reversible(self, original: Transaction) -> None:
        if original.status in (TransactionStatus.REVERSED, TransactionStatus.VOIDED):
            raise TransactionAlreadyReversedError(
                f"Transaction is already {original.status.value}",
                details={
                    "transaction_id": str(original.id),
                    "status": original.status.value,
                },
            )
        if original.status != TransactionStatus.COMPLETED:
            raise ValidationError(
                f"Can only reverse completed transactions "
                f"(status: {original.status.value})"
            )
        if original.transaction_type == TransactionType.REVERSAL:
            raise ValidationError("A reversal cannot itself be reversed")

        # A forward correction leaves the original completed,
        # so look for the reversal itself
        reversal_id = self.db.execute(
            select(Transaction.id).where(
                Transaction.reverses_id == original.id,
                Transaction.transaction_type == TransactionType.REVERSAL,
                Transaction.status == TransactionStatus.COMPLETED,
            )
        ).scalar_one_or_none()
        if reversal_id:
            raise TransactionAlreadyReversedError(
                "Transaction has already been corrected",
                details={
                    "transaction_id": str(original.id),
                    "reversal_transaction_id": str(reversal_id),
                },
            )

    @staticmethod
    def _mirror_entries(original: Transaction) -> list[EntryCreate]:
        """Same accounts and amounts, debit and credit swapped."""
        return [
            EntryCreate(
                account_id=entry.account_id,
                entry_type=entry.entry_type.opposite(),
                amount=entry.amount,
            )
            for entry in original.entries
        ]

    def correct_transaction(
        self,
        ledger_id: uuid.UUID,
        original_transaction_id: uuid.UUID,
        reason: str,
        prepared_by: str,
        adjustment_type: AdjustmentType = AdjustmentType.CORRECTION,
    ) -> tuple[Transaction, AdjustmentJournal]:
        """
        Post a forward-dated reversal of a transaction.

        The reversal is dated on the next open date and goes
        through record_transaction, so it is held to the same
        balance rule. The original row is not touched.
        """
        original = self.ledger_service.get_transaction(
            ledger_id, original_transaction_id
        )
        self._check_reversible(original)
        effective_date = self.ledger_service.next_open_date(ledger_id)

        reversal = self.ledger_service.record_transaction(
            ledger_id,
            RecordTransactionRequest(
                transaction_type=TransactionType.REVERSAL,
                reference_id=reversal_reference(original),
                description=f"Correction of {original.reference_id}: {reason}"[:500],
                entries=self._mirror_entries(original),
                effective_date=effective_date,
                reverses_id=original.id,
                details={
                    "reason": reason,
                    "original_effective_date": original.effective_date.isoformat(),
                },
            ),
        )

        journal = AdjustmentJournal(
            ledger_id=ledger_id,
            transaction_id=reversal.id,
            original_transaction_id=original.id,
            adjustment_type=adjustment_type,
            reason=reason,
            prepared_by=prepared_by,
            adjustment_date=effective_date,
        )
        self.db.add(journal)
        self.db.flush()

        self.audit.record(
            "correct_transaction", "transaction", reversal.id,
            ledger_id=ledger_id,
            details={
                "original_transaction_id": str(original.id),
                "adjustment_id": str(journal.id),
            },
        )
        logger.info(
            "correction_posted",
            ledger_id=str(ledger_id),
            original_transaction_id=str(original.id),
            reversal_transaction_id=str(reversal.id),
            effective_date=effective_date.isoformat(),
        )
        return reversal, journal

    def reverse_transaction(
        self, ledger_id: uuid.UUID, request: ReverseTransactionRequest
    ) -> ReverseTransactionResponse:
        """
        Reverse a transaction wherever it lives.

        Originals inside a closed period are routed through
        correct_transaction. Otherwise the reversal is posted and
        the original is marked reversed.
        """
        original = self.ledger_service.get_transaction(
            ledger_id, request.transaction_id
        )
        self._check_reversible(original)

        if self.ledger_service.find_frozen_period(ledger_id, original.effective_date):
            reversal, journal = self.correct_transaction(
                ledger_id, original.id, request.reason, request.prepared_by
            )
            return ReverseTransactionResponse(
                original_transaction_id=original.id,
                reversal_transaction_id=reversal.id,
                effective_date=reversal.effective_date,
                forward_correction=True,
                adjustment_id=journal.id,
            )

        reversal = self.ledger_service.record_transaction(
            ledger_id,
            RecordTransactionRequest(
                transaction_type=TransactionType.REVERSAL,
                reference_id=reversal_reference(original),
                description=f"Reversal of {original.reference_id}: {request.reason}"[:500],
                entries=self._mirror_entries(original),
                effective_date=self.ledger_service.next_open_date(ledger_id),
                reverses_id=original.id,
                details={"reason": request.reason},
            ),
        )
        original.status = TransactionStatus.REVERSED
        self.db.flush()

        self.audit.record(
            "reverse_transaction", "transaction", original.id,
            ledger_id=ledger_id,
            details={
                "reversal_transaction_id": str(reversal.id),
                "reason": request.reason,
            },
        )
        logger.info(
            "transaction_reversed",
            ledger_id=str(ledger_id),
            original_transaction_id=str(original.id),
            reversal_transaction_id=str(reversal.id),
        )
        return ReverseTransactionResponse(
            original_transaction_id=original.id,
            reversal_transaction_id=reversal.id,
            effective_date=reversal.effective_date,
            forward_correction=False,
        )

    def record_adjustment(
        self, ledger_id: uuid.UUID, request: RecordAdjustmentRequest
    ) -> tuple[Transaction, AdjustmentJournal]:
        """
        Post an adjusting journal entry from explicit entries.

        Amounts arrive in cents. When the adjustment relates to an
        earlier transaction, that transaction is linked both from
        the journal row and as the new transaction's reverses_id.
        """
        check_entry_sides(request.entries)
        if request.original_transaction_id:
            self.ledger_service.get_transaction(
                ledger_id, request.original_transaction_id
            )

        adjustment_date = request.adjustment_date or utcnow().date()
        reference_id = request.reference_id or (
            f"adj_{int(utcnow().timestamp() * 1000)}_{uuid.uuid4().hex[:6]}"
        )

        txn = self.ledger_service.record_transaction(
            ledger_id,
            RecordTransactionRequest(
                transaction_type=TransactionType.ADJUSTMENT,
                reference_id=reference_id,
                description=(
                    f"{request.adjustment_type.value}: {request.reason}"[:500]
                ),
                entries=[
                    EntryCreate(
                        account_type=e.account_type,
                        entity_id=e.entity_id,
                        entry_type=e.entry_type,
                        amount=cents_to_amount(e.amount),
                    )
                    for e in request.entries
                ],
                effective_date=adjustment_date,
                reverses_id=request.original_transaction_id,
                details={
                    "adjustment_type": request.adjustment_type.value,
                    "prepared_by": request.prepared_by,
                },
            ),
        )

        journal = AdjustmentJournal(
            ledger_id=ledger_id,
            transaction_id=txn.id,
            original_transaction_id=request.original_transaction_id,
            adjustment_type=request.adjustment_type,
            reason=request.reason,
            supporting_documentation=request.supporting_documentation,
            prepared_by=request.prepared_by,
            adjustment_date=adjustment_date,
        )
        self.db.add(journal)
        self.db.flush()

        self.audit.record(
            "record_adjustment", "adjustment", journal.id,
            ledger_id=ledger_id,
            details={
                "adjustment_type": request.adjustment_type.value,
                "transaction_id": str(txn.id),
                "entries": len(request.entries),
            },
        )
        logger.info(
            "adjustment_recorded",
            ledger_id=str(ledger_id),
            transaction_id=str(txn.id),
            adjustment_type=request.adjustment_type.value,
        )
        return txn, journal
