"""
Reconciliation service: matching ledger transactions to the bank feed.

A ledger transaction and a bank record pair up at most once each.
The unique constraints on bank_matches enforce that in the store,
so two concurrent matchers cannot both claim the same record.
"""

import uuid
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenant_ledger.exceptions import (
    AlreadyMatchedError,
    BankTransactionNotFoundError,
    SnapshotNotFoundError,
    ValidationError,
)
from tenant_ledger.hashing import sha256_hex
from tenant_ledger.models.bank_transaction import BankMatch, BankTransaction
from tenant_ledger.models.base import utcnow
from tenant_ledger.models.enums import MatchSource, TransactionStatus
from tenant_ledger.models.reconciliation_snapshot import ReconciliationSnapshot
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.money import CENT
from tenant_ledger.schemas.reconcile import (
    AutoMatchResult,
    BankTransactionIn,
    BankTransactionResponse,
    ImportResult,
    MatchResult,
    ReconciliationSnapshotResult,
    UnmatchedResult,
    UnmatchedTransaction,
)
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.ledger_service import LedgerService, today
from tenant_ledger.services.period_service import PeriodService

logger = structlog.get_logger(__name__)


def amounts_match(ledger_amount: Decimal, bank_amount: Decimal) -> bool:
    """Bank amounts are signed; ledger amounts are not. Compare magnitudes."""
    return abs(abs(ledger_amount) - abs(bank_amount)) <= CENT


class ReconciliationService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit = AuditService(db)

    # --- Bank feed ---

    def import_bank_transactions(
        self, ledger_id: uuid.UUID, records: list[BankTransactionIn]
    ) -> ImportResult:
        """Store bank-feed records. Records already imported are skipped."""
        self.ledger_service.get_ledger(ledger_id)
        seen = set(self.db.execute(
            select(BankTransaction.external_id).where(
                BankTransaction.ledger_id == ledger_id
            )
        ).scalars().all())

        imported = 0
        skipped = 0
        for record in records:
            if record.external_id in seen:
                skipped += 1
                continue
            seen.add(record.external_id)
            self.db.add(BankTransaction(
                ledger_id=ledger_id,
                external_id=record.external_id,
                transaction_date=record.transaction_date,
                amount=record.amount,
                description=record.description,
            ))
            imported += 1
        self.db.flush()

        logger.info(
            "bank_transactions_imported",
            ledger_id=str(ledger_id),
            imported=imported,
            skipped=skipped,
        )
        return ImportResult(imported=imported, skipped_duplicates=skipped)

    def get_bank_transaction(
        self, ledger_id: uuid.UUID, bank_transaction_id: uuid.UUID
    ) -> BankTransaction:
        bank = self.db.get(BankTransaction, bank_transaction_id)
        if not bank or bank.ledger_id != ledger_id:
            raise BankTransactionNotFoundError(
                f"Bank transaction {bank_transaction_id} not found"
            )
        return bank

    # --- Matching ---

    def _match_for_transaction(self, transaction_id: uuid.UUID) -> BankMatch | None:
        return self.db.execute(
            select(BankMatch).where(BankMatch.transaction_id == transaction_id)
        ).scalar_one_or_none()

    def _match_for_bank(self, bank_transaction_id: uuid.UUID) -> BankMatch | None:
        return self.db.execute(
            select(BankMatch).where(BankMatch.bank_transaction_id == bank_transaction_id)
        ).scalar_one_or_none()

    def match(
        self,
        ledger_id: uuid.UUID,
        transaction_id: uuid.UUID,
        bank_transaction_id: uuid.UUID,
        matched_by: MatchSource = MatchSource.MANUAL,
    ) -> BankMatch:
        """
        Link one ledger transaction to one bank record.

        Raises AlreadyMatchedError if either side is already
        linked, and ClosedPeriodError if the transaction sits in a
        closed period.
        """
        txn = self.ledger_service.get_transaction(ledger_id, transaction_id)
        if txn.status != TransactionStatus.COMPLETED:
            raise ValidationError(
                f"Only completed transactions can be matched "
                f"(status: {txn.status.value})"
            )
        self.ledger_service.ensure_period_open(ledger_id, txn.effective_date)
        bank = self.get_bank_transaction(ledger_id, bank_transaction_id)

        if self._match_for_transaction(txn.id):
            raise AlreadyMatchedError(
                "Transaction is already matched",
                details={"transaction_id": str(txn.id)},
            )
        if self._match_for_bank(bank.id):
            raise AlreadyMatchedError(
                "Bank transaction is already matched",
                details={"bank_transaction_id": str(bank.id)},
            )

        link = BankMatch(
            ledger_id=ledger_id,
            transaction=txn,
            bank_transaction=bank,
            matched_by=matched_by,
            matched_at=utcnow(),
        )
        self.db.add(link)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise AlreadyMatchedError(
                "Transaction or bank transaction is already matched"
            ) from exc

        self.audit.record(
            "match_transaction", "bank_match", link.id,
            ledger_id=ledger_id,
            details={
                "transaction_id": str(txn.id),
                "bank_transaction_id": str(bank.id),
                "matched_by": matched_by.value,
            },
        )
        return link

    def unmatch(self, ledger_id: uuid.UUID, transaction_id: uuid.UUID) -> MatchResult:
        """Remove a pairing. Neither the transaction nor the bank record changes."""
        txn = self.ledger_service.get_transaction(ledger_id, transaction_id)
        self.ledger_service.ensure_period_open(ledger_id, txn.effective_date)

        link = self._match_for_transaction(txn.id)
        if not link:
            raise ValidationError(
                "Transaction is not matched",
                details={"transaction_id": str(txn.id)},
            )
        bank = link.bank_transaction
        bank_transaction_id = bank.id
        self.db.delete(link)
        self.db.flush()
        self.db.expire(bank, ["match"])

        self.audit.record(
            "unmatch_transaction", "transaction", txn.id,
            ledger_id=ledger_id,
            details={"bank_transaction_id": str(bank_transaction_id)},
        )
        return MatchResult(
            transaction_id=txn.id,
            bank_transaction_id=bank_transaction_id,
            matched=False,
        )

    def _unmatched_transactions(self, ledger_id: uuid.UUID) -> list[Transaction]:
        matched = select(BankMatch.transaction_id).where(BankMatch.ledger_id == ledger_id)
        rows = self.db.execute(
            select(Transaction)
            .where(
                Transaction.ledger_id == ledger_id,
                Transaction.status == TransactionStatus.COMPLETED,
                Transaction.id.not_in(matched),
            )
            .order_by(Transaction.effective_date, Transaction.created_at)
        ).scalars().all()
        return list(rows)

    def _unmatched_bank_transactions(self, ledger_id: uuid.UUID) -> list[BankTransaction]:
        matched = select(BankMatch.bank_transaction_id).where(
            BankMatch.ledger_id == ledger_id
        )
        rows = self.db.execute(
            select(BankTransaction)
            .where(
                BankTransaction.ledger_id == ledger_id,
                BankTransaction.id.not_in(matched),
            )
            .order_by(BankTransaction.transaction_date, BankTransaction.created_at)
        ).scalars().all()
        return list(rows)

    def auto_match(self, ledger_id: uuid.UUID) -> AutoMatchResult:
        """
        Pair unmatched records whose amounts agree within a cent.

        Bank records are walked oldest first. A pair is made only
        when the bank record has exactly one candidate transaction
        and that transaction has no other candidate bank record;
        anything ambiguous is left for a human.
        """
        transactions = [
            t for t in self._unmatched_transactions(ledger_id)
            if self.ledger_service.find_frozen_period(ledger_id, t.effective_date) is None
        ]
        banks = self._unmatched_bank_transactions(ledger_id)

        used_transactions: set[uuid.UUID] = set()
        used_banks: set[uuid.UUID] = set()
        pairs: list[MatchResult] = []
        ambiguous: list[uuid.UUID] = []

        for bank in banks:
            candidates = [
                t for t in transactions
                if t.id not in used_transactions and amounts_match(t.amount, bank.amount)
            ]
            if not candidates:
                continue
            if len(candidates) > 1:
                ambiguous.append(bank.id)
                continue

            txn = candidates[0]
            rivals = [
                b for b in banks
                if b.id != bank.id
                and b.id not in used_banks
                and amounts_match(txn.amount, b.amount)
            ]
            if rivals:
                ambiguous.append(bank.id)
                continue

            self.match(ledger_id, txn.id, bank.id, matched_by=MatchSource.AUTO)
            used_transactions.add(txn.id)
            used_banks.add(bank.id)
            pairs.append(MatchResult(
                transaction_id=txn.id,
                bank_transaction_id=bank.id,
                matched=True,
            ))

        logger.info(
            "auto_match_completed",
            ledger_id=str(ledger_id),
            matched=len(pairs),
            ambiguous=len(ambiguous),
        )
        return AutoMatchResult(
            matched=len(pairs),
            pairs=pairs,
            ambiguous_bank_transaction_ids=ambiguous,
        )

    def list_unmatched(self, ledger_id: uuid.UUID) -> UnmatchedResult:
        return UnmatchedResult(
            transactions=[
                UnmatchedTransaction(
                    id=t.id,
                    reference_id=t.reference_id,
                    transaction_type=t.transaction_type.value,
                    amount=t.amount,
                    effective_date=t.effective_date,
                )
                for t in self._unmatched_transactions(ledger_id)
            ],
            bank_transactions=[
                BankTransactionResponse.model_validate(b)
                for b in self._unmatched_bank_transactions(ledger_id)
            ],
        )

    # --- Snapshots ---

    def create_snapshot(
        self,
        ledger_id: uuid.UUID,
        period_id: uuid.UUID | None = None,
        as_of_date: date | None = None,
    ) -> ReconciliationSnapshotResult:
        """
        Freeze the reconciliation state of a period, hashed.

        Without a period the snapshot covers the month up to
        as_of_date (default today).
        """
        if period_id:
            period = PeriodService(self.db).get_period(ledger_id, period_id)
            start, end = period.period_start, period.period_end
        else:
            end = as_of_date or today()
            start = end.replace(day=1)

        banks = self.db.execute(
            select(BankTransaction)
            .where(
                BankTransaction.ledger_id == ledger_id,
                BankTransaction.transaction_date >= start,
                BankTransaction.transaction_date <= end,
            )
        ).scalars().all()

        matched = []
        unmatched = []
        for bank in banks:
            item = {
                "bank_transaction_id": str(bank.id),
                "external_id": bank.external_id,
                "amount": f"{bank.amount:.4f}",
            }
            if bank.match is not None:
                item["transaction_id"] = str(bank.match.transaction_id)
                matched.append(item)
            else:
                unmatched.append(item)
        matched.sort(key=lambda i: i["bank_transaction_id"])
        unmatched.sort(key=lambda i: i["bank_transaction_id"])

        matched_total = sum((b.amount for b in banks if b.match is not None), Decimal("0"))
        unmatched_total = sum((b.amount for b in banks if b.match is None), Decimal("0"))
        snapshot_data = {
            "ledger_id": str(ledger_id),
            "period_start": start.isoformat(),
            "period_end": end.isoformat(),
            "matched": matched,
            "unmatched": unmatched,
            "matched_total": f"{matched_total:.4f}",
            "unmatched_total": f"{unmatched_total:.4f}",
        }

        snapshot = ReconciliationSnapshot(
            ledger_id=ledger_id,
            period_id=period_id,
            period_start=start,
            period_end=end,
            snapshot_data=snapshot_data,
            integrity_hash=sha256_hex(snapshot_data),
            matched_count=len(matched),
            unmatched_count=len(unmatched),
            matched_total=matched_total,
            unmatched_total=unmatched_total,
        )
        self.db.add(snapshot)
        self.db.flush()

        self.audit.record(
            "create_reconciliation_snapshot", "reconciliation_snapshot", snapshot.id,
            ledger_id=ledger_id,
            details={"integrity_hash": snapshot.integrity_hash},
        )
        return self._snapshot_result(snapshot)

    def get_snapshot(
        self, ledger_id: uuid.UUID, snapshot_id: uuid.UUID
    ) -> ReconciliationSnapshotResult:
        """Load a snapshot and re-verify its hash."""
        snapshot = self.db.get(ReconciliationSnapshot, snapshot_id)
        if not snapshot or snapshot.ledger_id != ledger_id:
            raise SnapshotNotFoundError(f"Snapshot {snapshot_id} not found")
        return self._snapshot_result(snapshot)

    @staticmethod
    def _snapshot_result(snapshot: ReconciliationSnapshot) -> ReconciliationSnapshotResult:
        return ReconciliationSnapshotResult(
            snapshot_id=snapshot.id,
            period_start=snapshot.period_start,
            period_end=snapshot.period_end,
            matched_count=snapshot.matched_count,
            unmatched_count=snapshot.unmatched_count,
            matched_total=snapshot.matched_total,
            unmatched_total=snapshot.unmatched_total,
            integrity_hash=snapshot.integrity_hash,
            integrity_valid=sha256_hex(snapshot.snapshot_data) == snapshot.integrity_hash,
        )
