"""
Period service: closing accounting periods and snapshotting them.

A period moves open -> closed exactly once. Closing requires a
balanced ledger, and the trial balance at the end of the period
is stored together with a SHA-256 hash of its canonical JSON so
later tampering with history can be detected.
"""

import calendar
import uuid
from datetime import date

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenant_ledger.exceptions import (
    PeriodAlreadyClosedError,
    PeriodNotFoundError,
    SnapshotNotFoundError,
    UnbalancedLedgerError,
)
from tenant_ledger.hashing import sha256_hex
from tenant_ledger.models.accounting_period import AccountingPeriod
from tenant_ledger.models.base import utcnow
from tenant_ledger.models.enums import PeriodStatus, PeriodType, SnapshotType
from tenant_ledger.models.trial_balance_snapshot import TrialBalanceSnapshot
from tenant_ledger.schemas.period import ClosePeriodRequest, SnapshotVerification
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.ledger_service import LedgerService, today

logger = structlog.get_logger(__name__)


def period_bounds(
    year: int, month: int | None = None, quarter: int | None = None
) -> tuple[date, date, PeriodType, int]:
    """Inclusive first and last day of a month or quarter."""
    if month is not None:
        first_month, last_month = month, month
        period_type, number = PeriodType.MONTHLY, month
    else:
        first_month, last_month = quarter * 3 - 2, quarter * 3
        period_type, number = PeriodType.QUARTERLY, quarter
    last_day = calendar.monthrange(year, last_month)[1]
    return (
        date(year, first_month, 1),
        date(year, last_month, last_day),
        period_type,
        number,
    )


def snapshot_payload(snapshot: TrialBalanceSnapshot) -> dict:
    """The exact data a trial balance snapshot hash covers."""
    return {
        "ledger_id": str(snapshot.ledger_id),
        "as_of_date": snapshot.as_of_date.isoformat(),
        "balances": snapshot.balances,
        "total_debits": f"{snapshot.total_debits:.4f}",
        "total_credits": f"{snapshot.total_credits:.4f}",
    }


class PeriodService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit = AuditService(db)

    def create_snapshot(
        self,
        ledger_id: uuid.UUID,
        as_of: date | None = None,
        snapshot_type: SnapshotType = SnapshotType.ON_DEMAND,
    ) -> TrialBalanceSnapshot:
        """Persist the trial balance as of a date, hashed."""
        as_of = as_of or today()
        trial_balance = self.ledger_service.trial_balance(ledger_id, as_of)

        balances = [
            {
                "account_id": str(line.account_id),
                "account_type": line.account_type.value,
                "entity_id": line.entity_id,
                "name": line.name,
                "balance": f"{line.debit - line.credit:.4f}",
            }
            for line in trial_balance.accounts
        ]
        snapshot = TrialBalanceSnapshot(
            ledger_id=ledger_id,
            snapshot_type=snapshot_type,
            as_of_date=as_of,
            balances=balances,
            total_debits=trial_balance.total_debits,
            total_credits=trial_balance.total_credits,
            is_balanced=trial_balance.is_balanced,
        )
        snapshot.balance_hash = sha256_hex(snapshot_payload(snapshot))
        self.db.add(snapshot)
        self.db.flush()
        return snapshot

    def get_snapshot(
        self, ledger_id: uuid.UUID, snapshot_id: uuid.UUID
    ) -> TrialBalanceSnapshot:
        snapshot = self.db.get(TrialBalanceSnapshot, snapshot_id)
        if not snapshot or snapshot.ledger_id != ledger_id:
            raise SnapshotNotFoundError(f"Snapshot {snapshot_id} not found")
        return snapshot

    def verify_snapshot(
        self, ledger_id: uuid.UUID, snapshot_id: uuid.UUID
    ) -> SnapshotVerification:
        """Recompute the hash of a stored snapshot and compare."""
        snapshot = self.get_snapshot(ledger_id, snapshot_id)
        computed = sha256_hex(snapshot_payload(snapshot))
        valid = computed == snapshot.balance_hash
        if not valid:
            logger.warning(
                "snapshot_integrity_mismatch",
                ledger_id=str(ledger_id),
                snapshot_id=str(snapshot_id),
            )
        return SnapshotVerification(
            snapshot_id=snapshot.id,
            integrity_valid=valid,
            stored_hash=snapshot.balance_hash,
            computed_hash=computed,
        )

    def close_period(
        self,
        ledger_id: uuid.UUID,
        request: ClosePeriodRequest,
        closed_by: str = "api",
    ) -> tuple[AccountingPeriod, TrialBalanceSnapshot]:
        """
        Close a month or quarter.

        Raises PeriodAlreadyClosedError if the period is already
        closed or locked (never re-snapshots), and
        UnbalancedLedgerError if the ledger does not balance.
        The snapshot and the period row are flushed in the same
        unit of work; the caller commits.
        """
        self.ledger_service.get_ledger(ledger_id)
        start, end, period_type, number = period_bounds(
            request.year, request.month, request.quarter
        )

        existing = self.db.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.ledger_id == ledger_id,
                AccountingPeriod.period_start == start,
                AccountingPeriod.period_end == end,
            )
        ).scalar_one_or_none()
        if existing and existing.is_frozen:
            raise PeriodAlreadyClosedError(
                f"Period {start} to {end} is already {existing.status.value}",
                details={
                    "period_id": str(existing.id),
                    "status": existing.status.value,
                    "closed_at": (
                        existing.closed_at.isoformat() if existing.closed_at else None
                    ),
                },
            )

        check = self.ledger_service.balance_check(ledger_id)
        if not check.is_balanced:
            raise UnbalancedLedgerError(
                "Ledger is not balanced; the period cannot be closed",
                details={
                    "debits": str(check.total_debits),
                    "credits": str(check.total_credits),
                    "difference": str(check.difference),
                },
            )

        snapshot = self.create_snapshot(
            ledger_id, as_of=end, snapshot_type=SnapshotType.PERIOD_CLOSE
        )
        closed_values = {
            "status": PeriodStatus.CLOSED,
            "closed_at": utcnow(),
            "closed_by": closed_by,
            "close_notes": request.notes,
            "closing_trial_balance": snapshot.balances,
            "closing_hash": snapshot.balance_hash,
            "snapshot_id": snapshot.id,
        }

        if existing:
            # Only the caller that still sees it open may close it
            result = self.db.execute(
                update(AccountingPeriod)
                .where(
                    AccountingPeriod.id == existing.id,
                    AccountingPeriod.status == PeriodStatus.OPEN,
                )
                .values(**closed_values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise PeriodAlreadyClosedError(
                    f"Period {start} to {end} is already closed",
                    details={"period_id": str(existing.id)},
                )
            self.db.refresh(existing)
            period = existing
        else:
            period = AccountingPeriod(
                ledger_id=ledger_id,
                period_type=period_type,
                period_start=start,
                period_end=end,
                fiscal_year=request.year,
                period_number=number,
                **closed_values,
            )
            self.db.add(period)
            try:
                self.db.flush()
            except IntegrityError as exc:
                # A concurrent close of the same range won
                self.db.rollback()
                raise PeriodAlreadyClosedError(
                    f"Period {start} to {end} is already closed"
                ) from exc

        self.audit.record(
            "close_period", "accounting_period", period.id,
            ledger_id=ledger_id,
            details={
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "snapshot_id": str(snapshot.id),
                "closing_hash": snapshot.balance_hash,
            },
        )
        logger.info(
            "period_closed",
            ledger_id=str(ledger_id),
            period_id=str(period.id),
            period_start=start.isoformat(),
            period_end=end.isoformat(),
            total_debits=str(snapshot.total_debits),
            total_credits=str(snapshot.total_credits),
        )
        return period, snapshot

    def get_period(
        self, ledger_id: uuid.UUID, period_id: uuid.UUID
    ) -> AccountingPeriod:
        period = self.db.get(AccountingPeriod, period_id)
        if not period or period.ledger_id != ledger_id:
            raise PeriodNotFoundError(f"Period {period_id} not found")
        return period

    def list_periods(self, ledger_id: uuid.UUID) -> list[AccountingPeriod]:
        periods = self.db.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.ledger_id == ledger_id)
            .order_by(AccountingPeriod.period_start)
        ).scalars().all()
        return list(periods)
