"""
Period close, trial balance and snapshot verification endpoints.
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_ledger.api.deps import get_current_ledger, get_session
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.schemas.ledger import TrialBalanceResponse
from tenant_ledger.schemas.period import (
    ClosePeriodRequest,
    ClosePeriodResponse,
    PeriodSummary,
    SnapshotSummary,
    SnapshotVerification,
)
from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.period_service import PeriodService

router = APIRouter(tags=["Periods"])


@router.post("/close-period", response_model=ClosePeriodResponse)
def close_period(
    request: ClosePeriodRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """
    Close a month or quarter.

    The ledger must balance. The trial balance at period end is
    frozen into a hashed snapshot, and the period rejects any
    further writes. Closing an already closed period is a 409.
    """
    period, snapshot = PeriodService(db).close_period(ledger.id, request)
    db.commit()
    return ClosePeriodResponse(
        period_id=period.id,
        period=PeriodSummary(
            start_date=period.period_start,
            end_date=period.period_end,
            status=period.status,
        ),
        snapshot=SnapshotSummary(
            snapshot_id=snapshot.id,
            total_debits=snapshot.total_debits,
            total_credits=snapshot.total_credits,
            is_balanced=snapshot.is_balanced,
        ),
    )


@router.get("/trial-balance", response_model=TrialBalanceResponse)
def get_trial_balance(
    as_of: date | None = None,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """Live trial balance, optionally as of a past date."""
    return LedgerService(db).trial_balance(ledger.id, as_of)


@router.get("/snapshots/{snapshot_id}/verify", response_model=SnapshotVerification)
def verify_snapshot(
    snapshot_id: uuid.UUID,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """Recompute a stored snapshot's hash and compare it."""
    return PeriodService(db).verify_snapshot(ledger.id, snapshot_id)
