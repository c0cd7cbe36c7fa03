"""
Adjustment, opening balance and reversal endpoints.

All amounts on these requests are integer cents.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_ledger.api.deps import get_current_ledger, get_session
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.schemas.adjustment import (
    RecordAdjustmentRequest,
    RecordAdjustmentResponse,
    RecordOpeningBalanceRequest,
    RecordOpeningBalanceResponse,
    ReverseTransactionRequest,
    ReverseTransactionResponse,
)
from tenant_ledger.services.correction_service import CorrectionService
from tenant_ledger.services.opening_balance_service import OpeningBalanceService

router = APIRouter(tags=["Adjustments"])


@router.post("/record-adjustment", response_model=RecordAdjustmentResponse, status_code=201)
def record_adjustment(
    request: RecordAdjustmentRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """
    Post an adjusting journal entry.

    The entries must balance and the adjustment date must fall
    in an open period.
    """
    txn, journal = CorrectionService(db).record_adjustment(ledger.id, request)
    db.commit()
    return RecordAdjustmentResponse(
        transaction_id=txn.id,
        adjustment_id=journal.id,
        entries_created=len(txn.entries),
    )


@router.post(
    "/record-opening-balance",
    response_model=RecordOpeningBalanceResponse,
    status_code=201,
)
def record_opening_balance(
    request: RecordOpeningBalanceRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """Record a ledger's starting balances. Allowed once per ledger."""
    opening, summary = OpeningBalanceService(db).record_opening_balance(
        ledger.id, request
    )
    db.commit()
    return RecordOpeningBalanceResponse(
        opening_balance_id=opening.id,
        transaction_id=opening.transaction_id,
        summary=summary,
    )


@router.post("/reverse-transaction", response_model=ReverseTransactionResponse)
def reverse_transaction(
    request: ReverseTransactionRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """
    Reverse a transaction.

    If the original sits in a closed period the reversal is
    posted forward on the next open date instead.
    """
    result = CorrectionService(db).reverse_transaction(ledger.id, request)
    db.commit()
    return result
