"""
Bank reconciliation endpoint.

A single POST /reconcile dispatches on `action`, matching the
shape bank-feed tooling already sends.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_ledger.api.deps import get_current_ledger, get_session
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.schemas.reconcile import (
    MatchResult,
    ReconcileAction,
    ReconcileRequest,
)
from tenant_ledger.services.reconciliation_service import ReconciliationService

router = APIRouter(tags=["Reconciliation"])


@router.post("/reconcile")
def reconcile(
    request: ReconcileRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    service = ReconciliationService(db)
    action = request.action

    if action == ReconcileAction.LIST_UNMATCHED:
        return service.list_unmatched(ledger.id)
    if action == ReconcileAction.GET_SNAPSHOT:
        return service.get_snapshot(ledger.id, request.snapshot_id)

    if action == ReconcileAction.MATCH:
        link = service.match(
            ledger.id, request.transaction_id, request.bank_transaction_id
        )
        result = MatchResult(
            transaction_id=link.transaction_id,
            bank_transaction_id=link.bank_transaction_id,
            matched=True,
        )
    elif action == ReconcileAction.UNMATCH:
        result = service.unmatch(ledger.id, request.transaction_id)
    elif action == ReconcileAction.AUTO_MATCH:
        result = service.auto_match(ledger.id)
    elif action == ReconcileAction.IMPORT:
        result = service.import_bank_transactions(ledger.id, request.bank_transactions)
    else:
        result = service.create_snapshot(
            ledger.id, period_id=request.period_id, as_of_date=request.as_of_date
        )

    db.commit()
    return result
