"""
Client operation endpoints: sales, expenses, payouts, lookups.

The API layer is thin. It handles HTTP concerns and delegates
all business logic to the services.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_ledger.api.deps import get_current_ledger, get_session
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.schemas.ledger import AccountBalanceResponse, TransactionResponse
from tenant_ledger.schemas.transaction import (
    ExpenseRequest,
    OperationResponse,
    PayoutRequest,
    SaleRequest,
    SaleResponse,
)
from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.transaction_service import TransactionService

router = APIRouter(tags=["Transactions"])


@router.post("/record-sale", response_model=SaleResponse, status_code=201)
def record_sale(
    request: SaleRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """Record a sale and split it between the creator and the platform."""
    result = TransactionService(db).record_sale(ledger.id, request)
    db.commit()
    return result


@router.post("/record-expense", response_model=OperationResponse, status_code=201)
def record_expense(
    request: ExpenseRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    txn = TransactionService(db).record_expense(ledger.id, request)
    db.commit()
    return OperationResponse(transaction_id=txn.id, amount=txn.amount)


@router.post("/record-payout", response_model=OperationResponse, status_code=201)
def record_payout(
    request: PayoutRequest,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """Pay a creator out of their balance. The balance must cover it."""
    txn = TransactionService(db).record_payout(ledger.id, request)
    db.commit()
    return OperationResponse(transaction_id=txn.id, amount=txn.amount)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: uuid.UUID,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    return LedgerService(db).get_transaction(ledger.id, transaction_id)


@router.get("/balances/{account_id}", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: uuid.UUID,
    ledger: Ledger = Depends(get_current_ledger),
    db: Session = Depends(get_session),
):
    """Account balance on its normal side, derived from entries."""
    service = LedgerService(db)
    account = service.get_account(ledger.id, account_id)
    return AccountBalanceResponse(
        account_id=account.id,
        account_type=account.account_type,
        entity_id=account.entity_id,
        name=account.name,
        balance=service.compute_account_balance(account.id),
        currency=account.currency,
    )
