"""
Overage billing endpoint.

Triggered by the monthly scheduler with the service role
credential. Safe to call repeatedly: each organization is charged
at most once per period no matter how many runs overlap.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_ledger.api.deps import get_payment_gateway, get_session, require_service_role
from tenant_ledger.config import Settings, get_settings
from tenant_ledger.schemas.billing import BillOveragesRequest, BillOveragesResponse
from tenant_ledger.services.billing_service import OverageBillingService
from tenant_ledger.services.payment_gateway import PaymentGateway

router = APIRouter(tags=["Billing"], dependencies=[Depends(require_service_role)])


@router.post("/bill-overages", response_model=BillOveragesResponse)
def bill_overages(
    request: BillOveragesRequest | None = None,
    db: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    """
    Bill usage overages for one period (default: last month).

    With dry_run the response shows what would be charged and
    nothing is written.
    """
    service = OverageBillingService(db, gateway=gateway, settings=settings)
    return service.run(request or BillOveragesRequest())
