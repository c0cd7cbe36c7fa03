"""
Shared FastAPI dependencies: database session and credentials.

Ledger endpoints authenticate with the x-api-key header. Internal
jobs (billing, key rotation) authenticate with the service role
key as a bearer token.
"""

import hmac

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from tenant_ledger.config import Settings, get_settings
from tenant_ledger.exceptions import AuthenticationError
from tenant_ledger.models.base import get_db
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.services.organization_service import OrganizationService
from tenant_ledger.services.payment_gateway import HttpPaymentGateway, PaymentGateway


def get_session(request: Request, db: Session = Depends(get_db)) -> Session:
    """
    The request's session, also kept on request.state so the
    error handler can roll it back.
    """
    request.state.db = db
    return db


def get_current_ledger(
    x_api_key: str | None = Header(None),
    db: Session = Depends(get_session),
) -> Ledger:
    return OrganizationService(db).authenticate_api_key(x_api_key)


def require_service_role(
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Constant-time check of the service bearer credential."""
    expected = settings.SERVICE_ROLE_KEY
    scheme, _, token = (authorization or "").partition(" ")
    if (
        not expected
        or scheme.lower() != "bearer"
        or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
    ):
        raise AuthenticationError("Invalid service credential")


def get_payment_gateway() -> PaymentGateway:
    return HttpPaymentGateway()
