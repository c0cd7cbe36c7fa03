"""
Service endpoints: organizations, ledgers and API keys.

These are called by internal tooling with the service role
bearer credential, never by tenants.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tenant_ledger.api.deps import get_session, require_service_role
from tenant_ledger.schemas.organization import (
    ApiKeyResponse,
    BillingStatusUpdate,
    LedgerCreate,
    MemberCreate,
    OrganizationCreate,
    OrganizationResponse,
)
from tenant_ledger.services.organization_service import OrganizationService

router = APIRouter(tags=["Admin"], dependencies=[Depends(require_service_role)])


@router.post("/organizations", response_model=OrganizationResponse, status_code=201)
def create_organization(
    request: OrganizationCreate,
    db: Session = Depends(get_session),
):
    org = OrganizationService(db).create_organization(request)
    db.commit()
    return org


@router.post("/organizations/{organization_id}/members", status_code=201)
def add_member(
    organization_id: uuid.UUID,
    request: MemberCreate,
    db: Session = Depends(get_session),
):
    member = OrganizationService(db).add_member(organization_id, request)
    db.commit()
    return {"success": True, "member_id": member.id}


@router.patch(
    "/organizations/{organization_id}/billing-status",
    response_model=OrganizationResponse,
)
def change_billing_status(
    organization_id: uuid.UUID,
    request: BillingStatusUpdate,
    db: Session = Depends(get_session),
):
    """
    Move an organization between billing statuses.

    Only valid transitions are allowed; canceled is terminal.
    """
    org = OrganizationService(db).change_billing_status(organization_id, request)
    db.commit()
    return org


@router.post(
    "/organizations/{organization_id}/ledgers",
    response_model=ApiKeyResponse,
    status_code=201,
)
def create_ledger(
    organization_id: uuid.UUID,
    request: LedgerCreate,
    db: Session = Depends(get_session),
):
    """
    Create a ledger with its chart of accounts.

    The plaintext API key is in this response and nowhere else.
    """
    ledger, api_key = OrganizationService(db).create_ledger(organization_id, request)
    db.commit()
    return ApiKeyResponse(ledger_id=ledger.id, api_key=api_key)


@router.post("/ledgers/{ledger_id}/rotate-key", response_model=ApiKeyResponse)
def rotate_api_key(
    ledger_id: uuid.UUID,
    db: Session = Depends(get_session),
):
    """Issue a new API key. The previous key stops working immediately."""
    api_key = OrganizationService(db).rotate_api_key(ledger_id)
    db.commit()
    return ApiKeyResponse(ledger_id=ledger_id, api_key=api_key)


@router.post("/ledgers/{ledger_id}/archive")
def archive_ledger(
    ledger_id: uuid.UUID,
    db: Session = Depends(get_session),
):
    ledger = OrganizationService(db).archive_ledger(ledger_id)
    db.commit()
    return {"success": True, "ledger_id": ledger.id, "status": ledger.status}
