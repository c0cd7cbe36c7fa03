"""
Organization service: tenants, their members and their ledgers.

Creating a ledger also provisions its chart of accounts and
issues its first API key. Keys are stored only as SHA-256
hashes; the plaintext is handed back once.
"""

import hashlib
import secrets
import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenant_ledger.exceptions import (
    AuthenticationError,
    BillingStateError,
    LedgerInactiveError,
    OrganizationNotFoundError,
)
from tenant_ledger.models.enums import BillingStatus, LedgerStatus
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.models.organization import Organization, OrganizationMember
from tenant_ledger.schemas.organization import (
    BillingStatusUpdate,
    LedgerCreate,
    MemberCreate,
    OrganizationCreate,
)
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.ledger_service import LedgerService

logger = structlog.get_logger(__name__)


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def generate_api_key(livemode: bool) -> str:
    prefix = "sk_live_" if livemode else "sk_test_"
    return prefix + secrets.token_hex(24)


class OrganizationService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.audit = AuditService(db)

    def create_organization(self, request: OrganizationCreate) -> Organization:
        org = Organization(**request.model_dump())
        self.db.add(org)
        self.db.flush()
        self.audit.record(
            "create_organization", "organization", org.id, organization_id=org.id
        )
        return org

    def get_organization(self, organization_id: uuid.UUID) -> Organization:
        org = self.db.get(Organization, organization_id)
        if not org:
            raise OrganizationNotFoundError(
                f"Organization {organization_id} not found"
            )
        return org

    def add_member(
        self, organization_id: uuid.UUID, request: MemberCreate
    ) -> OrganizationMember:
        org = self.get_organization(organization_id)
        member = OrganizationMember(
            organization_id=org.id,
            email=request.email,
            role=request.role,
            status=request.status,
        )
        self.db.add(member)
        self.db.flush()
        return member

    def create_ledger(
        self, organization_id: uuid.UUID, request: LedgerCreate
    ) -> tuple[Ledger, str]:
        """
        Create a ledger with its chart of accounts.

        Returns the ledger and its plaintext API key.
        """
        org = self.get_organization(organization_id)
        api_key = generate_api_key(request.livemode)
        ledger = Ledger(
            organization_id=org.id,
            name=request.name,
            livemode=request.livemode,
            currency=request.currency.upper(),
            default_creator_percent=request.default_creator_percent,
            api_key_hash=hash_api_key(api_key),
        )
        self.db.add(ledger)
        self.db.flush()
        self.ledger_service.provision_chart(ledger)
        self.audit.record(
            "create_ledger", "ledger", ledger.id,
            ledger_id=ledger.id, organization_id=org.id,
            details={"livemode": ledger.livemode},
        )
        logger.info(
            "ledger_created",
            ledger_id=str(ledger.id),
            organization_id=str(org.id),
            livemode=ledger.livemode,
        )
        return ledger, api_key

    def archive_ledger(self, ledger_id: uuid.UUID) -> Ledger:
        """Archived ledgers stop authenticating and stop being billed."""
        ledger = self.ledger_service.get_ledger(ledger_id)
        ledger.status = LedgerStatus.ARCHIVED
        self.db.flush()
        self.audit.record(
            "archive_ledger", "ledger", ledger.id,
            ledger_id=ledger.id, organization_id=ledger.organization_id,
            actor_type="service",
        )
        return ledger

    def rotate_api_key(self, ledger_id: uuid.UUID) -> str:
        """Replace a ledger's API key. The old key stops working at commit."""
        ledger = self.ledger_service.get_ledger(ledger_id)
        api_key = generate_api_key(ledger.livemode)
        ledger.api_key_hash = hash_api_key(api_key)
        self.db.flush()
        self.audit.record(
            "rotate_api_key", "ledger", ledger.id,
            ledger_id=ledger.id, organization_id=ledger.organization_id,
            actor_type="service",
        )
        logger.info("api_key_rotated", ledger_id=str(ledger.id))
        return api_key

    def authenticate_api_key(self, api_key: str | None) -> Ledger:
        """Resolve an API key to its ledger."""
        if not api_key:
            raise AuthenticationError("Missing API key")

        ledger = self.db.execute(
            select(Ledger).where(Ledger.api_key_hash == hash_api_key(api_key))
        ).scalar_one_or_none()
        if not ledger:
            raise AuthenticationError("Invalid API key")
        if ledger.status != LedgerStatus.ACTIVE:
            raise LedgerInactiveError(
                f"Ledger is {ledger.status.value}",
                details={"ledger_id": str(ledger.id)},
            )
        return ledger

    def change_billing_status(
        self, organization_id: uuid.UUID, request: BillingStatusUpdate
    ) -> Organization:
        """
        Transition an organization to a new billing status.

        Enforces the state machine: only valid transitions are
        allowed, and canceled is terminal.
        """
        org = self.get_organization(organization_id)

        if not org.can_transition_to(request.new_status):
            raise BillingStateError(
                f"Cannot transition from {org.billing_status.value} "
                f"to {request.new_status.value}",
                details={
                    "from": org.billing_status.value,
                    "to": request.new_status.value,
                },
            )

        old_status = org.billing_status
        org.billing_status = request.new_status
        self.db.flush()
        self.audit.record(
            "change_billing_status", "organization", org.id,
            organization_id=org.id, actor_type="service",
            details={
                "from": old_status.value,
                "to": request.new_status.value,
                "reason": request.reason,
            },
        )
        logger.info(
            "billing_status_changed",
            organization_id=str(org.id),
            old_status=old_status.value,
            new_status=request.new_status.value,
            reason=request.reason,
        )
        return org

    def is_billable(self, org: Organization) -> bool:
        return org.billing_status not in (
            BillingStatus.SUSPENDED,
            BillingStatus.CANCELED,
        )
