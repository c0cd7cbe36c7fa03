"""
Owner notifications.

Rendering and sending email is handled elsewhere; this hook is
the point where the billing engine hands a terminal failure to
that system. The default implementation emits a structured log
event that the mail pipeline consumes.
"""

import structlog

from tenant_ledger.models.billing_overage_charge import BillingOverageCharge
from tenant_ledger.models.organization import Organization

logger = structlog.get_logger(__name__)


class OwnerNotifier:

    def billing_failed(self, org: Organization, charge: BillingOverageCharge) -> None:
        """An overage charge exhausted its retries."""
        logger.warning(
            "owner_notified_billing_failed",
            organization_id=str(org.id),
            owner_email=org.owner_email,
            charge_id=str(charge.id),
            amount_cents=charge.amount_cents,
            attempts=charge.attempts,
            error=charge.error,
        )
