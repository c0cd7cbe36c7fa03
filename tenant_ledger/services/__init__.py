"""Business logic services."""

from tenant_ledger.services.ledger_service import LedgerService
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.organization_service import OrganizationService
from tenant_ledger.services.period_service import PeriodService
from tenant_ledger.services.correction_service import CorrectionService
from tenant_ledger.services.opening_balance_service import OpeningBalanceService
from tenant_ledger.services.transaction_service import TransactionService
from tenant_ledger.services.reconciliation_service import ReconciliationService
from tenant_ledger.services.usage_service import UsageService
from tenant_ledger.services.billing_service import OverageBillingService

__all__ = [
    "LedgerService",
    "AuditService",
    "OrganizationService",
    "PeriodService",
    "CorrectionService",
    "OpeningBalanceService",
    "TransactionService",
    "ReconciliationService",
    "UsageService",
    "OverageBillingService",
]
