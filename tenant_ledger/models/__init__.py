"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from tenant_ledger.models.base import Base
from tenant_ledger.models.enums import (
    AccountClass,
    AccountType,
    EntryType,
    TransactionType,
    TransactionStatus,
    LedgerStatus,
    PeriodType,
    PeriodStatus,
    SnapshotType,
    AdjustmentType,
    OpeningBalanceSource,
    MatchSource,
    BillingStatus,
    MemberStatus,
    ChargeStatus,
)
from tenant_ledger.models.audit_log import AuditLog
from tenant_ledger.models.organization import Organization, OrganizationMember
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.models.account import Account
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.models.entry import Entry
from tenant_ledger.models.trial_balance_snapshot import TrialBalanceSnapshot
from tenant_ledger.models.accounting_period import AccountingPeriod
from tenant_ledger.models.adjustment_journal import AdjustmentJournal
from tenant_ledger.models.opening_balance import OpeningBalance
from tenant_ledger.models.bank_transaction import BankTransaction, BankMatch
from tenant_ledger.models.reconciliation_snapshot import ReconciliationSnapshot
from tenant_ledger.models.billing_overage_charge import BillingOverageCharge

__all__ = [
    "Base",
    "AccountClass",
    "AccountType",
    "EntryType",
    "TransactionType",
    "TransactionStatus",
    "LedgerStatus",
    "PeriodType",
    "PeriodStatus",
    "SnapshotType",
    "AdjustmentType",
    "OpeningBalanceSource",
    "MatchSource",
    "BillingStatus",
    "MemberStatus",
    "ChargeStatus",
    "AuditLog",
    "Organization",
    "OrganizationMember",
    "Ledger",
    "Account",
    "Transaction",
    "Entry",
    "TrialBalanceSnapshot",
    "AccountingPeriod",
    "AdjustmentJournal",
    "OpeningBalance",
    "BankTransaction",
    "BankMatch",
    "ReconciliationSnapshot",
    "BillingOverageCharge",
]
