"""
Shared enumerations for database models.

Values are lowercase because they travel unchanged over the
JSON API ("debit", "sale", "past_due").
"""

import enum


class AccountClass(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class AccountType(str, enum.Enum):
    """Chart-of-accounts types a ledger can hold."""
    CASH = "cash"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    TAX_RESERVE = "tax_reserve"
    CREATOR_BALANCE = "creator_balance"
    CREATOR_POOL = "creator_pool"
    ACCOUNTS_PAYABLE = "accounts_payable"
    CREDIT_CARD = "credit_card"
    OWNER_EQUITY = "owner_equity"
    PLATFORM_REVENUE = "platform_revenue"
    EXPENSE = "expense"
    PROCESSING_FEES = "processing_fees"


# Which side each account type normally carries its balance on.
ACCOUNT_CLASS_BY_TYPE: dict[AccountType, AccountClass] = {
    AccountType.CASH: AccountClass.ASSET,
    AccountType.ACCOUNTS_RECEIVABLE: AccountClass.ASSET,
    AccountType.TAX_RESERVE: AccountClass.ASSET,
    AccountType.CREATOR_BALANCE: AccountClass.LIABILITY,
    AccountType.CREATOR_POOL: AccountClass.LIABILITY,
    AccountType.ACCOUNTS_PAYABLE: AccountClass.LIABILITY,
    AccountType.CREDIT_CARD: AccountClass.LIABILITY,
    AccountType.OWNER_EQUITY: AccountClass.EQUITY,
    AccountType.PLATFORM_REVENUE: AccountClass.REVENUE,
    AccountType.EXPENSE: AccountClass.EXPENSE,
    AccountType.PROCESSING_FEES: AccountClass.EXPENSE,
}

# Account types that belong to an entity (creator, contractor)
# and are provisioned on first use.
ENTITY_ACCOUNT_TYPES = {AccountType.CREATOR_BALANCE}


class EntryType(str, enum.Enum):
    """Direction of a ledger entry."""
    DEBIT = "debit"
    CREDIT = "credit"

    def opposite(self) -> "EntryType":
        return EntryType.CREDIT if self is EntryType.DEBIT else EntryType.DEBIT


class TransactionType(str, enum.Enum):
    SALE = "sale"
    EXPENSE = "expense"
    PAYOUT = "payout"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    OPENING_BALANCE = "opening_balance"
    TRANSFER = "transfer"
    REVERSAL = "reversal"


class TransactionStatus(str, enum.Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    VOIDED = "voided"
    REVERSED = "reversed"


class LedgerStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class PeriodType(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class PeriodStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class SnapshotType(str, enum.Enum):
    PERIOD_CLOSE = "period_close"
    ON_DEMAND = "on_demand"


class AdjustmentType(str, enum.Enum):
    CORRECTION = "correction"
    RECLASSIFICATION = "reclassification"
    ACCRUAL = "accrual"
    DEFERRAL = "deferral"
    DEPRECIATION = "depreciation"
    WRITE_OFF = "write_off"
    YEAR_END = "year_end"
    OPENING_BALANCE = "opening_balance"
    OTHER = "other"


class OpeningBalanceSource(str, enum.Enum):
    MANUAL = "manual"
    IMPORTED = "imported"
    MIGRATED = "migrated"
    YEAR_START = "year_start"


class MatchSource(str, enum.Enum):
    MANUAL = "manual"
    AUTO = "auto"


class BillingStatus(str, enum.Enum):
    """Organization billing status."""
    ACTIVE = "active"
    PAST_DUE = "past_due"
    SUSPENDED = "suspended"
    CANCELED = "canceled"


class MemberStatus(str, enum.Enum):
    ACTIVE = "active"
    INVITED = "invited"
    REMOVED = "removed"


class ChargeStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
