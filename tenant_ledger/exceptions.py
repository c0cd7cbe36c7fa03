"""
Domain exceptions.

Every error the ledger core raises derives from LedgerError,
which is a ValueError so callers that only care about
"the request was wrong" can keep catching ValueError.

Each class carries the HTTP status it maps to and a details
dict. Invariant violations put the numeric discrepancy in
details so the caller can see exactly how far off they were.
"""

from typing import Any


class LedgerError(ValueError):
    """Base class for all ledger domain errors."""

    status_code: int = 400
    error_code: str = "ledger_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# --- Validation ---

class ValidationError(LedgerError):
    error_code = "validation_error"


# --- Invariant violations ---

class ImbalancedEntriesError(LedgerError):
    """Debits and credits of a single transaction differ beyond tolerance."""

    error_code = "imbalanced_entries"


class UnbalancedLedgerError(LedgerError):
    """The ledger as a whole does not balance; the period cannot close."""

    error_code = "unbalanced_ledger"


class OpeningBalanceMismatchError(LedgerError):
    error_code = "opening_balance_mismatch"


# --- Not found ---

class AccountNotFoundError(LedgerError):
    status_code = 404
    error_code = "account_not_found"


class UnresolvedAccountError(AccountNotFoundError):
    """An entry names an account that does not exist and cannot be provisioned."""

    status_code = 400


class TransactionNotFoundError(LedgerError):
    status_code = 404
    error_code = "transaction_not_found"


class LedgerNotFoundError(LedgerError):
    status_code = 404
    error_code = "ledger_not_found"


class OrganizationNotFoundError(LedgerError):
    status_code = 404
    error_code = "organization_not_found"


class PeriodNotFoundError(LedgerError):
    status_code = 404
    error_code = "period_not_found"


class SnapshotNotFoundError(LedgerError):
    status_code = 404
    error_code = "snapshot_not_found"


class BankTransactionNotFoundError(LedgerError):
    status_code = 404
    error_code = "bank_transaction_not_found"


# --- Conflicts ---

class ConflictError(LedgerError):
    status_code = 409
    error_code = "conflict"


class DuplicateReferenceError(ConflictError):
    error_code = "duplicate_reference"


class PeriodAlreadyClosedError(ConflictError):
    error_code = "period_already_closed"


class AlreadyMatchedError(ConflictError):
    error_code = "already_matched"


class OpeningBalanceExistsError(ConflictError):
    error_code = "opening_balance_exists"


class TransactionAlreadyReversedError(ConflictError):
    error_code = "transaction_already_reversed"


# --- Period guard ---

class ClosedPeriodError(LedgerError):
    """
    A write was attempted inside a closed or locked period.

    details carries the period bounds and the next open date,
    which is where a forward correction would be posted.
    """

    status_code = 403
    error_code = "period_closed"


# --- Auth ---

class AuthenticationError(LedgerError):
    status_code = 401
    error_code = "unauthorized"


class LedgerInactiveError(LedgerError):
    status_code = 403
    error_code = "ledger_inactive"


# --- Billing ---

class BillingStateError(LedgerError):
    """Invalid organization billing status transition."""

    error_code = "invalid_billing_transition"


class PaymentConfigurationError(Exception):
    """
    The payment collaborator is misconfigured.

    Not a LedgerError: the dunning engine records it as a failed
    charge attempt rather than surfacing it to an API caller.
    """
