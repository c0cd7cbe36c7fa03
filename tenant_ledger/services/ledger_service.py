"""
Ledger service: the core of the system.

This service enforces the fundamental rules:
1. Every transaction balances (debits = credits, within tolerance)
2. Entries are append-only; a completed transaction only ever
   changes status
3. Nothing is written inside a closed or locked period
4. A reference id is used at most once per ledger

No other service writes entries directly. Sales, adjustments,
corrections and opening balances all go through
record_transaction().
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import structlog
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenant_ledger.config import get_settings
from tenant_ledger.exceptions import (
    AccountNotFoundError,
    ClosedPeriodError,
    DuplicateReferenceError,
    ImbalancedEntriesError,
    LedgerNotFoundError,
    TransactionNotFoundError,
    UnresolvedAccountError,
    ValidationError,
)
from tenant_ledger.models.account import Account
from tenant_ledger.models.accounting_period import AccountingPeriod, FROZEN_STATUSES
from tenant_ledger.models.base import utcnow
from tenant_ledger.models.entry import Entry
from tenant_ledger.models.enums import (
    AccountType,
    EntryType,
    TransactionStatus,
    TransactionType,
    ENTITY_ACCOUNT_TYPES,
)
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.money import to_decimal, within_tolerance
from tenant_ledger.schemas.ledger import (
    BalanceCheck,
    EntryCreate,
    RecordTransactionRequest,
    TrialBalanceLine,
    TrialBalanceResponse,
)

logger = structlog.get_logger(__name__)


# Accounts every new ledger starts with. Entity accounts
# (one creator_balance per creator) are added on first use.
DEFAULT_CHART: dict[AccountType, str] = {
    AccountType.CASH: "Cash",
    AccountType.ACCOUNTS_RECEIVABLE: "Accounts Receivable",
    AccountType.TAX_RESERVE: "Tax Reserve",
    AccountType.CREATOR_POOL: "Creator Pool",
    AccountType.ACCOUNTS_PAYABLE: "Accounts Payable",
    AccountType.CREDIT_CARD: "Credit Card",
    AccountType.OWNER_EQUITY: "Owner Equity",
    AccountType.PLATFORM_REVENUE: "Platform Revenue",
    AccountType.EXPENSE: "Operating Expenses",
    AccountType.PROCESSING_FEES: "Processing Fees",
}


def today() -> date:
    return utcnow().date()


def check_entry_sides(entries) -> None:
    """
    Reject entry sets that cannot form a transaction: fewer than
    two entries, or no debit or no credit among them.

    Callers that assemble entries themselves (opening balances,
    adjustments) run this before building a RecordTransactionRequest,
    so the problem surfaces as a ValidationError instead of a
    schema error.
    """
    if len(entries) < 2:
        raise ValidationError(
            "A transaction needs at least two entries",
            details={"entries": len(entries)},
        )
    sides = {e.entry_type for e in entries}
    if EntryType.DEBIT not in sides or EntryType.CREDIT not in sides:
        raise ValidationError(
            "Transaction must contain at least one debit and one credit",
            details={"entry_types": sorted(side.value for side in sides)},
        )


class LedgerService:
    """
    All ledger reads and writes pass through this service.

    The service takes a database session as a constructor
    argument, so the caller controls the transaction boundary
    and decides when to commit or rollback.
    """

    def __init__(self, db: Session, tolerance: Decimal | None = None):
        self.db = db
        self.tolerance = (
            tolerance if tolerance is not None
            else get_settings().BALANCE_TOLERANCE
        )

    # --- Ledgers and accounts ---

    def get_ledger(self, ledger_id: uuid.UUID) -> Ledger:
        ledger = self.db.get(Ledger, ledger_id)
        if not ledger:
            raise LedgerNotFoundError(f"Ledger {ledger_id} not found")
        return ledger

    def provision_chart(self, ledger: Ledger) -> list[Account]:
        """Create the default chart of accounts for a new ledger."""
        accounts = [
            Account(
                ledger_id=ledger.id,
                account_type=account_type,
                name=name,
                currency=ledger.currency,
            )
            for account_type, name in DEFAULT_CHART.items()
        ]
        self.db.add_all(accounts)
        self.db.flush()
        return accounts

    def get_account(self, ledger_id: uuid.UUID, account_id: uuid.UUID) -> Account:
        account = self.db.get(Account, account_id)
        if not account or account.ledger_id != ledger_id:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    def find_account(
        self,
        ledger_id: uuid.UUID,
        account_type: AccountType,
        entity_id: str | None = None,
    ) -> Account | None:
        stmt = select(Account).where(
            Account.ledger_id == ledger_id,
            Account.account_type == account_type,
        )
        if entity_id:
            stmt = stmt.where(Account.entity_id == entity_id)
        else:
            stmt = stmt.where(Account.entity_id.is_(None))
        return self.db.execute(stmt).scalar_one_or_none()

    def resolve_account(
        self,
        ledger: Ledger,
        account_type: AccountType,
        entity_id: str | None = None,
    ) -> Account:
        """
        Find an account by (account_type, entity_id).

        Entity accounts are provisioned on first use. A missing
        ledger-level account means the chart is incomplete, which
        is an error rather than something to paper over.
        """
        account = self.find_account(ledger.id, account_type, entity_id)
        if account:
            if not account.is_active:
                raise ValidationError(f"Account {account.name} is not active")
            return account

        if entity_id and account_type in ENTITY_ACCOUNT_TYPES:
            account = Account(
                ledger_id=ledger.id,
                account_type=account_type,
                entity_id=entity_id,
                entity_type="creator",
                name=f"Creator {entity_id}",
                currency=ledger.currency,
            )
            self.db.add(account)
            self.db.flush()
            logger.info(
                "account_provisioned",
                ledger_id=str(ledger.id),
                account_type=account_type.value,
                entity_id=entity_id,
            )
            return account

        label = account_type.value + (f":{entity_id}" if entity_id else "")
        raise UnresolvedAccountError(
            f"Account not found: {label}",
            details={"account_type": account_type.value, "entity_id": entity_id},
        )

    def _resolve_entry_account(self, ledger: Ledger, entry: EntryCreate) -> Account:
        if entry.account_id is not None:
            account = self.db.get(Account, entry.account_id)
            if not account or account.ledger_id != ledger.id:
                raise UnresolvedAccountError(
                    f"Account not found: {entry.account_id}",
                    details={"account_id": str(entry.account_id)},
                )
            if not account.is_active:
                raise ValidationError(f"Account {account.name} is not active")
            return account
        return self.resolve_account(ledger, entry.account_type, entry.entity_id)

    # --- Periods ---

    def find_frozen_period(
        self, ledger_id: uuid.UUID, day: date
    ) -> AccountingPeriod | None:
        """Return the closed or locked period covering day, if any."""
        return self.db.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.ledger_id == ledger_id,
                AccountingPeriod.status.in_(FROZEN_STATUSES),
                AccountingPeriod.period_start <= day,
                AccountingPeriod.period_end >= day,
            )
            .order_by(AccountingPeriod.period_end.desc())
            .limit(1)
        ).scalar_one_or_none()

    def next_open_date(self, ledger_id: uuid.UUID, day: date | None = None) -> date:
        """
        First date on or after day that no frozen period covers.

        Adjacent closed periods are skipped one after another.
        """
        day = day or today()
        period = self.find_frozen_period(ledger_id, day)
        while period is not None:
            day = period.period_end + timedelta(days=1)
            period = self.find_frozen_period(ledger_id, day)
        return day

    def ensure_period_open(self, ledger_id: uuid.UUID, day: date) -> None:
        period = self.find_frozen_period(ledger_id, day)
        if period is None:
            return
        raise ClosedPeriodError(
            f"Accounting period {period.period_start} to {period.period_end} "
            f"is {period.status.value}",
            details={
                "period_id": str(period.id),
                "period_start": period.period_start.isoformat(),
                "period_end": period.period_end.isoformat(),
                "status": period.status.value,
                "next_open_date": self.next_open_date(ledger_id, day).isoformat(),
            },
        )

    # --- Writes ---

    def record_transaction(
        self, ledger_id: uuid.UUID, request: RecordTransactionRequest
    ) -> Transaction:
        """
        Record a transaction and its entries as one unit.

        This is the most critical method in the entire system.
        It enforces:
        - At least two entries, with a debit and a credit
        - Total debits equal total credits within tolerance
        - The reference id has not been used on this ledger
        - The effective date is not inside a closed period
        - Every account exists (or is an entity account that
          can be provisioned)

        If any check fails, nothing is written. The caller is
        responsible for calling db.commit() after this method
        returns successfully.
        """
        ledger = self.get_ledger(ledger_id)

        check_entry_sides(request.entries)

        # --- Enforce balance rule ---
        total_debits = sum(
            (e.amount for e in request.entries if e.entry_type == EntryType.DEBIT),
            Decimal("0"),
        )
        total_credits = sum(
            (e.amount for e in request.entries if e.entry_type == EntryType.CREDIT),
            Decimal("0"),
        )
        difference = total_debits - total_credits
        if not within_tolerance(difference, self.tolerance):
            raise ImbalancedEntriesError(
                f"Transaction does not balance: "
                f"debits={total_debits}, credits={total_credits}",
                details={
                    "debits": str(total_debits),
                    "credits": str(total_credits),
                    "difference": str(difference),
                },
            )

        # --- Check for duplicate reference ---
        existing = self.db.execute(
            select(Transaction.id).where(
                Transaction.ledger_id == ledger.id,
                Transaction.reference_id == request.reference_id,
            )
        ).scalar_one_or_none()
        if existing:
            raise DuplicateReferenceError(
                f"Reference {request.reference_id} already exists",
                details={
                    "reference_id": request.reference_id,
                    "transaction_id": str(existing),
                },
            )

        # --- Period guard ---
        effective_date = request.effective_date or today()
        self.ensure_period_open(ledger.id, effective_date)

        # --- Create transaction and entries ---
        accounts = [self._resolve_entry_account(ledger, e) for e in request.entries]

        txn = Transaction(
            ledger_id=ledger.id,
            transaction_type=request.transaction_type,
            reference_id=request.reference_id,
            description=request.description,
            amount=total_debits,
            currency=ledger.currency,
            status=TransactionStatus.COMPLETED,
            effective_date=effective_date,
            reverses_id=request.reverses_id,
            details=request.details,
        )
        txn.entries = [
            Entry(account=account, entry_type=e.entry_type, amount=e.amount)
            for account, e in zip(accounts, request.entries)
        ]
        self.db.add(txn)

        try:
            self.db.flush()
        except IntegrityError as exc:
            # Lost a race on (ledger_id, reference_id)
            self.db.rollback()
            raise DuplicateReferenceError(
                f"Reference {request.reference_id} already exists",
                details={"reference_id": request.reference_id},
            ) from exc

        logger.info(
            "transaction_recorded",
            ledger_id=str(ledger.id),
            transaction_id=str(txn.id),
            transaction_type=txn.transaction_type.value,
            reference_id=txn.reference_id,
            amount=str(txn.amount),
            entries=len(txn.entries),
        )
        return txn

    # --- Reads ---

    def get_transaction(
        self, ledger_id: uuid.UUID, transaction_id: uuid.UUID
    ) -> Transaction:
        txn = self.db.get(Transaction, transaction_id)
        if not txn or txn.ledger_id != ledger_id:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return txn

    def get_entries_by_account(self, account_id: uuid.UUID) -> list[Entry]:
        """Return all entries for an account, newest first."""
        entries = self.db.execute(
            select(Entry)
            .where(Entry.account_id == account_id)
            .order_by(Entry.created_at.desc(), Entry.id.desc())
        ).scalars().all()
        return list(entries)

    def _counted_transactions(self, ledger_id: uuid.UUID, as_of: date | None = None):
        """
        Ids of transactions whose entries count toward balances.

        Draft, voided and reversed transactions do not count, and
        neither does a reversal whose target is marked reversed:
        the pair cancels out and both drop from the totals.
        """
        reversed_ids = select(Transaction.id).where(
            Transaction.ledger_id == ledger_id,
            Transaction.status == TransactionStatus.REVERSED,
        )
        stmt = select(Transaction.id).where(
            Transaction.ledger_id == ledger_id,
            Transaction.status == TransactionStatus.COMPLETED,
            or_(
                Transaction.reverses_id.is_(None),
                Transaction.transaction_type != TransactionType.REVERSAL,
                Transaction.reverses_id.not_in(reversed_ids),
            ),
        )
        if as_of is not None:
            stmt = stmt.where(Transaction.effective_date <= as_of)
        return stmt

    def _entry_totals(
        self,
        ledger_id: uuid.UUID,
        account_id: uuid.UUID | None = None,
        as_of: date | None = None,
    ) -> dict[uuid.UUID, tuple[Decimal, Decimal]]:
        """Sum of (debits, credits) per account."""
        stmt = (
            select(
                Entry.account_id,
                Entry.entry_type,
                func.coalesce(func.sum(Entry.amount), 0),
            )
            .where(Entry.transaction_id.in_(self._counted_transactions(ledger_id, as_of)))
            .group_by(Entry.account_id, Entry.entry_type)
        )
        if account_id is not None:
            stmt = stmt.where(Entry.account_id == account_id)

        totals: dict[uuid.UUID, tuple[Decimal, Decimal]] = {}
        for acct_id, entry_type, amount in self.db.execute(stmt).all():
            debits, credits = totals.get(acct_id, (Decimal("0"), Decimal("0")))
            if entry_type == EntryType.DEBIT:
                debits += to_decimal(amount)
            else:
                credits += to_decimal(amount)
            totals[acct_id] = (debits, credits)
        return totals

    def compute_account_balance(self, account_id: uuid.UUID) -> Decimal:
        """
        Calculate an account's balance from its entries.

        Balance is never stored, it is always derived from the
        entries. This guarantees the balance is correct as long
        as the entries are correct.

        For asset and expense accounts: balance = debits - credits
        For liability, equity and revenue: balance = credits - debits
        """
        account = self.db.get(Account, account_id)
        if not account:
            raise AccountNotFoundError(f"Account {account_id} not found")

        debits, credits = self._entry_totals(
            account.ledger_id, account_id=account.id
        ).get(account.id, (Decimal("0"), Decimal("0")))

        if account.is_debit_normal:
            return debits - credits
        return credits - debits

    def signed_balances(
        self, ledger_id: uuid.UUID, as_of: date | None = None
    ) -> list[tuple[Account, Decimal]]:
        """
        Debit-positive balance of every active account.

        Ordered by account type, then entity id, so the output is
        stable enough to hash.
        """
        accounts = self.db.execute(
            select(Account).where(
                Account.ledger_id == ledger_id,
                Account.is_active.is_(True),
            )
        ).scalars().all()
        totals = self._entry_totals(ledger_id, as_of=as_of)

        rows = []
        for account in accounts:
            debits, credits = totals.get(account.id, (Decimal("0"), Decimal("0")))
            rows.append((account, debits - credits))
        rows.sort(key=lambda r: (r[0].account_type.value, r[0].entity_id or ""))
        return rows

    def balance_check(
        self, ledger_id: uuid.UUID, as_of: date | None = None
    ) -> BalanceCheck:
        signed = [balance for _, balance in self.signed_balances(ledger_id, as_of)]
        total_debits = sum((b for b in signed if b > 0), Decimal("0"))
        total_credits = sum((-b for b in signed if b < 0), Decimal("0"))
        difference = total_debits - total_credits
        return BalanceCheck(
            total_debits=total_debits,
            total_credits=total_credits,
            difference=difference,
            is_balanced=within_tolerance(difference, self.tolerance),
        )

    def is_ledger_balanced(self, ledger_id: uuid.UUID) -> bool:
        """Total of debit-side balances equals total of credit-side balances."""
        return self.balance_check(ledger_id).is_balanced

    def trial_balance(
        self, ledger_id: uuid.UUID, as_of: date | None = None
    ) -> TrialBalanceResponse:
        """Live trial balance. Nothing is persisted."""
        self.get_ledger(ledger_id)
        lines = []
        total_debits = Decimal("0")
        total_credits = Decimal("0")
        for account, balance in self.signed_balances(ledger_id, as_of):
            debit = balance if balance > 0 else Decimal("0")
            credit = -balance if balance < 0 else Decimal("0")
            total_debits += debit
            total_credits += credit
            lines.append(TrialBalanceLine(
                account_id=account.id,
                account_type=account.account_type,
                entity_id=account.entity_id,
                name=account.name,
                debit=debit,
                credit=credit,
            ))

        difference = total_debits - total_credits
        return TrialBalanceResponse(
            ledger_id=ledger_id,
            as_of_date=as_of or today(),
            accounts=lines,
            total_debits=total_debits,
            total_credits=total_credits,
            difference=difference,
            is_balanced=within_tolerance(difference, self.tolerance),
        )
