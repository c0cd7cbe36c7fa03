"""
Overage billing service: the monthly dunning run.

For every organization the run meters usage, then tries to
collect any overage exactly once per calendar month:

1. The charge row for (organization, period_start) is inserted
   or refreshed with a single INSERT ... ON CONFLICT DO UPDATE
   that only touches rows still pending or failed with attempts left.
2. A compare-and-set UPDATE moves the row to processing and
   bumps attempts. Only the caller whose UPDATE hit exactly one
   row goes on to charge; everyone else skips.
3. The claim is committed before the processor is called, so a
   second run started mid-charge sees processing and skips.

Failed charges are retried on later runs after 0, 3 and 7 days,
three attempts in total. The third failure is terminal and
moves the organization to past_due.

Unlike the other services this one commits: each organization's
claim and outcome must be durable independently of the others.
"""

import uuid
from datetime import date, datetime, timedelta

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from tenant_ledger.config import Settings, get_settings
from tenant_ledger.exceptions import PaymentConfigurationError, ValidationError
from tenant_ledger.models.base import utcnow
from tenant_ledger.models.billing_overage_charge import BillingOverageCharge
from tenant_ledger.models.enums import BillingStatus, ChargeStatus
from tenant_ledger.models.organization import Organization
from tenant_ledger.schemas.billing import (
    BillOveragesRequest,
    BillOveragesResponse,
    OverageQuote,
    OverageResult,
)
from tenant_ledger.schemas.organization import BillingStatusUpdate
from tenant_ledger.services.audit_service import AuditService
from tenant_ledger.services.notifications import OwnerNotifier
from tenant_ledger.services.organization_service import OrganizationService
from tenant_ledger.services.payment_gateway import (
    ChargeRequest,
    ChargeResult,
    HttpPaymentGateway,
    PaymentGateway,
)
from tenant_ledger.services.usage_service import UsageService

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3
# Wait before attempt n+1, indexed by attempts already made
RETRY_DELAY_DAYS = (0, 3, 7)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# Columns refreshed from the latest usage while a charge is retryable
_SNAPSHOT_COLUMNS = (
    "period_end",
    "currency",
    "included_ledgers",
    "included_team_members",
    "included_transactions",
    "current_ledger_count",
    "current_member_count",
    "current_transaction_count",
    "additional_ledgers",
    "additional_team_members",
    "additional_transactions",
    "overage_ledger_price",
    "overage_team_member_price",
    "overage_transaction_price",
    "amount_cents",
)


def previous_month(now: datetime) -> tuple[date, date]:
    """[first day of last month, first day of this month)"""
    this_month = date(now.year, now.month, 1)
    last_day = this_month - timedelta(days=1)
    return date(last_day.year, last_day.month, 1), this_month


def month_after(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def retry_delay(attempts: int) -> timedelta:
    return timedelta(days=RETRY_DELAY_DAYS[min(attempts, len(RETRY_DELAY_DAYS) - 1)])


def next_retry_at(charge: BillingOverageCharge) -> datetime | None:
    """When a failed charge becomes due again; None if it never will."""
    if charge.status != ChargeStatus.FAILED or charge.attempts >= MAX_ATTEMPTS:
        return None
    if charge.last_attempt_at is None:
        return None
    return charge.last_attempt_at + retry_delay(charge.attempts)


def skip_reason(charge: BillingOverageCharge, now: datetime) -> str | None:
    """
    Why this charge must not be attempted now, or None if it is due.

    pending is always due. failed is due once its retry delay
    has passed and attempts remain.
    """
    if charge.status == ChargeStatus.PENDING:
        return None
    if charge.status in (ChargeStatus.PROCESSING, ChargeStatus.SUCCEEDED):
        return "already_processed_or_in_progress"
    if charge.attempts >= MAX_ATTEMPTS:
        return "retries_exhausted"
    due_at = next_retry_at(charge)
    if due_at is not None and now < due_at:
        return "not_due"
    return None


class OverageBillingService:

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway | None = None,
        notifier: OwnerNotifier | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.gateway = gateway or HttpPaymentGateway()
        self.notifier = notifier or OwnerNotifier()
        self.usage = UsageService(db)
        self.organizations = OrganizationService(db)
        self.audit = AuditService(db)

    # --- Run ---

    def run(
        self, request: BillOveragesRequest, now: datetime | None = None
    ) -> BillOveragesResponse:
        now = now or utcnow()
        period_start = request.period_start or previous_month(now)[0]
        period_end = request.period_end or month_after(period_start)
        if period_start >= period_end:
            raise ValidationError(
                "period_start must be before period_end",
                details={
                    "period_start": period_start.isoformat(),
                    "period_end": period_end.isoformat(),
                },
            )

        if request.organization_id:
            orgs = [self.organizations.get_organization(request.organization_id)]
        else:
            orgs = list(self.db.execute(
                select(Organization).order_by(Organization.created_at, Organization.id)
            ).scalars().all())

        results = []
        for org in orgs:
            organization_id = org.id
            try:
                results.append(self._bill_organization(
                    org, period_start, period_end, request.dry_run, now
                ))
            except Exception as exc:
                # One organization's failure must not stop the batch.
                # A row already claimed stays in processing for an operator.
                self.db.rollback()
                logger.exception(
                    "overage_billing_organization_error",
                    organization_id=str(organization_id),
                    period_start=period_start.isoformat(),
                )
                results.append(OverageResult(
                    organization_id=organization_id, status="error", error=str(exc)
                ))
        if request.dry_run:
            self.db.rollback()

        response = BillOveragesResponse(
            period_start=period_start,
            period_end=period_end,
            dry_run=request.dry_run,
            charged=sum(1 for r in results if r.status == "succeeded"),
            skipped=sum(1 for r in results if r.status == "skipped"),
            failed=sum(1 for r in results if r.status in ("failed", "error")),
            results=results,
        )
        logger.info(
            "overage_billing_run_completed",
            period_start=period_start.isoformat(),
            dry_run=request.dry_run,
            organizations=len(results),
            charged=response.charged,
            skipped=response.skipped,
            failed=response.failed,
        )
        return response

    def _bill_organization(
        self,
        org: Organization,
        period_start: date,
        period_end: date,
        dry_run: bool,
        now: datetime,
    ) -> OverageResult:
        log = logger.bind(
            organization_id=str(org.id), period_start=period_start.isoformat()
        )

        if not self.organizations.is_billable(org):
            return OverageResult(
                organization_id=org.id, status="skipped", reason="org_inactive"
            )

        quote = self.usage.quote(org, period_start, period_end)
        if quote.amount_cents <= 0:
            return OverageResult(
                organization_id=org.id, status="skipped", reason="no_overage",
                amount_cents=0, quote=quote,
            )

        if dry_run:
            return self._dry_run_result(org, quote, period_start, now)

        charge = self._upsert_charge(org, quote, period_start, period_end, now)
        reason = skip_reason(charge, now)
        if reason is None and not self._claim(charge, now):
            reason = "already_processed_or_in_progress"
        if reason is not None:
            self.db.commit()
            log.info("overage_charge_skipped", reason=reason, charge_id=str(charge.id))
            return OverageResult(
                organization_id=org.id,
                status="skipped",
                reason=reason,
                charge_id=charge.id,
                amount_cents=charge.amount_cents,
                attempts=charge.attempts,
                next_retry_at=next_retry_at(charge) if reason == "not_due" else None,
            )

        # The claim must be durable before the processor is called
        self.db.commit()
        log.info("overage_charge_claimed", charge_id=str(charge.id), attempt=charge.attempts)
        return self._attempt_charge(org, charge, now)

    def _dry_run_result(
        self,
        org: Organization,
        quote: OverageQuote,
        period_start: date,
        now: datetime,
    ) -> OverageResult:
        """Report what a live run would do, without writing anything."""
        charge = self._find_charge(org.id, period_start)
        reason = skip_reason(charge, now) if charge else None
        return OverageResult(
            organization_id=org.id,
            status="dry_run",
            reason=reason or "would_charge",
            charge_id=charge.id if charge else None,
            amount_cents=quote.amount_cents,
            attempts=charge.attempts if charge else 0,
            next_retry_at=next_retry_at(charge) if charge else None,
            billing_source_configured=bool(org.billing_source_id),
            quote=quote,
        )

    # --- Claim ---

    def _find_charge(
        self, organization_id: uuid.UUID, period_start: date
    ) -> BillingOverageCharge | None:
        return self.db.execute(
            select(BillingOverageCharge)
            .where(
                BillingOverageCharge.organization_id == organization_id,
                BillingOverageCharge.period_start == period_start,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _upsert_charge(
        self,
        org: Organization,
        quote: OverageQuote,
        period_start: date,
        period_end: date,
        now: datetime,
    ) -> BillingOverageCharge:
        """
        Insert the charge row, or refresh its usage snapshot if it
        is still pending or failed with attempts left. Rows in
        processing, succeeded or out of retries are left as they are.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Overage billing does not support {dialect}")

        stmt = insert(BillingOverageCharge).values(
            id=uuid.uuid4(),
            organization_id=org.id,
            period_start=period_start,
            period_end=period_end,
            currency=self.settings.BILLING_CURRENCY,
            included_ledgers=quote.allowance.included_ledgers,
            included_team_members=quote.allowance.included_team_members,
            included_transactions=quote.allowance.included_transactions,
            current_ledger_count=quote.usage.ledgers,
            current_member_count=quote.usage.team_members,
            current_transaction_count=quote.usage.transactions,
            additional_ledgers=quote.additional_ledgers,
            additional_team_members=quote.additional_team_members,
            additional_transactions=quote.additional_transactions,
            overage_ledger_price=quote.allowance.ledger_price,
            overage_team_member_price=quote.allowance.team_member_price,
            overage_transaction_price=quote.allowance.transaction_price,
            amount_cents=quote.amount_cents,
            status=ChargeStatus.PENDING,
            attempts=0,
            raw={},
            created_at=now,
            updated_at=now,
        )
        refresh = {column: stmt.excluded[column] for column in _SNAPSHOT_COLUMNS}
        refresh["updated_at"] = now
        stmt = stmt.on_conflict_do_update(
            index_elements=["organization_id", "period_start"],
            set_=refresh,
            where=and_(
                BillingOverageCharge.status.in_(
                    [ChargeStatus.PENDING, ChargeStatus.FAILED]
                ),
                BillingOverageCharge.attempts < MAX_ATTEMPTS,
            ),
        )
        self.db.execute(stmt)
        return self._find_charge(org.id, period_start)

    def _claim(self, charge: BillingOverageCharge, now: datetime) -> bool:
        """
        Compare-and-set the row into processing.

        Succeeds only if status and attempts are still what this
        caller read; a concurrent claimer changes at least one.
        """
        result = self.db.execute(
            update(BillingOverageCharge)
            .where(
                BillingOverageCharge.id == charge.id,
                BillingOverageCharge.status == charge.status,
                BillingOverageCharge.attempts == charge.attempts,
            )
            .values(
                status=ChargeStatus.PROCESSING,
                attempts=BillingOverageCharge.attempts + 1,
                last_attempt_at=now,
                error=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self.db.refresh(charge)
        return True

    # --- Charge ---

    def _attempt_charge(
        self, org: Organization, charge: BillingOverageCharge, now: datetime
    ) -> OverageResult:
        if not org.billing_source_id:
            return self._record_failure(org, charge, "billing_method_not_configured", now)
        if not self.settings.BILLING_MERCHANT_ID or not self.settings.BILLING_DESTINATION_ID:
            return self._record_failure(org, charge, "platform_billing_not_configured", now)

        request = ChargeRequest(
            amount_cents=charge.amount_cents,
            currency=charge.currency,
            payment_method_id=org.billing_source_id,
            merchant_id=self.settings.BILLING_MERCHANT_ID,
            destination_id=self.settings.BILLING_DESTINATION_ID,
            description=f"Usage overage {charge.period_start:%Y-%m}",
            idempotency_key=f"{charge.id}:{charge.attempts}",
            metadata={
                "organization_id": str(org.id),
                "charge_id": str(charge.id),
                "period_start": charge.period_start.isoformat(),
            },
        )
        try:
            outcome = self.gateway.charge(request)
        except PaymentConfigurationError as exc:
            return self._record_failure(
                org, charge, f"payment_configuration_error: {exc}", now
            )

        if outcome.success and not outcome.payment_id:
            return self._record_failure(
                org, charge, "processor_missing_payment_id", now, raw=outcome.raw
            )
        if outcome.success:
            return self._record_success(org, charge, outcome)
        return self._record_failure(
            org, charge, outcome.error or "charge_failed", now, raw=outcome.raw
        )

    def _record_success(
        self, org: Organization, charge: BillingOverageCharge, outcome: ChargeResult
    ) -> OverageResult:
        charge.status = ChargeStatus.SUCCEEDED
        charge.processor_payment_id = outcome.payment_id
        charge.raw = outcome.raw
        charge.error = None

        if org.billing_status == BillingStatus.PAST_DUE:
            self.organizations.change_billing_status(
                org.id,
                BillingStatusUpdate(
                    new_status=BillingStatus.ACTIVE,
                    reason="overage charge succeeded",
                ),
            )
        self.audit.record(
            "overage_charge_succeeded", "billing_overage_charge", charge.id,
            organization_id=org.id, actor_type="service",
            details={
                "amount_cents": charge.amount_cents,
                "processor_payment_id": outcome.payment_id,
                "attempts": charge.attempts,
            },
        )
        self.db.commit()

        logger.info(
            "overage_charge_succeeded",
            organization_id=str(org.id),
            charge_id=str(charge.id),
            amount_cents=charge.amount_cents,
            processor_payment_id=outcome.payment_id,
        )
        return OverageResult(
            organization_id=org.id,
            status="succeeded",
            charge_id=charge.id,
            amount_cents=charge.amount_cents,
            attempts=charge.attempts,
            processor_payment_id=outcome.payment_id,
        )

    def _record_failure(
        self,
        org: Organization,
        charge: BillingOverageCharge,
        error: str,
        now: datetime,
        raw: dict | None = None,
    ) -> OverageResult:
        charge.status = ChargeStatus.FAILED
        charge.error = error
        charge.raw = raw or {}
        terminal = charge.attempts >= MAX_ATTEMPTS

        if terminal and org.can_transition_to(BillingStatus.PAST_DUE):
            self.organizations.change_billing_status(
                org.id,
                BillingStatusUpdate(
                    new_status=BillingStatus.PAST_DUE,
                    reason=f"overage charge failed {charge.attempts} times",
                ),
            )
        self.audit.record(
            "overage_charge_failed", "billing_overage_charge", charge.id,
            organization_id=org.id, actor_type="service",
            details={
                "amount_cents": charge.amount_cents,
                "attempts": charge.attempts,
                "error": error,
                "terminal": terminal,
            },
        )
        self.db.commit()

        logger.warning(
            "overage_charge_failed",
            organization_id=str(org.id),
            charge_id=str(charge.id),
            attempts=charge.attempts,
            error=error,
            terminal=terminal,
        )
        if terminal:
            self.notifier.billing_failed(org, charge)

        return OverageResult(
            organization_id=org.id,
            status="failed",
            charge_id=charge.id,
            amount_cents=charge.amount_cents,
            attempts=charge.attempts,
            retries_remaining=max(0, MAX_ATTEMPTS - charge.attempts),
            next_retry_at=next_retry_at(charge),
            error=error,
        )
