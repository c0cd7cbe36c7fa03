"""
Pydantic schemas for usage metering and overage billing.
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field


class UsageCounts(BaseModel):
    ledgers: int = Field(ge=0)
    team_members: int = Field(ge=0)
    transactions: int = Field(ge=0)


class PlanAllowance(BaseModel):
    """Included quantities (-1 = unlimited) and unit prices in cents."""
    included_ledgers: int
    included_team_members: int
    included_transactions: int
    ledger_price: int
    team_member_price: int
    transaction_price: int


class OverageQuote(BaseModel):
    """What an organization owes for one period, and why."""
    usage: UsageCounts
    allowance: PlanAllowance
    additional_ledgers: int
    additional_team_members: int
    additional_transactions: int
    amount_cents: int


class BillOveragesRequest(BaseModel):
    period_start: date | None = None
    period_end: date | None = None
    organization_id: uuid.UUID | None = None
    dry_run: bool = False


class OverageResult(BaseModel):
    organization_id: uuid.UUID
    status: str
    reason: str | None = None
    charge_id: uuid.UUID | None = None
    amount_cents: int | None = None
    attempts: int | None = None
    retries_remaining: int | None = None
    next_retry_at: datetime | None = None
    processor_payment_id: str | None = None
    error: str | None = None
    billing_source_configured: bool | None = None
    quote: OverageQuote | None = None


class BillOveragesResponse(BaseModel):
    success: bool = True
    period_start: date
    period_end: date
    dry_run: bool
    charged: int
    skipped: int
    failed: int
    results: list[OverageResult]
