"""
Pydantic schemas for period close and snapshots.
"""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from tenant_ledger.models.enums import PeriodStatus


class ClosePeriodRequest(BaseModel):
    """Close one calendar month or one quarter of a fiscal year."""
    year: int = Field(ge=2000, le=2100)
    month: int | None = Field(default=None, ge=1, le=12)
    quarter: int | None = Field(default=None, ge=1, le=4)
    notes: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def exactly_one_of_month_or_quarter(self) -> "ClosePeriodRequest":
        if (self.month is None) == (self.quarter is None):
            raise ValueError("provide exactly one of month or quarter")
        return self


class PeriodSummary(BaseModel):
    start_date: date
    end_date: date
    status: PeriodStatus


class SnapshotSummary(BaseModel):
    snapshot_id: uuid.UUID
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


class ClosePeriodResponse(BaseModel):
    success: bool = True
    period_id: uuid.UUID
    period: PeriodSummary
    snapshot: SnapshotSummary


class SnapshotVerification(BaseModel):
    snapshot_id: uuid.UUID
    integrity_valid: bool
    stored_hash: str
    computed_hash: str
