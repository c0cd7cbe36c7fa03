"""
Pydantic schemas for adjustments, opening balances and reversals.

Amounts on these requests are integer cents.
"""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from tenant_ledger.models.enums import (
    AccountType,
    AdjustmentType,
    EntryType,
    OpeningBalanceSource,
)


# --- Adjustments ---

class AdjustmentEntry(BaseModel):
    account_type: AccountType
    entity_id: str | None = Field(default=None, max_length=100)
    entry_type: EntryType
    amount: int = Field(gt=0, description="Amount in cents")


class RecordAdjustmentRequest(BaseModel):
    adjustment_type: AdjustmentType
    adjustment_date: date | None = None
    entries: list[AdjustmentEntry] = Field(min_length=2)
    reason: str = Field(min_length=1, max_length=2000)
    prepared_by: str = Field(min_length=1, max_length=200)
    original_transaction_id: uuid.UUID | None = None
    supporting_documentation: str | None = Field(default=None, max_length=2000)
    reference_id: str | None = Field(default=None, max_length=255)


class RecordAdjustmentResponse(BaseModel):
    success: bool = True
    transaction_id: uuid.UUID
    adjustment_id: uuid.UUID
    entries_created: int


# --- Reversals ---

class ReverseTransactionRequest(BaseModel):
    transaction_id: uuid.UUID
    reason: str = Field(min_length=1, max_length=2000)
    prepared_by: str = Field(default="api", max_length=200)


class ReverseTransactionResponse(BaseModel):
    success: bool = True
    original_transaction_id: uuid.UUID
    reversal_transaction_id: uuid.UUID
    effective_date: date
    # True when the original sat in a closed period and the
    # reversal was posted forward as a correction
    forward_correction: bool
    adjustment_id: uuid.UUID | None = None


# --- Opening balances ---

class OpeningBalanceLine(BaseModel):
    """
    Starting balance of one account, in cents.

    Positive balances are debits, negative balances are credits,
    so liabilities and equity are normally given as negatives.
    """
    account_type: AccountType
    entity_id: str | None = Field(default=None, max_length=100)
    balance: int


class RecordOpeningBalanceRequest(BaseModel):
    as_of_date: date
    source: OpeningBalanceSource = OpeningBalanceSource.MANUAL
    source_description: str | None = Field(default=None, max_length=500)
    balances: list[OpeningBalanceLine] = Field(min_length=1)

    @field_validator("balances")
    @classmethod
    def must_have_a_non_zero_balance(cls, v: list) -> list:
        if not any(line.balance for line in v):
            raise ValueError("at least one balance must be non-zero")
        return v


class OpeningBalanceSummary(BaseModel):
    as_of_date: date
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    accounts_set: int


class RecordOpeningBalanceResponse(BaseModel):
    success: bool = True
    opening_balance_id: uuid.UUID
    transaction_id: uuid.UUID
    summary: OpeningBalanceSummary
