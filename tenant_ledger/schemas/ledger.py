"""
Pydantic schemas for ledger operations.

These define the API contract: what data comes in, what data
goes out. They are separate from the database models because
the API shape and the storage shape are often different.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from tenant_ledger.models.enums import (
    AccountType,
    EntryType,
    TransactionStatus,
    TransactionType,
)


# --- Request Schemas ---

class EntryCreate(BaseModel):
    """
    A single debit or credit in a transaction.

    The account is addressed either directly by account_id or by
    (account_type, entity_id), which is how API callers see it.
    """
    account_id: uuid.UUID | None = None
    account_type: AccountType | None = None
    entity_id: str | None = Field(default=None, max_length=100)
    entry_type: EntryType
    amount: Decimal = Field(gt=0)

    @model_validator(mode="after")
    def must_address_an_account(self) -> "EntryCreate":
        if self.account_id is None and self.account_type is None:
            raise ValueError("entry needs either account_id or account_type")
        return self


class RecordTransactionRequest(BaseModel):
    """
    A complete transaction: a group of entries that must balance.

    reference_id is unique per ledger, so a retried submission
    with the same reference is rejected instead of double-posted.
    """
    transaction_type: TransactionType
    reference_id: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=500)
    entries: list[EntryCreate] = Field(min_length=2)
    effective_date: date | None = None
    reverses_id: uuid.UUID | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("entries")
    @classmethod
    def must_have_debits_and_credits(cls, v: list) -> list:
        types = {e.entry_type for e in v}
        if EntryType.DEBIT not in types or EntryType.CREDIT not in types:
            raise ValueError(
                "transaction must contain at least one debit and one credit"
            )
        return v


# --- Response Schemas ---

class EntryResponse(BaseModel):
    id: int
    account_id: uuid.UUID
    entry_type: EntryType
    amount: Decimal

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: uuid.UUID
    ledger_id: uuid.UUID
    transaction_type: TransactionType
    reference_id: str
    description: str
    amount: Decimal
    currency: str
    status: TransactionStatus
    effective_date: date
    reverses_id: uuid.UUID | None
    created_at: datetime
    entries: list[EntryResponse]

    model_config = {"from_attributes": True}


class AccountBalanceResponse(BaseModel):
    """Balance of one account on its normal side."""
    account_id: uuid.UUID
    account_type: AccountType
    entity_id: str | None
    name: str
    balance: Decimal
    currency: str


class BalanceCheck(BaseModel):
    """Ledger-wide debit/credit totals from signed account balances."""
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool


class TrialBalanceLine(BaseModel):
    account_id: uuid.UUID
    account_type: AccountType
    entity_id: str | None
    name: str
    debit: Decimal
    credit: Decimal


class TrialBalanceResponse(BaseModel):
    ledger_id: uuid.UUID
    as_of_date: date
    accounts: list[TrialBalanceLine]
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool
