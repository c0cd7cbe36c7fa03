"""
Pydantic schemas for bank reconciliation.
"""

import enum
import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class ReconcileAction(str, enum.Enum):
    MATCH = "match"
    UNMATCH = "unmatch"
    AUTO_MATCH = "auto_match"
    LIST_UNMATCHED = "list_unmatched"
    IMPORT = "import"
    CREATE_SNAPSHOT = "create_snapshot"
    GET_SNAPSHOT = "get_snapshot"


class BankTransactionIn(BaseModel):
    """A bank-feed record. Amount is signed, in major units."""
    external_id: str = Field(min_length=1, max_length=255)
    transaction_date: date
    amount: Decimal
    description: str = Field(default="", max_length=500)


# Fields each action cannot do without
_REQUIRED_FIELDS = {
    ReconcileAction.MATCH: ("transaction_id", "bank_transaction_id"),
    ReconcileAction.UNMATCH: ("transaction_id",),
    ReconcileAction.IMPORT: ("bank_transactions",),
    ReconcileAction.GET_SNAPSHOT: ("snapshot_id",),
}


class ReconcileRequest(BaseModel):
    action: ReconcileAction
    transaction_id: uuid.UUID | None = None
    bank_transaction_id: uuid.UUID | None = None
    bank_transactions: list[BankTransactionIn] | None = None
    period_id: uuid.UUID | None = None
    as_of_date: date | None = None
    snapshot_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def action_fields_present(self) -> "ReconcileRequest":
        missing = [
            name for name in _REQUIRED_FIELDS.get(self.action, ())
            if getattr(self, name) is None
        ]
        if missing:
            raise ValueError(
                f"{self.action.value} requires: {', '.join(missing)}"
            )
        return self


class BankTransactionResponse(BaseModel):
    id: uuid.UUID
    external_id: str
    transaction_date: date
    amount: Decimal
    description: str

    model_config = {"from_attributes": True}


class UnmatchedTransaction(BaseModel):
    id: uuid.UUID
    reference_id: str
    transaction_type: str
    amount: Decimal
    effective_date: date


class MatchResult(BaseModel):
    success: bool = True
    transaction_id: uuid.UUID
    bank_transaction_id: uuid.UUID | None = None
    matched: bool


class AutoMatchResult(BaseModel):
    success: bool = True
    matched: int
    pairs: list[MatchResult]
    # Bank records with more than one equally good candidate
    ambiguous_bank_transaction_ids: list[uuid.UUID]


class UnmatchedResult(BaseModel):
    success: bool = True
    transactions: list[UnmatchedTransaction]
    bank_transactions: list[BankTransactionResponse]


class ImportResult(BaseModel):
    success: bool = True
    imported: int
    skipped_duplicates: int


class ReconciliationSnapshotResult(BaseModel):
    success: bool = True
    snapshot_id: uuid.UUID
    period_start: date
    period_end: date
    matched_count: int
    unmatched_count: int
    matched_total: Decimal
    unmatched_total: Decimal
    integrity_hash: str
    integrity_valid: bool
