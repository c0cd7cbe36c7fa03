"""
Pydantic schemas for client operations: sales, expenses, payouts.

Amounts are integer cents.
"""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class SaleRequest(BaseModel):
    """
    A sale split between a creator and the platform.

    creator_percent falls back to the ledger default, then to
    the DEFAULT_CREATOR_PERCENT setting.
    """
    reference_id: str = Field(min_length=1, max_length=255)
    creator_id: str = Field(min_length=1, max_length=100)
    amount: int = Field(gt=0, description="Gross sale amount in cents")
    creator_percent: Decimal | None = Field(default=None, ge=0, le=100)
    processing_fee: int = Field(default=0, ge=0, description="Cents, borne by the platform")
    description: str | None = Field(default=None, max_length=500)
    effective_date: date | None = None


class SaleResponse(BaseModel):
    success: bool = True
    transaction_id: uuid.UUID
    amount: Decimal
    creator_amount: Decimal
    platform_amount: Decimal


class ExpenseRequest(BaseModel):
    reference_id: str = Field(min_length=1, max_length=255)
    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=500)
    category: str | None = Field(default=None, max_length=100)
    # Paid from cash unless put on the card
    paid_with_credit_card: bool = False
    effective_date: date | None = None


class PayoutRequest(BaseModel):
    reference_id: str = Field(min_length=1, max_length=255)
    creator_id: str = Field(min_length=1, max_length=100)
    amount: int = Field(gt=0)
    description: str | None = Field(default=None, max_length=500)
    effective_date: date | None = None


class OperationResponse(BaseModel):
    """Response after posting an expense or payout."""
    success: bool = True
    transaction_id: uuid.UUID
    amount: Decimal
