"""
Pydantic schemas for organizations, members and ledgers.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tenant_ledger.models.enums import BillingStatus, LedgerStatus, MemberStatus


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    owner_email: str | None = Field(default=None, max_length=255)
    # -1 means unlimited
    max_ledgers: int = Field(default=1, ge=-1)
    max_team_members: int = Field(default=1, ge=-1)
    max_transactions: int = Field(default=1000, ge=-1)
    overage_ledger_price: int = Field(default=2000, ge=0)
    overage_team_member_price: int = Field(default=2000, ge=0)
    overage_transaction_price: int = Field(default=2, ge=0)
    billing_source_id: str | None = Field(default=None, max_length=100)


class OrganizationResponse(BaseModel):
    id: uuid.UUID
    name: str
    owner_email: str | None
    billing_status: BillingStatus
    max_ledgers: int
    max_team_members: int
    max_transactions: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BillingStatusUpdate(BaseModel):
    """Request to move an organization to a new billing status."""
    new_status: BillingStatus
    reason: str = Field(min_length=1, max_length=500)


class MemberCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    role: str = Field(default="member", max_length=20)
    status: MemberStatus = MemberStatus.ACTIVE


class LedgerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    livemode: bool = True
    currency: str = Field(default="USD", min_length=3, max_length=3)
    default_creator_percent: Decimal | None = Field(default=None, ge=0, le=100)


class LedgerResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    livemode: bool
    status: LedgerStatus
    currency: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ApiKeyResponse(BaseModel):
    """The plaintext key is returned once and never stored."""
    ledger_id: uuid.UUID
    api_key: str
