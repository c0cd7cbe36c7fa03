"""
Billing overage charge model.

One row per (organization, calendar month). The unique
constraint on (organization_id, period_start) is the idempotency
anchor of overage billing: every run for the same month lands on
the same row, and only the run that wins the claim on that row
may call the payment processor.

The usage columns are a snapshot of what the amount was computed
from, so a charge can be explained after the fact.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    String, Integer, Date, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, CheckConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import ChargeStatus


class BillingOverageCharge(Base):
    __tablename__ = "billing_overage_charges"
    __table_args__ = (
        UniqueConstraint(
            "organization_id", "period_start",
            name="uq_billing_overage_charges_org_period",
        ),
        CheckConstraint("amount_cents >= 0", name="ck_overage_amount_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")

    # Usage snapshot
    included_ledgers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    included_team_members: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    included_transactions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    current_ledger_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    current_member_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    current_transaction_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    additional_ledgers: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    additional_team_members: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    additional_transactions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    overage_ledger_price: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2000
    )
    overage_team_member_price: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2000
    )
    overage_transaction_price: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2
    )

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ChargeStatus] = mapped_column(
        db_enum(ChargeStatus, "charge_status_enum"),
        nullable=False,
        default=ChargeStatus.PENDING,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    processor_payment_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<BillingOverageCharge {self.period_start} {self.amount_cents}c "
            f"({self.status.value}, attempts={self.attempts})>"
        )
