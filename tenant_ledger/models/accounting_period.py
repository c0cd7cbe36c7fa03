"""
Accounting period model.

A period moves open -> closed (or locked) exactly once. When it
closes it keeps a copy of the trial balance and the hash of that
balance set, so any later tampering with history is detectable.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    String, Integer, Date, DateTime, Text, ForeignKey, JSON,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import PeriodType, PeriodStatus


# Closed and locked periods accept no further writes.
FROZEN_STATUSES = (PeriodStatus.CLOSED, PeriodStatus.LOCKED)


class AccountingPeriod(Base):
    __tablename__ = "accounting_periods"
    __table_args__ = (
        UniqueConstraint(
            "ledger_id", "period_start", "period_end",
            name="uq_accounting_periods_ledger_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    period_type: Mapped[PeriodType] = mapped_column(
        db_enum(PeriodType, "period_type_enum"), nullable=False
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PeriodStatus] = mapped_column(
        db_enum(PeriodStatus, "period_status_enum"),
        nullable=False,
        default=PeriodStatus.OPEN,
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    close_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    closing_trial_balance: Mapped[list | None] = mapped_column(
        JSON, nullable=True
    )
    closing_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    snapshot_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("trial_balance_snapshots.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_frozen(self) -> bool:
        return self.status in FROZEN_STATUSES

    def contains(self, day: date) -> bool:
        return self.period_start <= day <= self.period_end

    def __repr__(self) -> str:
        return (
            f"<AccountingPeriod {self.period_start}..{self.period_end} "
            f"({self.status.value})>"
        )
