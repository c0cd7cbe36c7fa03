"""
Trial balance snapshot model.

An immutable record of every account balance at a point in time,
the debit and credit totals, and a SHA-256 hash of the balance
set. Like entries and audit records, snapshots are append-only.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, Date, DateTime, Numeric, ForeignKey, JSON, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import SnapshotType


class TrialBalanceSnapshot(Base):
    __tablename__ = "trial_balance_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    snapshot_type: Mapped[SnapshotType] = mapped_column(
        db_enum(SnapshotType, "snapshot_type_enum"), nullable=False
    )
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    balances: Mapped[list] = mapped_column(JSON, nullable=False)
    total_debits: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    total_credits: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    is_balanced: Mapped[bool] = mapped_column(Boolean, nullable=False)
    balance_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<TrialBalanceSnapshot {self.as_of_date} {self.balance_hash[:12]}>"
