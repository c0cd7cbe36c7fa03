"""
Reconciliation snapshot model.

Freezes the matched/unmatched picture for a period together with
an integrity hash, so a later read can prove nothing changed.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Integer, Date, DateTime, Numeric, String, ForeignKey, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tenant_ledger.models.base import Base, utcnow


class ReconciliationSnapshot(Base):
    __tablename__ = "reconciliation_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    period_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounting_periods.id"), nullable=True, index=True
    )
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    snapshot_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    integrity_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    matched_count: Mapped[int] = mapped_column(Integer, nullable=False)
    unmatched_count: Mapped[int] = mapped_column(Integer, nullable=False)
    matched_total: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    unmatched_total: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
