"""
Adjustment journal model.

Metadata wrapper around a correcting transaction: why it exists,
what it offsets, and who prepared it.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import String, Date, DateTime, Text, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import AdjustmentType


class AdjustmentJournal(Base):
    __tablename__ = "adjustment_journals"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, unique=True
    )
    original_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True, index=True
    )
    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        db_enum(AdjustmentType, "adjustment_type_enum"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    supporting_documentation: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )
    prepared_by: Mapped[str] = mapped_column(String(200), nullable=False)
    adjustment_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    transaction: Mapped["Transaction"] = relationship(
        foreign_keys=[transaction_id]
    )

    def __repr__(self) -> str:
        return f"<AdjustmentJournal {self.adjustment_type.value} by {self.prepared_by}>"
