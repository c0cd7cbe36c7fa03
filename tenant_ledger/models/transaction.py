"""
Transaction model.

An atomic economic event (sale, expense, payout, adjustment ...)
that owns a balanced set of entries. The entries are created in
the same flush as the transaction, or not at all.

Idempotency is enforced by the (ledger_id, reference_id) unique
constraint: two submissions with the same reference resolve to
exactly one row.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, ForeignKey, JSON,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import TransactionType, TransactionStatus


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "ledger_id", "reference_id", name="uq_transactions_ledger_reference"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        db_enum(TransactionType, "transaction_type_enum"),
        nullable=False,
    )
    reference_id: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        db_enum(TransactionStatus, "transaction_status_enum"),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )
    effective_date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True
    )
    # Non-owning link to the transaction this one offsets
    reverses_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True, index=True
    )
    # "metadata" is reserved on declarative classes
    details: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    entries: Mapped[list["Entry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
    )
    reverses: Mapped["Transaction | None"] = relationship(remote_side=[id])

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_type.value} "
            f"{self.amount} {self.currency} ({self.status.value})>"
        )
