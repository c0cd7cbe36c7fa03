"""
Bank feed records and their matches to ledger transactions.

A match is its own row rather than a column on either side, so
unmatching removes the link and leaves both records untouched.
The two unique constraints on bank_matches make the pairing
one-to-one in the database itself.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric, ForeignKey, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import MatchSource


class BankTransaction(Base):
    __tablename__ = "bank_transactions"
    __table_args__ = (
        UniqueConstraint(
            "ledger_id", "external_id", name="uq_bank_transactions_external"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Signed as the bank reports it; matching compares absolute values
    amount: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    match: Mapped["BankMatch | None"] = relationship(
        back_populates="bank_transaction", uselist=False
    )

    def __repr__(self) -> str:
        return f"<BankTransaction {self.external_id} {self.amount}>"


class BankMatch(Base):
    __tablename__ = "bank_matches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("transactions.id"), nullable=False, unique=True
    )
    bank_transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bank_transactions.id"), nullable=False, unique=True
    )
    matched_by: Mapped[MatchSource] = mapped_column(
        db_enum(MatchSource, "match_source_enum"), nullable=False
    )
    matched_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    bank_transaction: Mapped["BankTransaction"] = relationship(
        back_populates="match"
    )
    transaction: Mapped["Transaction"] = relationship()

    def __repr__(self) -> str:
        return f"<BankMatch {self.transaction_id} <-> {self.bank_transaction_id}>"
