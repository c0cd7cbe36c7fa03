"""
Opening balance model.

Recorded once per ledger when it starts mid-year or is migrated
from another system. The unique ledger_id makes a second attempt
fail in the database, not only in application code.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import OpeningBalanceSource


class OpeningBalance(Base):
    __tablename__ = "opening_balances"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, unique=True
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("transactions.id"), nullable=False
    )
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[OpeningBalanceSource] = mapped_column(
        db_enum(OpeningBalanceSource, "opening_balance_source_enum"),
        nullable=False,
    )
    source_description: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    total_assets: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    total_liabilities: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    total_equity: Mapped[Decimal] = mapped_column(Numeric(19, 4), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
