"""
Ledger model.

A ledger is one tenant's complete set of accounts and
transactions. Organizations usually hold a live/test pair.
The API key is stored only as a SHA-256 hash.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Numeric, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import LedgerStatus


class Ledger(Base):
    __tablename__ = "ledgers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    livemode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[LedgerStatus] = mapped_column(
        db_enum(LedgerStatus, "ledger_status_enum"),
        nullable=False,
        default=LedgerStatus.ACTIVE,
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    api_key_hash: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, index=True
    )
    # Creator's share of a sale when the request does not say otherwise
    default_creator_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    organization: Mapped["Organization"] = relationship(back_populates="ledgers")
    accounts: Mapped[list["Account"]] = relationship(back_populates="ledger")

    def __repr__(self) -> str:
        mode = "live" if self.livemode else "test"
        return f"<Ledger {self.name} ({mode}, {self.status.value})>"
