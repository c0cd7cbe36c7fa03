"""
Account model (chart of accounts).

Every account belongs to exactly one ledger. Entries are
posted against accounts; the balance is never stored, it is
always derived from entries by the LedgerService.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    String, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import (
    AccountClass,
    AccountType,
    ACCOUNT_CLASS_BY_TYPE,
)


class Account(Base):
    """
    A single account in a ledger's chart of accounts.

    Addressed by (account_type, entity_id). entity_id is set for
    accounts owned by a creator or contractor and empty for the
    ledger's own accounts. Once created with entries an account is
    never deleted, only deactivated via is_active=False.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint(
            "ledger_id", "account_type", "entity_id",
            name="uq_accounts_ledger_type_entity",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    ledger_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ledgers.id"), nullable=False, index=True
    )
    account_type: Mapped[AccountType] = mapped_column(
        db_enum(AccountType, "account_type_enum"),
        nullable=False,
    )
    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    entity_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    ledger: Mapped["Ledger"] = relationship(back_populates="accounts")
    entries: Mapped[list["Entry"]] = relationship(back_populates="account")

    @property
    def account_class(self) -> AccountClass:
        return ACCOUNT_CLASS_BY_TYPE[self.account_type]

    @property
    def is_debit_normal(self) -> bool:
        """Assets and expenses grow with debits; everything else with credits."""
        return self.account_class in (AccountClass.ASSET, AccountClass.EXPENSE)

    def __repr__(self) -> str:
        suffix = f":{self.entity_id}" if self.entity_id else ""
        return f"<Account {self.account_type.value}{suffix}>"
