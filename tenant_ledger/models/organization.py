"""
Organization (tenant) and its team members.

An organization owns ledgers, carries the plan limits used by
usage metering, and has a billing status that only the dunning
engine moves between active and past_due.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_ledger.models.base import Base, db_enum, utcnow
from tenant_ledger.models.enums import BillingStatus, MemberStatus


# Valid billing status transitions: the source of truth for the
# organization billing state machine.
VALID_BILLING_TRANSITIONS: dict[BillingStatus, set[BillingStatus]] = {
    BillingStatus.ACTIVE: {
        BillingStatus.PAST_DUE,
        BillingStatus.SUSPENDED,
        BillingStatus.CANCELED,
    },
    BillingStatus.PAST_DUE: {
        BillingStatus.ACTIVE,
        BillingStatus.SUSPENDED,
        BillingStatus.CANCELED,
    },
    BillingStatus.SUSPENDED: {BillingStatus.ACTIVE, BillingStatus.CANCELED},
    BillingStatus.CANCELED: set(),  # Terminal state
}

# -1 in any max_* column means unlimited.
UNLIMITED = -1


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_status: Mapped[BillingStatus] = mapped_column(
        db_enum(BillingStatus, "billing_status_enum"),
        nullable=False,
        default=BillingStatus.ACTIVE,
    )

    # Plan limits
    max_ledgers: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_team_members: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    max_transactions: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1000
    )

    # Unit prices in cents
    overage_ledger_price: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2000
    )
    overage_team_member_price: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2000
    )
    overage_transaction_price: Mapped[int] = mapped_column(
        Integer, nullable=False, default=2
    )

    # Stored payment method used for overage charges
    billing_source_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    ledgers: Mapped[list["Ledger"]] = relationship(back_populates="organization")
    members: Mapped[list["OrganizationMember"]] = relationship(
        back_populates="organization"
    )

    def can_transition_to(self, new_status: BillingStatus) -> bool:
        """Check if a billing status transition is valid."""
        return new_status in VALID_BILLING_TRANSITIONS.get(
            self.billing_status, set()
        )

    def __repr__(self) -> str:
        return f"<Organization {self.name} ({self.billing_status.value})>"


class OrganizationMember(Base):
    __tablename__ = "organization_members"

    id: Mapped[int] = mapped_column(primary_key=True)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")
    status: Mapped[MemberStatus] = mapped_column(
        db_enum(MemberStatus, "member_status_enum"),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    organization: Mapped["Organization"] = relationship(back_populates="members")

    def __repr__(self) -> str:
        return f"<OrganizationMember {self.email} ({self.status.value})>"
