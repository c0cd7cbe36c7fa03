"""
Usage service: metering billable resources against plan allowances.

The overage arithmetic is a pure function of counts and the
plan; the service only adds the queries that produce the counts.
"""

import uuid
from datetime import date, datetime, time

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from tenant_ledger.models.enums import LedgerStatus, MemberStatus
from tenant_ledger.models.ledger import Ledger
from tenant_ledger.models.organization import (
    Organization,
    OrganizationMember,
    UNLIMITED,
)
from tenant_ledger.models.transaction import Transaction
from tenant_ledger.schemas.billing import OverageQuote, PlanAllowance, UsageCounts


def additional_units(current: int, included: int) -> int:
    """Units over the allowance. An allowance of -1 is unlimited."""
    if included == UNLIMITED:
        return 0
    return max(0, current - included)


def compute_overage(usage: UsageCounts, allowance: PlanAllowance) -> OverageQuote:
    additional_ledgers = additional_units(usage.ledgers, allowance.included_ledgers)
    additional_members = additional_units(
        usage.team_members, allowance.included_team_members
    )
    additional_transactions = additional_units(
        usage.transactions, allowance.included_transactions
    )
    amount_cents = (
        additional_ledgers * allowance.ledger_price
        + additional_members * allowance.team_member_price
        + additional_transactions * allowance.transaction_price
    )
    return OverageQuote(
        usage=usage,
        allowance=allowance,
        additional_ledgers=additional_ledgers,
        additional_team_members=additional_members,
        additional_transactions=additional_transactions,
        amount_cents=amount_cents,
    )


def allowance_for(org: Organization) -> PlanAllowance:
    return PlanAllowance(
        included_ledgers=org.max_ledgers,
        included_team_members=org.max_team_members,
        included_transactions=org.max_transactions,
        ledger_price=org.overage_ledger_price,
        team_member_price=org.overage_team_member_price,
        transaction_price=org.overage_transaction_price,
    )


class UsageService:

    def __init__(self, db: Session):
        self.db = db

    def count_usage(
        self, organization_id: uuid.UUID, period_start: date, period_end: date
    ) -> UsageCounts:
        """
        Count billable resources.

        Ledgers: live and active. Members: active. Transactions:
        recorded on live ledgers in [period_start, period_end).
        """
        ledgers = self.db.execute(
            select(func.count(Ledger.id)).where(
                Ledger.organization_id == organization_id,
                Ledger.livemode.is_(True),
                Ledger.status == LedgerStatus.ACTIVE,
            )
        ).scalar_one()

        members = self.db.execute(
            select(func.count(OrganizationMember.id)).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.status == MemberStatus.ACTIVE,
            )
        ).scalar_one()

        live_ledgers = select(Ledger.id).where(
            Ledger.organization_id == organization_id,
            Ledger.livemode.is_(True),
        )
        transactions = self.db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.ledger_id.in_(live_ledgers),
                Transaction.created_at >= datetime.combine(period_start, time.min),
                Transaction.created_at < datetime.combine(period_end, time.min),
            )
        ).scalar_one()

        return UsageCounts(
            ledgers=ledgers, team_members=members, transactions=transactions
        )

    def quote(
        self, org: Organization, period_start: date, period_end: date
    ) -> OverageQuote:
        usage = self.count_usage(org.id, period_start, period_end)
        return compute_overage(usage, allowance_for(org))
