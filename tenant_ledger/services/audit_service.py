"""
Audit service: append-only trail of state-changing operations.
"""

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from tenant_ledger.models.audit_log import AuditLog


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Any = None,
        ledger_id: uuid.UUID | None = None,
        organization_id: uuid.UUID | None = None,
        actor_type: str = "api",
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """
        Add an audit row to the current unit of work.

        The row commits or rolls back together with the change it
        describes. The request id comes from the logging context
        bound by the request middleware.
        """
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        entry = AuditLog(
            ledger_id=ledger_id,
            organization_id=organization_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            actor_type=actor_type,
            request_id=request_id,
            details=details or {},
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_for_ledger(self, ledger_id: uuid.UUID) -> list[AuditLog]:
        """Audit rows for a ledger, oldest first."""
        rows = self.db.execute(
            select(AuditLog)
            .where(AuditLog.ledger_id == ledger_id)
            .order_by(AuditLog.id)
        ).scalars().all()
        return list(rows)
