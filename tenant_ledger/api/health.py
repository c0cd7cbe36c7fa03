"""
Health check endpoint.

Used by load balancers and monitoring to verify the service is
running and can reach its database.
"""

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tenant_ledger.config import get_settings
from tenant_ledger.models.base import get_db

router = APIRouter(tags=["Health"])

logger = structlog.get_logger(__name__)


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity.

    A failed `SELECT 1` reports the instance as degraded rather
    than failing the request, so the load balancer can tell the
    two apart.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as exc:
        logger.error("health_database_unreachable", error=str(exc))
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "tenant-ledger",
        "version": get_settings().APP_VERSION,
        "database": db_status,
    }
