"""
Error envelope.

Every LedgerError leaves the API as
{success: false, error_code, error, details} with the status
code of its class.
"""

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from tenant_ledger.exceptions import LedgerError

logger = structlog.get_logger(__name__)


def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    db = getattr(request.state, "db", None)
    if db is not None:
        db.rollback()

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_code=exc.error_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error_code": exc.error_code,
            "error": exc.message,
            "details": exc.details,
        },
    )
