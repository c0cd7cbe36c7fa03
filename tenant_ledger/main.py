"""
Tenant Ledger: FastAPI application.

This is the entry point for the application.
All routers and the error envelope are registered here.
"""

import uuid

import structlog
from fastapi import FastAPI, Request

from tenant_ledger.api.adjustments import router as adjustments_router
from tenant_ledger.api.admin import router as admin_router
from tenant_ledger.api.billing import router as billing_router
from tenant_ledger.api.errors import ledger_error_handler
from tenant_ledger.api.health import router as health_router
from tenant_ledger.api.periods import router as periods_router
from tenant_ledger.api.reconcile import router as reconcile_router
from tenant_ledger.api.transactions import router as transactions_router
from tenant_ledger.config import get_settings
from tenant_ledger.exceptions import LedgerError
from tenant_ledger.logging_config import configure_logging

settings = get_settings()
configure_logging()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Multi-tenant double-entry ledger with period close and overage billing",
)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Tag every log line of a request with its request id."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers["X-Request-ID"] = request_id
    return response


app.add_exception_handler(LedgerError, ledger_error_handler)

# Register routers
app.include_router(health_router)
app.include_router(transactions_router)
app.include_router(adjustments_router)
app.include_router(periods_router)
app.include_router(reconcile_router)
app.include_router(admin_router)
app.include_router(billing_router)
