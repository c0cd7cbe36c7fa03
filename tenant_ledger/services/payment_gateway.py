"""
Payment gateway: the external processor that collects overage charges.

The processor is a request/response collaborator. Every outcome
it can produce (success, decline, timeout, unreachable) comes
back as a ChargeResult; only a misconfigured gateway raises,
and it raises before anything is sent.
"""

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from tenant_ledger.config import get_settings
from tenant_ledger.exceptions import PaymentConfigurationError

logger = structlog.get_logger(__name__)

# Processor states that mean the money did not move
FAILED_STATES = {"FAILED", "CANCELED", "RETURNED", "DECLINED"}


class ChargeRequest(BaseModel):
    amount_cents: int = Field(gt=0)
    currency: str
    payment_method_id: str
    merchant_id: str
    destination_id: str
    description: str
    idempotency_key: str
    metadata: dict[str, str] = Field(default_factory=dict)


class ChargeResult(BaseModel):
    success: bool
    payment_id: str | None = None
    error: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class PaymentGateway:
    """Interface the dunning engine charges through."""

    def charge(self, request: ChargeRequest) -> ChargeResult:
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):
    """
    Charges through the processor's HTTP API with httpx.

    The call blocks for at most `timeout` seconds. A timeout is
    reported as a failed charge, not retried here.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        environment: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.PAYMENT_API_URL
        self.api_key = api_key if api_key is not None else settings.PAYMENT_API_KEY
        self.environment = (environment or settings.PAYMENT_ENV).lower()
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS
        self._transport = transport

    def check_environment(self) -> None:
        """
        Refuse to send live charges to a sandbox, or the reverse.

        Raises PaymentConfigurationError.
        """
        if not self.api_key:
            raise PaymentConfigurationError("Payment API key is not configured")

        sandbox_url = "sandbox" in httpx.URL(self.base_url).host
        if self.environment == "production" and sandbox_url:
            raise PaymentConfigurationError(
                "Production environment cannot use a sandbox payment URL"
            )
        if self.environment != "production" and not sandbox_url:
            raise PaymentConfigurationError(
                f"{self.environment} environment cannot use a live payment URL"
            )

    def charge(self, request: ChargeRequest) -> ChargeResult:
        self.check_environment()

        payload = {
            "amount": request.amount_cents,
            "currency": request.currency,
            "source": request.payment_method_id,
            "merchant": request.merchant_id,
            "destination": request.destination_id,
            "description": request.description,
            "tags": request.metadata,
        }
        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            ) as client:
                response = client.post(
                    "/v1/transfers",
                    json=payload,
                    headers={"Idempotency-Key": request.idempotency_key},
                )
        except httpx.TimeoutException:
            logger.warning(
                "payment_timeout",
                idempotency_key=request.idempotency_key,
                timeout=self.timeout,
            )
            return ChargeResult(success=False, error="processor_timeout")
        except httpx.HTTPError as exc:
            logger.warning(
                "payment_transport_error",
                idempotency_key=request.idempotency_key,
                error=str(exc),
            )
            return ChargeResult(success=False, error=f"processor_unreachable: {exc}")

        try:
            body = response.json()
        except ValueError:
            body = {"text": response.text[:500]}
        if not isinstance(body, dict):
            body = {"body": body}

        if response.is_error:
            error = body.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            return ChargeResult(
                success=False,
                error=message or f"processor_http_{response.status_code}",
                raw=body,
            )

        state = str(body.get("state", "")).upper()
        if state in FAILED_STATES:
            return ChargeResult(
                success=False, error=f"processor_state_{state.lower()}", raw=body
            )
        if not body.get("id"):
            return ChargeResult(
                success=False, error="processor_missing_payment_id", raw=body
            )
        return ChargeResult(success=True, payment_id=body["id"], raw=body)
