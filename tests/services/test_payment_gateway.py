"""
Tests for the HTTP payment gateway, against httpx.MockTransport.
"""

import json

import httpx
import pytest

from tenant_ledger.exceptions import PaymentConfigurationError
from tenant_ledger.services.payment_gateway import ChargeRequest, HttpPaymentGateway


SANDBOX_URL = "https://sandbox-payments.example.com"


def charge_request(**overrides):
    fields = dict(
        amount_cents=4000,
        currency="usd",
        payment_method_id="pm_card_1",
        merchant_id="merchant_platform",
        destination_id="dest_platform",
        description="Usage overage 2024-05",
        idempotency_key="charge-1:1",
        metadata={"organization_id": "org-1"},
    )
    fields.update(overrides)
    return ChargeRequest(**fields)


def gateway(handler, **overrides):
    options = dict(
        base_url=SANDBOX_URL,
        api_key="sk_test_123",
        environment="sandbox",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )
    options.update(overrides)
    return HttpPaymentGateway(**options)


class TestCharge:

    def test_settled_transfer_succeeds(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"id": "TR_1", "state": "PENDING"})

        result = gateway(handler).charge(charge_request())

        assert result.success
        assert result.payment_id == "TR_1"
        [request] = seen
        assert request.url.path == "/v1/transfers"
        assert request.headers["Idempotency-Key"] == "charge-1:1"
        assert request.headers["Authorization"] == "Bearer sk_test_123"
        body = json.loads(request.content)
        assert body["amount"] == 4000
        assert body["source"] == "pm_card_1"
        assert body["destination"] == "dest_platform"

    def test_http_error_message_surfaced(self):
        def handler(request):
            return httpx.Response(402, json={"error": {"message": "card_declined"}})

        result = gateway(handler).charge(charge_request())

        assert not result.success
        assert result.error == "card_declined"
        assert result.raw == {"error": {"message": "card_declined"}}

    def test_http_error_without_body(self):
        def handler(request):
            return httpx.Response(503, text="upstream down")

        result = gateway(handler).charge(charge_request())

        assert result.error == "processor_http_503"
        assert result.raw == {"text": "upstream down"}

    def test_failed_state_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"id": "TR_2", "state": "failed"})

        result = gateway(handler).charge(charge_request())

        assert not result.success
        assert result.error == "processor_state_failed"

    def test_response_without_payment_id_is_a_failure(self):
        def handler(request):
            return httpx.Response(200, json={"state": "SETTLED"})

        result = gateway(handler).charge(charge_request())

        assert not result.success
        assert result.payment_id is None
        assert result.error == "processor_missing_payment_id"
        assert result.raw == {"state": "SETTLED"}

    def test_timeout_reported_not_raised(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = gateway(handler).charge(charge_request())

        assert not result.success
        assert result.error == "processor_timeout"

    def test_connection_error_reported(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = gateway(handler).charge(charge_request())

        assert not result.success
        assert result.error.startswith("processor_unreachable")


class TestEnvironmentCheck:

    def never_called(self, request):
        raise AssertionError("request must not be sent")

    def test_missing_api_key(self):
        with pytest.raises(PaymentConfigurationError):
            gateway(self.never_called, api_key="").charge(charge_request())

    def test_production_rejects_sandbox_url(self):
        with pytest.raises(PaymentConfigurationError):
            gateway(self.never_called, environment="production").charge(charge_request())

    def test_sandbox_rejects_live_url(self):
        with pytest.raises(PaymentConfigurationError):
            gateway(
                self.never_called, base_url="https://payments.example.com"
            ).charge(charge_request())

    def test_production_with_live_url(self):
        live = gateway(
            self.never_called,
            base_url="https://payments.example.com",
            environment="production",
        )

        live.check_environment()
