"""
Tests for POST /bill-overages.
"""

from tenant_ledger.models.base import utcnow
from tenant_ledger.services.billing_service import month_after


def current_period():
    start = utcnow().date().replace(day=1)
    return {"period_start": start.isoformat(), "period_end": month_after(start).isoformat()}


def over_plan(make_ledger):
    org, _, _ = make_ledger(max_ledgers=1, billing_source_id="pm_card_1")
    make_ledger(org=org)
    return org


def test_bill_overages_charges_once(client, make_ledger, fake_gateway, service_headers):
    org = over_plan(make_ledger)

    first = client.post("/bill-overages", json=current_period(), headers=service_headers)
    second = client.post("/bill-overages", json=current_period(), headers=service_headers)

    assert first.status_code == 200
    [result] = first.json()["results"]
    assert result["organization_id"] == str(org.id)
    assert result["status"] == "succeeded"
    assert result["amount_cents"] == 2000
    assert second.json()["results"][0]["reason"] == "already_processed_or_in_progress"
    assert len(fake_gateway.requests) == 1


def test_dry_run(client, make_ledger, fake_gateway, service_headers):
    over_plan(make_ledger)

    response = client.post(
        "/bill-overages", json={**current_period(), "dry_run": True}, headers=service_headers
    )

    data = response.json()
    assert data["dry_run"] is True
    assert data["results"][0]["status"] == "dry_run"
    assert data["results"][0]["reason"] == "would_charge"
    assert fake_gateway.requests == []


def test_empty_body_defaults_to_last_month(client, service_headers):
    response = client.post("/bill-overages", headers=service_headers)

    assert response.status_code == 200
    assert response.json()["results"] == []


def test_reversed_period_rejected(client, service_headers):
    response = client.post(
        "/bill-overages",
        json={"period_start": "2024-03-01", "period_end": "2024-02-01"},
        headers=service_headers,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "validation_error"
