"""
Tests for POST /reconcile and its actions.
"""

from decimal import Decimal


def reconcile(client, headers, action, **fields):
    return client.post("/reconcile", headers=headers, json={"action": action, **fields})


def record_sale(client, headers, reference_id, amount, effective_date):
    return client.post("/record-sale", headers=headers, json={
        "reference_id": reference_id,
        "creator_id": "creator_1",
        "amount": amount,
        "effective_date": effective_date,
    }).json()["transaction_id"]


def import_feed(client, headers, *records):
    return reconcile(client, headers, "import", bank_transactions=[
        {"external_id": external_id, "amount": amount, "transaction_date": day}
        for external_id, amount, day in records
    ])


class TestImportAndMatch:

    def test_import_skips_duplicates(self, client, api_headers):
        headers, _ = api_headers
        import_feed(client, headers, ("bank-1", "100.00", "2024-06-05"))

        response = import_feed(
            client, headers,
            ("bank-1", "100.00", "2024-06-05"),
            ("bank-2", "-40.00", "2024-06-06"),
        )

        assert response.status_code == 200
        assert response.json()["imported"] == 1
        assert response.json()["skipped_duplicates"] == 1

    def test_auto_match_then_nothing_unmatched(self, client, api_headers):
        headers, _ = api_headers
        txn_id = record_sale(client, headers, "sale-1", 10000, "2024-06-05")
        import_feed(client, headers, ("bank-1", "100.00", "2024-06-05"))

        matched = reconcile(client, headers, "auto_match").json()

        assert matched["matched"] == 1
        assert matched["pairs"][0]["transaction_id"] == txn_id
        unmatched = reconcile(client, headers, "list_unmatched").json()
        assert unmatched["transactions"] == []
        assert unmatched["bank_transactions"] == []

    def test_manual_match_and_unmatch(self, client, api_headers):
        headers, _ = api_headers
        txn_id = record_sale(client, headers, "sale-1", 10000, "2024-06-05")
        import_feed(client, headers, ("bank-1", "100.00", "2024-06-05"))
        bank_id = reconcile(client, headers, "list_unmatched").json()["bank_transactions"][0]["id"]

        matched = reconcile(
            client, headers, "match", transaction_id=txn_id, bank_transaction_id=bank_id
        )
        assert matched.json()["matched"] is True

        again = reconcile(
            client, headers, "match", transaction_id=txn_id, bank_transaction_id=bank_id
        )
        assert again.status_code == 409
        assert again.json()["error_code"] == "already_matched"

        unmatched = reconcile(client, headers, "unmatch", transaction_id=txn_id)
        assert unmatched.json()["matched"] is False

    def test_match_requires_both_ids(self, client, api_headers):
        headers, _ = api_headers

        response = reconcile(client, headers, "match")

        assert response.status_code == 422


class TestReconciliationSnapshot:

    def test_snapshot_round_trip(self, client, api_headers):
        headers, _ = api_headers
        record_sale(client, headers, "sale-1", 10000, "2024-06-05")
        import_feed(
            client, headers,
            ("bank-1", "100.00", "2024-06-05"),
            ("bank-2", "12.50", "2024-06-07"),
        )
        reconcile(client, headers, "auto_match")

        created = reconcile(client, headers, "create_snapshot", as_of_date="2024-06-30")

        assert created.status_code == 200
        snapshot = created.json()
        assert snapshot["matched_count"] == 1
        assert snapshot["unmatched_count"] == 1
        assert Decimal(snapshot["unmatched_total"]) == Decimal("12.50")

        fetched = reconcile(
            client, headers, "get_snapshot", snapshot_id=snapshot["snapshot_id"]
        ).json()
        assert fetched["integrity_hash"] == snapshot["integrity_hash"]
        assert fetched["integrity_valid"] is True
