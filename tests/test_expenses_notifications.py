import pytest


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


class TestExpenses:

    @pytest.fixture()
    def expenses(self, client, headers, property_id):
        rows = [
            {"property_id": property_id, "category": "utilities", "description": "Water", "amount": "300",
             "expense_date": "2026-02-01", "status": "paid"},
            {"property_id": property_id, "category": "utilities", "description": "Power", "amount": "200",
             "expense_date": "2026-02-10"},
            {"category": "insurance", "description": "Cover", "amount": "1000", "expense_date": "2026-03-01"},
        ]
        return [client.post("/expenses", json=row, headers=headers).json() for row in rows]

    def test_paid_expense_gets_paid_date(self, expenses):
        assert expenses[0]["paid_date"] == "2026-02-01"
        assert expenses[1]["paid_date"] is None

    def test_summary_by_category(self, client, headers, expenses):
        body = client.get("/expenses/summary", headers=headers).json()
        assert float(body["total_amount"]) == 1500
        assert float(body["paid_amount"]) == 300
        assert float(body["pending_amount"]) == 1200
        assert [(c["category"], c["count"]) for c in body["by_category"]] == [("insurance", 1), ("utilities", 2)]

    @pytest.mark.parametrize("query, expected", [
        ("category=utilities", 2),
        ("status=paid", 1),
        ("start_date=2026-02-05&end_date=2026-02-28", 1),
    ])
    def test_filters(self, client, headers, expenses, query, expected):
        assert len(client.get(f"/expenses?{query}", headers=headers).json()) == expected

    def test_amount_must_be_positive(self, client, headers):
        r = client.post("/expenses", json={"description": "x", "amount": "0", "expense_date": "2026-01-01"},
                        headers=headers)
        assert r.status_code == 422

    def test_unknown_maintenance_request(self, client, headers):
        r = client.post(
            "/expenses",
            json={"description": "x", "amount": "10", "expense_date": "2026-01-01", "maintenance_request_id": 999},
            headers=headers,
        )
        assert r.status_code == 404

    def test_owner_scoping(self, client, other_headers, expenses):
        assert client.get(f"/expenses/{expenses[0]['id']}", headers=other_headers).status_code == 404
        assert client.get("/expenses", headers=other_headers).json() == []


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotifications:

    @pytest.fixture()
    def payment_notification(self, client, headers, tenant_id):
        client.post("/payments", json={"tenant_id": tenant_id, "amount": "8000"}, headers=headers)
        notes = client.get("/notifications", headers=headers).json()
        return next(n for n in notes if n["notification_type"] == "payment")

    def test_payment_creates_unread_notification(self, client, headers, payment_notification):
        assert payment_notification["is_read"] is False
        assert client.get("/notifications/unread-count", headers=headers).json()["unread"] == 1

    def test_mark_read(self, client, headers, payment_notification):
        r = client.post(f"/notifications/{payment_notification['id']}/read", headers=headers)
        assert r.json()["is_read"] is True
        assert r.json()["read_at"] is not None
        assert client.get("/notifications?unread_only=true", headers=headers).json() == []

    def test_mark_all_read(self, client, headers, payment_notification):
        assert client.post("/notifications/read-all", headers=headers).json() == {"updated": 1}
        assert client.get("/notifications/unread-count", headers=headers).json()["unread"] == 0

    def test_other_user_cannot_touch(self, client, other_headers, payment_notification):
        assert client.delete(f"/notifications/{payment_notification['id']}", headers=other_headers).status_code == 404

    def test_delete(self, client, headers, payment_notification):
        assert client.delete(f"/notifications/{payment_notification['id']}", headers=headers).status_code == 204
        assert client.get("/notifications", headers=headers).json() == []


# ---------------------------------------------------------------------------
# Banking settings
# ---------------------------------------------------------------------------


class TestBankingSettings:

    def test_defaults(self, client, headers):
        body = client.get("/settings/banking", headers=headers).json()
        assert body["rental_due_day"] == 1
        assert body["bank_name"] is None

    def test_partial_update(self, client, headers):
        client.patch("/settings/banking", json={"bank_name": "First Bank"}, headers=headers)
        body = client.patch("/settings/banking", json={"rental_due_day": 15}, headers=headers).json()
        assert (body["bank_name"], body["rental_due_day"]) == ("First Bank", 15)

    @pytest.mark.parametrize("day", [0, 32])
    def test_due_day_range(self, client, headers, day):
        assert client.patch("/settings/banking", json={"rental_due_day": day}, headers=headers).status_code == 422

    def test_due_day_cannot_be_nulled(self, client, headers):
        assert client.patch("/settings/banking", json={"rental_due_day": None}, headers=headers).status_code == 422

    def test_bank_fields_can_be_cleared(self, client, headers):
        client.patch("/settings/banking", json={"bank_name": "First Bank"}, headers=headers)
        body = client.patch("/settings/banking", json={"bank_name": None}, headers=headers).json()
        assert body["bank_name"] is None
