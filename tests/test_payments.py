from datetime import date, timedelta

import pytest

from property_crm.core import rent_schedule
from property_crm.models.tenant import Tenant


@pytest.fixture()
def booking_id(client, headers, property_id):
    r = client.post(
        "/bookings",
        json={
            "property_id": property_id,
            "guest_name": "Gina Guest",
            "guest_email": "gina@example.com",
            "check_in_date": "2026-07-01",
            "check_out_date": "2026-07-05",
            "total_amount": "4000",
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


class TestBookingPayments:

    def test_partial_then_full_payment_reconciles_booking(self, client, headers, booking_id):
        r = client.post("/payments", json={"booking_id": booking_id, "amount": "1500", "payment_type": "booking"}, headers=headers)
        assert r.status_code == 201, r.text

        booking = client.get(f"/bookings/{booking_id}", headers=headers).json()
        assert booking["payment_status"] == "partially_paid"
        assert float(booking["amount_paid"]) == 1500
        assert float(booking["amount_due"]) == 2500

        client.post("/payments", json={"booking_id": booking_id, "amount": "2500", "payment_type": "booking"}, headers=headers)
        booking = client.get(f"/bookings/{booking_id}", headers=headers).json()
        assert booking["payment_status"] == "paid"
        assert float(booking["amount_due"]) == 0

    def test_payment_cannot_exceed_amount_due(self, client, headers, booking_id):
        client.post("/payments", json={"booking_id": booking_id, "amount": "3000", "payment_type": "booking"}, headers=headers)
        r = client.post("/payments", json={"booking_id": booking_id, "amount": "1500", "payment_type": "booking"}, headers=headers)
        assert r.status_code == 400
        assert "exceeds amount due" in r.json()["detail"]

    def test_property_is_inherited_from_booking(self, client, headers, booking_id, property_id):
        r = client.post("/payments", json={"booking_id": booking_id, "amount": "100", "payment_type": "booking"}, headers=headers)
        assert r.json()["property_id"] == property_id

    def test_refund_reopens_booking_balance(self, client, headers, booking_id):
        pid = client.post(
            "/payments", json={"booking_id": booking_id, "amount": "4000", "payment_type": "booking"}, headers=headers
        ).json()["id"]
        r = client.post(f"/payments/{pid}/refund", json={"reason": "Guest cancelled"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["status"] == "refunded"
        assert "Guest cancelled" in r.json()["notes"]

        booking = client.get(f"/bookings/{booking_id}", headers=headers).json()
        assert booking["payment_status"] == "pending"

    def test_only_paid_payments_can_be_refunded(self, client, headers, booking_id):
        pid = client.post(
            "/payments",
            json={"booking_id": booking_id, "amount": "100", "payment_type": "booking", "status": "pending"},
            headers=headers,
        ).json()["id"]
        r = client.post(f"/payments/{pid}/refund", json={"reason": "n/a"}, headers=headers)
        assert r.status_code == 400


class TestRentPayments:

    def test_paid_rent_advances_next_payment_due(self, client, headers, tenant_id, db):
        r = client.post(
            "/payments",
            json={"tenant_id": tenant_id, "amount": "8000", "payment_date": "2026-03-02"},
            headers=headers,
        )
        assert r.status_code == 201, r.text
        tenant = client.get(f"/tenants/{tenant_id}", headers=headers).json()
        assert tenant["next_payment_due"] == "2026-04-01"

    def test_marking_pending_rent_paid_advances_due_date(self, client, headers, tenant_id):
        pid = client.post(
            "/payments",
            json={"tenant_id": tenant_id, "amount": "8000", "status": "pending", "due_date": "2026-05-01"},
            headers=headers,
        ).json()["id"]
        r = client.patch(f"/payments/{pid}", json={"status": "paid", "payment_date": "2026-05-01"}, headers=headers)
        assert r.status_code == 200
        tenant = client.get(f"/tenants/{tenant_id}", headers=headers).json()
        assert tenant["next_payment_due"] == "2026-06-01"

    def test_new_tenant_gets_next_due_date(self, client, headers, tenant_id):
        tenant = client.get(f"/tenants/{tenant_id}", headers=headers).json()
        assert tenant["next_payment_due"] == rent_schedule.next_payment_due(1).isoformat()
        assert tenant["email"] == "tom@example.com"

    def test_manual_reminder_marks_sent(self, client, headers, tenant_id, outbox):
        pid = client.post(
            "/payments",
            json={"tenant_id": tenant_id, "amount": "8000", "status": "pending", "due_date": "2026-05-01"},
            headers=headers,
        ).json()["id"]
        r = client.post(f"/payments/{pid}/send-reminder", headers=headers)
        assert r.status_code == 200, r.text
        assert outbox.to("tom@example.com")
        assert outbox.to("tom@example.com")[0]["reply_to"] == "landlord@example.com"

        payment = client.get(f"/payments/{pid}", headers=headers).json()
        assert payment["reminder_sent"] is True
        assert payment["reminder_count"] == 1

    def test_failed_reminder_is_not_recorded(self, client, headers, tenant_id, outbox):
        outbox.fail = True
        pid = client.post(
            "/payments",
            json={"tenant_id": tenant_id, "amount": "8000", "status": "pending", "due_date": "2026-05-01"},
            headers=headers,
        ).json()["id"]
        r = client.post(f"/payments/{pid}/send-reminder", headers=headers)
        assert r.status_code == 502
        assert client.get(f"/payments/{pid}", headers=headers).json()["reminder_sent"] is False

    def test_bulk_reminders_report_each_payment(self, client, headers, tenant_id, outbox):
        pending = client.post(
            "/payments",
            json={"tenant_id": tenant_id, "amount": "8000", "status": "pending", "due_date": "2026-05-01"},
            headers=headers,
        ).json()["id"]
        paid = client.post("/payments", json={"tenant_id": tenant_id, "amount": "8000"}, headers=headers).json()["id"]

        r = client.post("/payments/send-bulk-reminders", json={"payment_ids": [pending, paid, pending, 9999]}, headers=headers)
        body = r.json()
        assert body["sent"] == 1
        assert body["failed"] == 2
        assert [res["payment_id"] for res in body["results"]] == [pending, paid, 9999]


class TestListingAndInvoices:

    def test_summary_covers_all_matches(self, client, headers, tenant_id):
        for amount, status in (("100", "paid"), ("200", "pending"), ("300", "paid")):
            client.post(
                "/payments",
                json={"tenant_id": tenant_id, "amount": amount, "status": status, "due_date": "2026-05-01"},
                headers=headers,
            )
        body = client.get("/payments?limit=1", headers=headers).json()
        assert body["total"] == 3
        assert len(body["items"]) == 1
        assert float(body["summary"]["paid_amount"]) == 400
        assert float(body["summary"]["pending_amount"]) == 200

    def test_payments_are_owner_scoped(self, client, headers, other_headers, tenant_id):
        pid = client.post("/payments", json={"tenant_id": tenant_id, "amount": "100"}, headers=headers).json()["id"]
        assert client.get(f"/payments/{pid}", headers=other_headers).status_code == 404

    def test_invoice_formats(self, client, headers, tenant_id):
        pid = client.post("/payments", json={"tenant_id": tenant_id, "amount": "8000"}, headers=headers).json()["id"]

        html = client.get(f"/payments/{pid}/invoice", headers=headers)
        assert html.status_code == 200
        assert "Tom Tenant" in html.text

        pdf = client.get(f"/payments/{pid}/invoice.pdf", headers=headers)
        assert pdf.status_code == 200
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")

    def test_mock_payment_intent(self, client, headers, property_id):
        booking = client.post(
            "/bookings",
            json={
                "property_id": property_id,
                "guest_name": "Ivy",
                "check_in_date": "2026-08-01",
                "check_out_date": "2026-08-03",
                "total_amount": "900",
            },
            headers=headers,
        ).json()
        r = client.post("/payments/stripe/payment-intents", json={"booking_id": booking["id"]}, headers=headers)
        assert r.status_code == 201
        assert r.json()["id"].startswith("pi_mock_")
        assert r.json()["status"] == "requires_payment_method"


# ---------------------------------------------------------------------------
# Update guards
# ---------------------------------------------------------------------------


class TestPaymentUpdates:

    def test_marking_pending_paid_cannot_overpay_booking(self, client, headers, property_id):
        booking = client.post(
            "/bookings",
            json={"property_id": property_id, "guest_name": "Hal", "check_in_date": "2026-09-01",
                  "check_out_date": "2026-09-02", "total_amount": "100"},
            headers=headers,
        ).json()
        pending = client.post(
            "/payments",
            json={"booking_id": booking["id"], "amount": "50", "payment_type": "booking", "status": "pending"},
            headers=headers,
        ).json()
        client.post("/payments", json={"booking_id": booking["id"], "amount": "100", "payment_type": "booking"},
                    headers=headers)

        r = client.patch(f"/payments/{pending['id']}", json={"status": "paid"}, headers=headers)
        assert r.status_code == 400
        assert "exceeds amount due" in r.json()["detail"]

        after = client.get(f"/bookings/{booking['id']}", headers=headers).json()
        assert float(after["amount_paid"]) == 100
        assert float(after["amount_due"]) == 0

    def test_marking_pending_paid_within_balance(self, client, headers, booking_id):
        pending = client.post(
            "/payments",
            json={"booking_id": booking_id, "amount": "1000", "payment_type": "booking", "status": "pending"},
            headers=headers,
        ).json()
        r = client.patch(f"/payments/{pending['id']}", json={"status": "paid"}, headers=headers)
        assert r.status_code == 200
        assert float(client.get(f"/bookings/{booking_id}", headers=headers).json()["amount_paid"]) == 1000

    @pytest.mark.parametrize("field", ["amount", "status", "payment_type"])
    def test_required_fields_cannot_be_nulled(self, client, headers, tenant_id, field):
        pid = client.post("/payments", json={"tenant_id": tenant_id, "amount": "100"}, headers=headers).json()["id"]
        r = client.patch(f"/payments/{pid}", json={field: None}, headers=headers)
        assert r.status_code == 422

    def test_optional_fields_can_be_cleared(self, client, headers, tenant_id):
        pid = client.post(
            "/payments", json={"tenant_id": tenant_id, "amount": "100", "notes": "cash"}, headers=headers
        ).json()["id"]
        r = client.patch(f"/payments/{pid}", json={"notes": None}, headers=headers)
        assert r.status_code == 200
        assert r.json()["notes"] is None


class TestInvoicePdf:

    def test_non_latin1_tenant_name(self, client, headers, property_id):
        tenant = client.post(
            "/tenants",
            json={"first_name": "Nguyễn", "last_name": "Văn", "email": "nguyen@example.com",
                  "monthly_rent": "8000", "property_id": property_id},
            headers=headers,
        ).json()
        pid = client.post("/payments", json={"tenant_id": tenant["id"], "amount": "8000"}, headers=headers).json()["id"]

        pdf = client.get(f"/payments/{pid}/invoice.pdf", headers=headers)
        assert pdf.status_code == 200
        assert pdf.content.startswith(b"%PDF")
