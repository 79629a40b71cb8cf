import csv
import io
from datetime import timedelta

import pytest

from property_crm.core import rent_schedule


def _pay(client, headers, tenant_id, amount, status="pending", due=None, paid=None):
    body = {"tenant_id": tenant_id, "amount": str(amount), "status": status}
    if due:
        body["due_date"] = due
    if paid:
        body["payment_date"] = paid
    r = client.post("/payments", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def _maintenance(client, headers, property_id, title, **update):
    req = client.post(
        "/maintenance", json={"property_id": property_id, "title": title, "category": "plumbing"}, headers=headers
    ).json()
    if update:
        r = client.patch(f"/maintenance/{req['id']}", json=update, headers=headers)
        assert r.status_code == 200, r.text
        req = r.json()
    return req


# ---------------------------------------------------------------------------
# Aging receivables
# ---------------------------------------------------------------------------


class TestAging:

    @pytest.fixture()
    def outstanding(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 100, due="2026-06-30")
        _pay(client, headers, tenant_id, 200, due="2026-06-10")
        _pay(client, headers, tenant_id, 300, status="overdue", due="2026-04-15")
        _pay(client, headers, tenant_id, 400, status="overdue", due="2026-01-01")
        _pay(client, headers, tenant_id, 999, status="paid", due="2026-01-01", paid="2026-01-01")

    def test_buckets(self, client, headers, outstanding):
        body = client.get("/reports/aging?today=2026-06-30", headers=headers).json()
        summary = body["summary"]
        assert summary["payment_count"] == 4
        assert summary["total_outstanding"] == 1000
        assert summary["buckets"] == {"current": 100, "1-30": 200, "31-60": 0, "61-90": 300, "90+": 400}
        assert summary["counts"]["31-60"] == 0

    def test_days_overdue_never_negative(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 100, due="2026-07-15")
        item = client.get("/reports/aging?today=2026-06-30", headers=headers).json()["payments"][0]
        assert item["days_overdue"] == 0
        assert item["aging_bucket"] == "current"

    def test_breakdowns(self, client, headers, outstanding, tenant_id):
        body = client.get("/reports/aging?today=2026-06-30", headers=headers).json()
        tenant = body["tenant_breakdown"][0]
        assert tenant["id"] == tenant_id
        assert tenant["name"] == "Tom Tenant"
        assert tenant["total"] == 1000
        assert body["property_breakdown"][0]["name"] == "Sea View Cottage"

    def test_only_own_payments(self, client, other_headers, outstanding):
        body = client.get("/reports/aging?today=2026-06-30", headers=other_headers).json()
        assert body["summary"]["payment_count"] == 0


# ---------------------------------------------------------------------------
# Cash flow
# ---------------------------------------------------------------------------


class TestCashFlow:

    def test_inflows_and_outflows_by_month(self, client, headers, tenant_id, property_id):
        _pay(client, headers, tenant_id, 8000, status="paid", due="2026-02-01", paid="2026-02-03")
        client.post(
            "/expenses",
            json={"property_id": property_id, "category": "utilities", "description": "Water", "amount": "500",
                  "expense_date": "2026-02-10", "status": "paid"},
            headers=headers,
        )
        # Completed work without an expense counts as maintenance outflow
        _maintenance(client, headers, property_id, "Geyser", status="completed", actual_cost="1200",
                     completed_date="2026-03-10")
        # Completed work with a linked expense is only counted once
        linked = _maintenance(client, headers, property_id, "Roof", status="completed", actual_cost="1000",
                              completed_date="2026-03-11")
        client.post(
            "/expenses",
            json={"maintenance_request_id": linked["id"], "category": "maintenance", "description": "Roofer",
                  "amount": "900", "expense_date": "2026-03-12", "status": "paid"},
            headers=headers,
        )

        body = client.get("/reports/cash-flow?year=2026", headers=headers).json()
        assert body["total_inflows"] == 8000
        assert body["total_outflows"] == 2600
        assert body["net_cash_flow"] == 5400

        feb, mar = body["months"][1], body["months"][2]
        assert (feb["month"], feb["month_index"]) == ("Feb 2026", 1)
        assert (feb["inflows"], feb["outflows"]) == (8000, 500)
        assert mar["outflows"] == 2100
        assert body["outflows_by_category"] == {"utilities": 500, "maintenance": 2100}
        assert body["inflows_by_type"] == {"rent": 8000}

    def test_other_years_excluded(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 8000, status="paid", due="2025-12-01", paid="2025-12-01")
        assert client.get("/reports/cash-flow?year=2026", headers=headers).json()["total_inflows"] == 0


# ---------------------------------------------------------------------------
# Lease expiration
# ---------------------------------------------------------------------------


class TestLeaseExpiration:

    def test_lease_inside_30_days_is_at_risk(self, client, headers, tenant_id):
        body = client.get("/reports/lease-expiration?today=2026-12-15", headers=headers).json()
        assert len(body["leases"]) == 1
        lease = body["leases"][0]
        assert lease["days_until_expiry"] == 16
        assert lease["expiry_window"] == "0-30"
        assert lease["tenant_email"] == "tom@example.com"
        assert body["monthly_rent_at_risk"] == 8000

    def test_window_filters_listing_but_not_counts(self, client, headers, tenant_id):
        body = client.get("/reports/lease-expiration?today=2026-06-30&window=90", headers=headers).json()
        assert body["leases"] == []
        assert body["counts"]["90+"] == 1

        body = client.get("/reports/lease-expiration?today=2026-06-30&window=all", headers=headers).json()
        assert len(body["leases"]) == 1

    def test_expired_leases_listed_separately(self, client, headers, tenant_id):
        body = client.get("/reports/lease-expiration?today=2027-01-05", headers=headers).json()
        assert body["leases"] == []
        assert body["expired"][0]["expiry_window"] == "expired"
        assert body["expired"][0]["days_until_expiry"] == -5

    def test_invalid_window(self, client, headers):
        assert client.get("/reports/lease-expiration?window=45", headers=headers).status_code == 400


# ---------------------------------------------------------------------------
# Tenant payments
# ---------------------------------------------------------------------------


class TestTenantPayments:

    def test_punctuality(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 8000, status="paid", due="2026-02-01", paid="2026-02-01")
        late = _pay(client, headers, tenant_id, 8000, status="paid", due="2026-03-01", paid="2026-03-06")
        _pay(client, headers, tenant_id, 8000, due="2099-04-01")

        body = client.get(f"/reports/tenant-payments?tenant_id={tenant_id}", headers=headers).json()
        row = body["tenants"][0]
        assert row["total_payments"] == 3
        assert (row["on_time_count"], row["late_count"]) == (1, 1)
        assert row["punctuality_rate"] == 50
        assert body["overall_punctuality_rate"] == 50
        assert body["total_collected"] == 16000
        assert body["total_outstanding"] == 8000

        item = next(p for p in body["payments"] if p["payment_id"] == late["id"])
        assert item["is_on_time"] is False
        assert item["days_late"] == 5

    def test_no_rated_payments_is_fully_punctual(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 8000, due="2099-04-01")
        body = client.get("/reports/tenant-payments", headers=headers).json()
        assert body["tenants"][0]["punctuality_rate"] == 100

    def test_date_range_uses_due_date(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 8000, status="paid", due="2026-02-01", paid="2026-02-01")
        _pay(client, headers, tenant_id, 8000, status="paid", due="2026-05-01", paid="2026-05-01")
        body = client.get(
            "/reports/tenant-payments?start_date=2026-04-01&end_date=2026-06-30", headers=headers
        ).json()
        assert [p["due_date"] for p in body["payments"]] == ["2026-05-01"]


# ---------------------------------------------------------------------------
# Occupancy
# ---------------------------------------------------------------------------


class TestOccupancy:

    def test_leases_and_bookings_occupy_days(self, client, headers, tenant_id, property_id):
        lodge = client.post(
            "/properties", json={"name": "Mountain Lodge", "address": "1 Pass Road", "rental_type": "short_term"},
            headers=headers,
        ).json()["id"]
        client.post(
            "/bookings",
            json={"property_id": lodge, "guest_name": "Gina", "check_in_date": "2026-03-10",
                  "check_out_date": "2026-03-15", "total_amount": "1000", "status": "confirmed"},
            headers=headers,
        )
        # Pending bookings do not count
        client.post(
            "/bookings",
            json={"property_id": lodge, "guest_name": "Pat", "check_in_date": "2026-03-20",
                  "check_out_date": "2026-03-25", "total_amount": "1000"},
            headers=headers,
        )

        body = client.get("/reports/occupancy?start_date=2026-03-01&end_date=2026-03-31", headers=headers).json()
        by_name = {p["property_name"]: p for p in body["properties"]}

        cottage = by_name["Sea View Cottage"]
        assert cottage["occupied_days"] == 30
        assert cottage["occupancy_rate"] == 100.0
        assert cottage["revenue"] == 8000

        lodge_row = by_name["Mountain Lodge"]
        assert lodge_row["occupied_days"] == 5
        assert lodge_row["vacant_days"] == 25
        assert lodge_row["total_bookings"] == 1
        assert lodge_row["average_daily_rate"] == 200
        assert lodge_row["revpar"] == pytest.approx(33.33)
        assert body["overall_occupancy_rate"] == pytest.approx(58.3)

    def test_end_must_follow_start(self, client, headers):
        r = client.get("/reports/occupancy?start_date=2026-03-31&end_date=2026-03-01", headers=headers)
        assert r.status_code == 400

    def test_default_range_is_last_30_days(self, client, headers, property_id):
        body = client.get("/reports/occupancy", headers=headers).json()
        today = rent_schedule.utc_today()
        assert body["end_date"] == today.isoformat()
        assert body["start_date"] == (today - timedelta(days=30)).isoformat()


# ---------------------------------------------------------------------------
# Maintenance costs
# ---------------------------------------------------------------------------


class TestMaintenanceCosts:

    def test_costs_prefer_linked_expenses(self, client, headers, property_id):
        _maintenance(client, headers, property_id, "Geyser", status="completed", actual_cost="1200")
        roof = _maintenance(client, headers, property_id, "Roof", actual_cost="1000")
        client.post(
            "/expenses",
            json={"maintenance_request_id": roof["id"], "category": "maintenance", "description": "Roofer",
                  "amount": "900", "expense_date": rent_schedule.utc_today().isoformat()},
            headers=headers,
        )

        body = client.get("/reports/maintenance-costs", headers=headers).json()
        assert body["request_count"] == 2
        assert body["total_cost"] == 2100
        assert body["avg_resolution_days"] == 0.0

        prop = body["by_property"][0]
        assert prop["property_name"] == "Sea View Cottage"
        assert (prop["request_count"], prop["completed_count"]) == (2, 1)
        assert prop["avg_cost"] == 1050
        assert body["by_category"][0]["category"] == "plumbing"
        assert len(body["monthly"]) == 12

    def test_empty_year(self, client, headers):
        body = client.get("/reports/maintenance-costs?year=2001", headers=headers).json()
        assert body["request_count"] == 0
        assert body["avg_resolution_days"] is None


# ---------------------------------------------------------------------------
# CSV export and dashboard
# ---------------------------------------------------------------------------


class TestExport:

    @pytest.mark.parametrize(
        "report",
        ["aging", "cash-flow", "lease-expiration", "tenant-payments", "occupancy", "maintenance-costs"],
    )
    def test_every_report_exports(self, client, headers, tenant_id, report):
        r = client.get(f"/reports/export/{report}?year=2026", headers=headers)
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        assert f"filename={report}-2026.csv" in r.headers["content-disposition"]

    def test_cash_flow_csv_rows(self, client, headers, tenant_id):
        _pay(client, headers, tenant_id, 8000, status="paid", due="2026-02-01", paid="2026-02-03")
        rows = list(csv.reader(io.StringIO(client.get("/reports/export/cash-flow?year=2026", headers=headers).text)))
        assert rows[0] == ["Month", "Inflows", "Outflows", "Net Cash Flow"]
        assert rows[2][0] == "Feb 2026"
        assert float(rows[2][1]) == 8000
        assert rows[-1][0] == "Total"
        assert len(rows) == 14

    def test_unknown_report(self, client, headers):
        assert client.get("/reports/export/profit", headers=headers).status_code == 404


class TestDashboard:

    def test_counts_and_amounts(self, client, headers, tenant_id, property_id):
        today = rent_schedule.utc_today()
        _pay(client, headers, tenant_id, 8000, status="paid", paid=today.isoformat())
        _pay(client, headers, tenant_id, 500, status="overdue", due=(today - timedelta(days=10)).isoformat())
        client.post(
            "/bookings",
            json={"property_id": property_id, "guest_name": "Gina",
                  "check_in_date": (today + timedelta(days=2)).isoformat(),
                  "check_out_date": (today + timedelta(days=4)).isoformat()},
            headers=headers,
        )

        body = client.get("/dashboard", headers=headers).json()
        assert body["total_properties"] == 1
        assert body["active_tenants"] == 1
        assert body["upcoming_check_ins"] == 1
        assert body["revenue_this_month"] == 8000
        assert body["outstanding_amount"] == 500
        assert body["overdue_payments"] == 1
        assert body["unread_notifications"] >= 1
