import pytest


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestProperties:

    def test_counts_active_bookings_and_leases(self, client, headers, property_id, tenant_id):
        client.post(
            "/bookings",
            json={"property_id": property_id, "guest_name": "Gina", "check_in_date": "2030-07-01",
                  "check_out_date": "2030-07-03"},
            headers=headers,
        )
        prop = client.get(f"/properties/{property_id}", headers=headers).json()
        assert prop["bookings_count"] == 1
        assert prop["active_leases_count"] == 1

    def test_stats(self, client, headers, property_id, tenant_id):
        client.post("/properties", json={"name": "Lodge", "address": "1 Pass Road", "rental_type": "short_term",
                                         "is_active": False}, headers=headers)
        stats = client.get("/properties/stats", headers=headers).json()
        assert stats == {
            "total_properties": 2,
            "active_properties": 1,
            "short_term": 1,
            "long_term": 1,
            "occupied_long_term": 1,
        }

    @pytest.mark.parametrize("query, expected", [("search=beach", 1), ("search=mountain", 0), ("rental_type=short_term", 0)])
    def test_filters(self, client, headers, property_id, query, expected):
        assert len(client.get(f"/properties?{query}", headers=headers).json()) == expected

    @pytest.mark.parametrize("value", ["3pm", "25:00", "12:5x"])
    def test_check_in_time_format(self, client, headers, value):
        r = client.post("/properties", json={"name": "x", "address": "y", "check_in_time": value}, headers=headers)
        assert r.status_code == 422

    def test_owner_scoping(self, client, other_headers, property_id):
        assert client.get(f"/properties/{property_id}", headers=other_headers).status_code == 404
        assert client.delete(f"/properties/{property_id}", headers=other_headers).status_code == 404

    def test_delete(self, client, headers, property_id):
        assert client.delete(f"/properties/{property_id}", headers=headers).status_code == 204
        assert client.get(f"/properties/{property_id}", headers=headers).status_code == 404

    def test_remove_calendar_url(self, client, headers, property_id):
        r = client.delete(f"/properties/{property_id}/calendar-urls?url=https://nope.example", headers=headers)
        assert r.status_code == 404


# ---------------------------------------------------------------------------
# Tenants and leases
# ---------------------------------------------------------------------------


class TestTenants:

    def test_duplicate_email_per_landlord(self, client, headers, tenant_id, other_headers):
        body = {"first_name": "Tom", "last_name": "Again", "email": "tom@example.com"}
        assert client.post("/tenants", json=body, headers=headers).status_code == 409
        assert client.post("/tenants", json=body, headers=other_headers).status_code == 201

    def test_lease_created_with_tenant(self, client, headers, tenant_id, property_id):
        leases = client.get(f"/tenants/{tenant_id}/leases", headers=headers).json()
        assert len(leases) == 1
        assert leases[0]["property_id"] == property_id
        assert leases[0]["is_active"] is True
        assert float(leases[0]["monthly_rent"]) == 8000

    def test_new_lease_ends_previous(self, client, headers, tenant_id):
        other = client.post("/properties", json={"name": "Flat 2", "address": "2 Main St"}, headers=headers).json()["id"]
        r = client.post(
            f"/tenants/{tenant_id}/leases",
            json={"property_id": other, "lease_start_date": "2027-01-01", "lease_end_date": "2027-12-31"},
            headers=headers,
        )
        assert r.status_code == 201
        assert float(r.json()["monthly_rent"]) == 8000

        active = client.get("/tenants/leases", headers=headers).json()
        assert [lease["property_id"] for lease in active] == [other]

    def test_lease_dates_must_be_ordered(self, client, headers, tenant_id, property_id):
        r = client.post(
            f"/tenants/{tenant_id}/leases",
            json={"property_id": property_id, "lease_start_date": "2027-01-01", "lease_end_date": "2026-01-01"},
            headers=headers,
        )
        assert r.status_code == 400

    def test_former_tenant_lease_ends(self, client, headers, tenant_id):
        client.patch(f"/tenants/{tenant_id}", json={"status": "former"}, headers=headers)
        assert client.get("/tenants/leases", headers=headers).json() == []
        assert client.get("/tenants?status=active", headers=headers).json() == []

    def test_filter_by_property(self, client, headers, tenant_id, property_id):
        assert [t["id"] for t in client.get(f"/tenants?property_id={property_id}", headers=headers).json()] == [tenant_id]

    def test_delete_removes_folders(self, client, headers, tenant_id):
        assert client.delete(f"/tenants/{tenant_id}", headers=headers).status_code == 204
        assert client.get("/folders", headers=headers).json() == []


class TestPortalAccess:

    def test_grant_emails_temporary_password(self, client, headers, tenant_id, outbox):
        r = client.post(f"/tenants/{tenant_id}/portal-access", headers=headers)
        assert r.json()["enabled"] is True

        text = outbox.to("tom@example.com")[-1]["text"]
        password = text.split("Temporary password: ")[1].split("\n")[0]
        login = client.post("/auth/login", json={"email": "tom@example.com", "password": password})
        assert login.status_code == 200
        assert login.json()["user"]["role"] == "tenant"

    def test_revoke_disables_login(self, client, headers, tenant_id, outbox):
        client.post(f"/tenants/{tenant_id}/portal-access", headers=headers)
        password = outbox.to("tom@example.com")[-1]["text"].split("Temporary password: ")[1].split("\n")[0]

        r = client.delete(f"/tenants/{tenant_id}/portal-access", headers=headers)
        assert r.json()["enabled"] is False
        assert client.post("/auth/login", json={"email": "tom@example.com", "password": password}).status_code == 403

    def test_revoke_without_access(self, client, headers, tenant_id):
        assert client.delete(f"/tenants/{tenant_id}/portal-access", headers=headers).status_code == 404

    def test_portal_lists_own_payments(self, client, headers, tenant_id, outbox):
        client.post("/payments", json={"tenant_id": tenant_id, "amount": "8000"}, headers=headers)
        client.post(f"/tenants/{tenant_id}/portal-access", headers=headers)
        password = outbox.to("tom@example.com")[-1]["text"].split("Temporary password: ")[1].split("\n")[0]
        token = client.post("/auth/login", json={"email": "tom@example.com", "password": password}).json()["access_token"]
        tenant_headers = {"Authorization": f"Bearer {token}"}

        payments = client.get("/portal/payments", headers=tenant_headers).json()
        assert len(payments) == 1
        pdf = client.get(f"/portal/payments/{payments[0]['id']}/invoice.pdf", headers=tenant_headers)
        assert pdf.content.startswith(b"%PDF")

        # Landlord-only surfaces stay closed
        assert client.get("/tenants", headers=tenant_headers).status_code == 403


class TestTenantUpdates:

    def test_former_tenant_stops_billing(self, client, headers, tenant_id):
        body = client.patch(f"/tenants/{tenant_id}", json={"status": "former"}, headers=headers).json()
        assert body["next_payment_due"] is None

    def test_reactivated_tenant_resumes_billing(self, client, headers, tenant_id):
        client.patch(f"/tenants/{tenant_id}", json={"status": "former"}, headers=headers)
        body = client.patch(f"/tenants/{tenant_id}", json={"status": "active"}, headers=headers).json()
        assert body["next_payment_due"] is not None

    def test_rent_added_later_starts_schedule(self, client, headers):
        tenant = client.post(
            "/tenants", json={"first_name": "Rae", "last_name": "Later", "email": "rae@example.com"}, headers=headers
        ).json()
        assert tenant["next_payment_due"] is None

        body = client.patch(f"/tenants/{tenant['id']}", json={"monthly_rent": "5000"}, headers=headers).json()
        assert body["next_payment_due"] is not None

    def test_explicit_due_date_wins(self, client, headers, tenant_id):
        body = client.patch(
            f"/tenants/{tenant_id}", json={"monthly_rent": "9000", "next_payment_due": "2030-01-01"}, headers=headers
        ).json()
        assert body["next_payment_due"] == "2030-01-01"

    def test_email_change_follows_portal_login(self, client, headers, tenant_id, outbox):
        client.post(f"/tenants/{tenant_id}/portal-access", headers=headers)
        password = outbox.to("tom@example.com")[-1]["text"].split("Temporary password: ")[1].split("\n")[0]

        r = client.patch(f"/tenants/{tenant_id}", json={"email": "Thomas@Example.com"}, headers=headers)
        assert r.status_code == 200
        assert client.post("/auth/login", json={"email": "thomas@example.com", "password": password}).status_code == 200

    def test_email_taken_by_another_account(self, client, headers, landlord, tenant_id, outbox):
        client.post(f"/tenants/{tenant_id}/portal-access", headers=headers)
        r = client.patch(f"/tenants/{tenant_id}", json={"email": landlord.email}, headers=headers)
        assert r.status_code == 409

    @pytest.mark.parametrize("field", ["first_name", "email", "status", "auto_send_reminder"])
    def test_required_fields_cannot_be_nulled(self, client, headers, tenant_id, field):
        assert client.patch(f"/tenants/{tenant_id}", json={field: None}, headers=headers).status_code == 422

    @pytest.mark.parametrize("field", ["name", "address", "rental_type", "is_active"])
    def test_property_required_fields_cannot_be_nulled(self, client, headers, property_id, field):
        assert client.patch(f"/properties/{property_id}", json={field: None}, headers=headers).status_code == 422
