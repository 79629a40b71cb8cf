"""Accounts, admin user management, the public contact form and the audit trail."""
import pytest

from property_crm.models.user import User
from tests.conftest import auth_headers, make_user

SIGNUP = {"email": "New@Example.com", "password": "Passw0rd!", "first_name": "Nia", "last_name": "New"}


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class TestAccounts:

    def test_register_login_me(self, client):
        r = client.post("/auth/register", json=SIGNUP)
        assert r.status_code == 201, r.text
        assert r.json()["user"]["email"] == "new@example.com"
        assert r.json()["user"]["role"] == "landlord"

        r = client.post("/auth/login", json={"email": "NEW@example.com", "password": "Passw0rd!"})
        assert r.status_code == 200
        token = r.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["first_name"] == "Nia"

    def test_duplicate_email_conflicts(self, client):
        client.post("/auth/register", json=SIGNUP)
        r = client.post("/auth/register", json={**SIGNUP, "email": "new@example.com"})
        assert r.status_code == 409

    @pytest.mark.parametrize("password", ["short1", "lettersonly", "12345678"])
    def test_weak_passwords_rejected(self, client, password):
        assert client.post("/auth/register", json={**SIGNUP, "password": password}).status_code == 422

    def test_wrong_password(self, client, landlord):
        r = client.post("/auth/login", json={"email": landlord.email, "password": "Wrong1234"})
        assert r.status_code == 401

    def test_disabled_account_cannot_log_in(self, client, db):
        make_user(db, email="gone@example.com", is_active=False)
        r = client.post("/auth/login", json={"email": "gone@example.com", "password": "Secret123"})
        assert r.status_code == 403

    def test_invalid_token(self, client):
        assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    def test_change_password(self, client, headers, landlord):
        r = client.post(
            "/auth/change-password", json={"current_password": "Secret123", "new_password": "Secret456"}, headers=headers
        )
        assert r.status_code == 200
        assert client.post("/auth/login", json={"email": landlord.email, "password": "Secret456"}).status_code == 200

    def test_change_password_checks_current(self, client, headers):
        r = client.post(
            "/auth/change-password", json={"current_password": "Nope1234", "new_password": "Secret456"}, headers=headers
        )
        assert r.status_code == 400


class TestPasswordReset:

    def test_unknown_email_still_200(self, client, outbox):
        r = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
        assert r.status_code == 200
        assert outbox.messages == []

    def test_reset_flow(self, client, db, landlord, outbox):
        assert client.post("/auth/forgot-password", json={"email": landlord.email}).status_code == 200
        assert len(outbox.to(landlord.email)) == 1

        db.expire_all()
        token = db.query(User).filter(User.id == landlord.id).one().reset_token
        assert token and token in outbox.to(landlord.email)[0]["text"]

        r = client.post("/auth/reset-password", json={"token": token, "new_password": "Brandnew1"})
        assert r.status_code == 200
        assert client.post("/auth/login", json={"email": landlord.email, "password": "Brandnew1"}).status_code == 200

        again = client.post("/auth/reset-password", json={"token": token, "new_password": "Brandnew2"})
        assert again.status_code == 400


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class TestAdmin:

    @pytest.fixture()
    def admin_headers(self, db):
        return auth_headers(make_user(db, email="admin@example.com", role="admin"))

    def test_admin_creates_landlord(self, client, admin_headers):
        r = client.post(
            "/admin/users",
            json={"email": "Owner@Example.com", "password": "Owner1234", "first_name": "O", "last_name": "W"},
            headers=admin_headers,
        )
        assert r.status_code == 201
        assert (r.json()["email"], r.json()["role"]) == ("owner@example.com", "landlord")

    def test_landlord_cannot_use_admin_routes(self, client, headers):
        assert client.get("/admin/system-admins", headers=headers).status_code == 403

    def test_admin_cannot_delete_self(self, client, db, admin_headers):
        admin = db.query(User).filter(User.email == "admin@example.com").one()
        assert client.delete(f"/admin/system-admins/{admin.id}", headers=admin_headers).status_code == 400

    def test_recompute_next_payment_due(self, client, headers, tenant_id):
        body = client.post("/admin/set-next-payment-due", headers=headers).json()
        assert body["updated"] == 1


# ---------------------------------------------------------------------------
# Contact form
# ---------------------------------------------------------------------------


class TestContact:

    def test_forwards_to_support_with_reply_to(self, client, outbox):
        r = client.post(
            "/contact",
            json={"name": "Vera Visitor", "email": "vera@example.com", "subject": "Pricing", "message": "Hello"},
        )
        assert r.status_code == 200
        assert r.json()["success"] is True

        sent = outbox.messages[0]
        assert sent["to"] == "support@property-crm.com"
        assert sent["reply_to"] == "vera@example.com"
        assert "Pricing" in sent["subject"]
        assert "Hello" in sent["text"]

    def test_delivery_failure_is_502(self, client, outbox):
        outbox.fail = True
        r = client.post("/contact", json={"name": "Vera", "email": "vera@example.com", "message": "Hello"})
        assert r.status_code == 502

    def test_message_required(self, client):
        assert client.post("/contact", json={"name": "Vera", "email": "vera@example.com", "message": ""}).status_code == 422


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class TestAuditLogs:

    def test_landlord_sees_only_own_entries(self, client, headers, other_headers, property_id):
        mine = client.get("/audit-logs?entity_type=property", headers=headers).json()
        assert len(mine) >= 1
        assert mine[0]["entity_id"] == str(property_id)
        assert mine[0]["actor_email"] == "landlord@example.com"

        assert client.get("/audit-logs", headers=other_headers).json() == []

    def test_admin_sees_everything(self, client, db, property_id):
        admin = auth_headers(make_user(db, email="admin@example.com", role="admin"))
        assert len(client.get("/audit-logs?entity_type=property", headers=admin).json()) >= 1

    def test_actor_filter_is_case_insensitive(self, client, headers, property_id):
        assert client.get("/audit-logs?actor=LANDLORD@example.com", headers=headers).json()

    def test_overdue_pending_payment_is_high_risk(self, client, headers, tenant_id):
        client.post(
            "/payments",
            json={"tenant_id": tenant_id, "amount": "100", "status": "pending", "due_date": "2020-01-01"},
            headers=headers,
        )
        logs = client.get("/audit-logs?entity_type=payment&high_risk_only=true", headers=headers).json()
        assert logs and logs[0]["risk_level"] == "high"

        stats = client.get("/audit-logs/stats", headers=headers).json()
        assert stats["high_risk"] >= 1
        assert stats["retention_days"] == 90

    def test_tenant_users_are_refused(self, client, db):
        tenant_user = auth_headers(make_user(db, email="t@example.com", role="tenant"))
        assert client.get("/audit-logs", headers=tenant_user).status_code == 403
