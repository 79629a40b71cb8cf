from datetime import date, datetime, timedelta, timezone

import pytest

from property_crm.core.ical import CalendarEvent
from property_crm.models.messaging import ScheduledMessage
from property_crm.services import messaging
from tests.conftest import CRON_HEADERS


def _booking(client, headers, property_id, check_in="2030-07-01", check_out="2030-07-05", **extra):
    body = {
        "property_id": property_id,
        "guest_name": "Gina Guest",
        "guest_email": "gina@example.com",
        "check_in_date": check_in,
        "check_out_date": check_out,
        "total_amount": "4000",
    }
    body.update(extra)
    return client.post("/bookings", json=body, headers=headers)


def _automation(client, headers, trigger, **extra):
    body = {
        "name": trigger,
        "trigger_type": trigger,
        "subject": "Your stay at {{property_name}}",
        "body_template": "Hi {{guest_name}}, check-in is {{check_in_date}} at {{check_in_time}}.",
    }
    body.update(extra)
    r = client.post("/messaging/automations", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class TestBookings:

    def test_create_computes_nights_and_balance(self, client, headers, property_id):
        r = _booking(client, headers, property_id)
        assert r.status_code == 201, r.text
        b = r.json()
        assert b["number_of_nights"] == 4
        assert float(b["amount_due"]) == 4000
        assert b["payment_status"] == "pending"
        assert b["booking_reference"].startswith("BK")

    def test_zero_total_counts_as_paid(self, client, headers, property_id):
        b = _booking(client, headers, property_id, total_amount="0").json()
        assert b["payment_status"] == "paid"

    def test_check_out_must_follow_check_in(self, client, headers, property_id):
        r = _booking(client, headers, property_id, check_in="2030-07-05", check_out="2030-07-05")
        assert r.status_code == 422

    @pytest.mark.parametrize(
        "check_in, check_out, ok",
        [
            ("2030-07-03", "2030-07-08", False),
            ("2030-06-28", "2030-07-02", False),
            ("2030-07-02", "2030-07-03", False),
            ("2030-07-05", "2030-07-08", True),
            ("2030-06-25", "2030-07-01", True),
        ],
    )
    def test_overlapping_stays_are_rejected(self, client, headers, property_id, check_in, check_out, ok):
        _booking(client, headers, property_id)
        r = _booking(client, headers, property_id, check_in=check_in, check_out=check_out, guest_name="Second")
        assert (r.status_code == 201) is ok
        if not ok:
            assert r.status_code == 400

    def test_cancelled_booking_frees_the_dates(self, client, headers, property_id):
        first = _booking(client, headers, property_id).json()
        client.patch(f"/bookings/{first['id']}", json={"status": "cancelled"}, headers=headers)
        assert _booking(client, headers, property_id, guest_name="Next").status_code == 201

    def test_other_landlords_cannot_see_booking(self, client, headers, other_headers, property_id):
        b = _booking(client, headers, property_id).json()
        assert client.get(f"/bookings/{b['id']}", headers=other_headers).status_code == 404

    def test_search_by_guest(self, client, headers, property_id):
        _booking(client, headers, property_id)
        assert len(client.get("/bookings?search=gina", headers=headers).json()) == 1
        assert client.get("/bookings?search=nobody", headers=headers).json() == []

    @pytest.mark.parametrize("field", ["guest_name", "status", "check_in_date", "total_amount"])
    def test_required_fields_cannot_be_nulled(self, client, headers, property_id, field):
        b = _booking(client, headers, property_id).json()
        r = client.patch(f"/bookings/{b['id']}", json={field: None}, headers=headers)
        assert r.status_code == 422
        assert client.get(f"/bookings/{b['id']}", headers=headers).json()[field] is not None


# ---------------------------------------------------------------------------
# Automations and scheduled messages
# ---------------------------------------------------------------------------


class TestScheduling:
    """Booking lifecycle events schedule and cancel automated messages."""

    def test_check_in_reminder_is_scheduled_on_create(self, client, headers, property_id):
        _automation(client, headers, "check_in_reminder", trigger_offset=-24, trigger_time_of_day="09:30")
        b = _booking(client, headers, property_id).json()

        scheduled = client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json()
        assert len(scheduled) == 1
        msg = scheduled[0]
        assert msg["status"] == "pending"
        assert msg["scheduled_for"].startswith("2030-06-30T09:30")
        assert msg["subject"] == "Your stay at Sea View Cottage"
        assert "Hi Gina Guest" in msg["body"]

    def test_inactive_automation_is_ignored(self, client, headers, property_id):
        _automation(client, headers, "check_in_reminder", is_active=False)
        b = _booking(client, headers, property_id).json()
        assert client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json() == []

    def test_property_filter_limits_automation(self, client, headers, property_id):
        other_prop = client.post("/properties", json={"name": "Mountain Lodge", "address": "1 Pass Road"}, headers=headers).json()["id"]
        _automation(client, headers, "check_in_reminder", property_ids=[other_prop])
        b = _booking(client, headers, property_id).json()
        assert client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json() == []

    def test_confirmation_schedules_confirmed_messages(self, client, headers, property_id):
        _automation(client, headers, "booking_confirmed")
        b = _booking(client, headers, property_id).json()
        assert client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json() == []

        client.patch(f"/bookings/{b['id']}", json={"status": "confirmed"}, headers=headers)
        assert len(client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json()) == 1

    def test_cancellation_cancels_pending_messages(self, client, headers, property_id):
        _automation(client, headers, "check_in_reminder")
        _automation(client, headers, "review_request", trigger_offset=24)
        b = _booking(client, headers, property_id).json()

        client.patch(f"/bookings/{b['id']}", json={"status": "cancelled"}, headers=headers)
        statuses = {m["status"] for m in client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json()}
        assert statuses == {"cancelled"}

    def test_email_automation_requires_subject(self, client, headers):
        r = client.post(
            "/messaging/automations",
            json={"name": "x", "trigger_type": "booking_created", "body_template": "Hi"},
            headers=headers,
        )
        assert r.status_code == 422

    @pytest.mark.parametrize("value", ["9am", "24:00", "12:60", "12"])
    def test_time_of_day_must_be_hh_mm(self, client, headers, value):
        r = client.post(
            "/messaging/automations",
            json={"name": "x", "trigger_type": "check_in_reminder", "subject": "s", "body_template": "b",
                  "trigger_time_of_day": value},
            headers=headers,
        )
        assert r.status_code == 422


class TestProcessing:

    def test_process_requires_cron_secret(self, client):
        assert client.post("/messaging/process").status_code == 401

    def test_due_messages_are_sent_once(self, client, headers, property_id, outbox):
        automation = _automation(client, headers, "booking_created")
        _booking(client, headers, property_id)

        body = client.post("/messaging/process", headers=CRON_HEADERS).json()
        assert body == {"processed": 1, "succeeded": 1, "failed": 0}
        assert len(outbox.to("gina@example.com")) == 1

        again = client.post("/messaging/process", headers=CRON_HEADERS).json()
        assert again["processed"] == 0

        stats = client.get(f"/messaging/automations/{automation['id']}", headers=headers).json()
        assert stats["total_sent"] == 1

    def test_future_messages_wait(self, client, headers, property_id, outbox):
        _automation(client, headers, "check_in_reminder")
        _booking(client, headers, property_id)
        assert client.post("/messaging/process", headers=CRON_HEADERS).json()["processed"] == 0

    def test_failed_delivery_is_recorded(self, client, headers, property_id, outbox):
        automation = _automation(client, headers, "booking_created")
        b = _booking(client, headers, property_id).json()
        outbox.fail = True

        body = client.post("/messaging/process", headers=CRON_HEADERS).json()
        assert body["failed"] == 1

        msg = client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json()[0]
        assert msg["status"] == "failed"
        assert msg["error_message"] == "SMTP unavailable"
        assert client.get(f"/messaging/automations/{automation['id']}", headers=headers).json()["total_failed"] == 1

    def test_failed_message_can_be_rescheduled(self, client, headers, property_id, outbox):
        _automation(client, headers, "booking_created")
        b = _booking(client, headers, property_id).json()
        outbox.fail = True
        client.post("/messaging/process", headers=CRON_HEADERS)

        msg = client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json()[0]
        later = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        r = client.patch(f"/messaging/scheduled/{msg['id']}/reschedule", json={"scheduled_for": later}, headers=headers)
        assert r.status_code == 200
        assert r.json()["status"] == "pending"
        assert r.json()["error_message"] is None

    def test_only_pending_messages_can_be_cancelled(self, client, headers, property_id, outbox):
        _automation(client, headers, "booking_created")
        b = _booking(client, headers, property_id).json()
        client.post("/messaging/process", headers=CRON_HEADERS)

        msg = client.get(f"/messaging/scheduled?booking_id={b['id']}", headers=headers).json()[0]
        assert client.post(f"/messaging/scheduled/{msg['id']}/cancel", headers=headers).status_code == 400

    def test_sms_is_logged_in_dev(self, db, landlord):
        message = ScheduledMessage(
            user_id=landlord.id,
            recipient_phone="+27820000000",
            message_type="sms",
            body="Hello",
            scheduled_for=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        db.add(message)
        db.commit()

        assert messaging.process_pending(db) == {"processed": 1, "succeeded": 1, "failed": 0}
        db.refresh(message)
        assert message.status == "sent"


class TestTemplatesAndTests:

    def test_preview_uses_sample_context(self, client, headers):
        r = client.post("/messaging/templates/preview", json={"template": "Hi {{guest_name}} {{door_code}}"}, headers=headers)
        body = r.json()
        assert body["rendered"] == "Hi Jane Smith "
        assert body["variables"] == ["guest_name", "door_code"]
        assert body["valid"] is False
        assert body["missing"] == ["door_code"]

    def test_variables_listing(self, client, headers):
        assert "guest_name" in client.get("/messaging/templates/variables", headers=headers).json()["variables"]
        assert client.get("/messaging/templates/variables?context_type=nope", headers=headers).status_code == 400

    def test_test_send_prefixes_subject(self, client, headers, outbox):
        automation = _automation(client, headers, "booking_created")
        r = client.post(
            f"/messaging/automations/{automation['id']}/test",
            json={"recipient_email": "me@example.com"},
            headers=headers,
        )
        body = r.json()
        assert body["success"] is True
        assert body["subject"] == "[TEST] Your stay at Sea View Cottage"
        assert outbox.to("me@example.com")

    def test_test_send_needs_recipient(self, client, headers):
        automation = _automation(client, headers, "booking_created")
        r = client.post(f"/messaging/automations/{automation['id']}/test", json={}, headers=headers)
        assert r.status_code == 400


# ---------------------------------------------------------------------------
# Calendar import
# ---------------------------------------------------------------------------


class TestCalendarImport:

    @pytest.fixture()
    def feed(self, monkeypatch):
        events = [
            CalendarEvent("a1@airbnb.com", "Reserved", "", date(2030, 8, 1), date(2030, 8, 4), "airbnb"),
            CalendarEvent("b2", "Blocked", "", date(2030, 8, 10), date(2030, 8, 10), "other"),
        ]
        monkeypatch.setattr("property_crm.api.routes.integrations.fetch_calendar", lambda url: "ignored")
        monkeypatch.setattr("property_crm.api.routes.integrations.parse_ical", lambda text: events)
        return events

    def test_import_is_idempotent(self, client, headers, property_id, feed):
        payload = {"property_id": property_id, "calendar_url": "https://example.com/cal.ics"}
        first = client.post("/integrations/calendar/import", json=payload, headers=headers).json()
        assert (first["imported"], first["skipped"], first["total"]) == (1, 1, 2)

        second = client.post("/integrations/calendar/import", json=payload, headers=headers).json()
        assert second["imported"] == 0

        bookings = client.get(f"/bookings?property_id={property_id}", headers=headers).json()
        assert len(bookings) == 1
        assert bookings[0]["status"] == "confirmed"
        assert bookings[0]["source"] == "airbnb"

        prop = client.get(f"/properties/{property_id}", headers=headers).json()
        assert prop["calendar_urls"] == ["https://example.com/cal.ics"]