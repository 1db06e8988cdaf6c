"""Tests for the RSVP ledger endpoints.

Covers:
- Registered RSVP upsert (one row per event and user)
- Guest RSVPs are never deduplicated
- Lifecycle and field validation
- Owner/admin gate on listing and moderation
- Mirror refresh queued after every successful write, never after a failed one
"""
from rsvp_app.models.rsvp import RSVP, GuestRSVP
from tests.conftest import create_admin, create_test_event, register_user


def _submit(client, headers, event_id, status="confirmed", **fields):
    return client.post("/api/rsvp/submit", json={"event_id": event_id, "status": status, **fields},
                       headers=headers)


def _guest(client, event_id, name="Guest", status="confirmed", **fields):
    return client.post("/api/rsvp/guest", json={"event_id": event_id, "name": name, "status": status, **fields})


class TestSubmitRSVP:

    def test_first_submission_creates(self, client, db, recording_mirror):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        resp = _submit(client, alice["headers"], event["id"], dietary_restrictions="vegan")
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "confirmed"
        assert data["rsvp"]["dietary_restrictions"] == "vegan"
        assert db.query(RSVP).count() == 1
        assert recording_mirror.refreshed(event["id"]) == [("refresh", event["id"], "Launch")]

    def test_resubmission_updates_in_place(self, client, db):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        first = _submit(client, alice["headers"], event["id"], "confirmed",
                        plus_one=True, plus_one_name="Sam", notes="early").json()
        resp = _submit(client, alice["headers"], event["id"], "declined")
        assert resp.status_code == 200
        second = resp.json()
        assert second["message"] == "RSVP updated successfully"
        assert second["rsvp"]["id"] == first["rsvp"]["id"]
        assert second["rsvp"]["status"] == "declined"
        # all mutable fields are replaced, not merged
        assert second["rsvp"]["plus_one"] is False
        assert second["rsvp"]["plus_one_name"] is None
        assert second["rsvp"]["notes"] is None
        assert db.query(RSVP).filter(RSVP.event_id == event["id"]).count() == 1

    def test_requires_auth(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        assert client.post("/api/rsvp/submit", json={"event_id": event["id"], "status": "confirmed"}).status_code == 401

    def test_unknown_event(self, client, recording_mirror):
        alice = register_user(client, "alice")
        resp = _submit(client, alice["headers"], 12345)
        assert resp.status_code == 404
        assert recording_mirror.calls == []

    def test_inactive_event(self, client, db, recording_mirror):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        client.put(f"/api/events/{event['id']}", json={"status": "completed"}, headers=alice["headers"])
        recording_mirror.calls.clear()

        resp = _submit(client, alice["headers"], event["id"])
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_state"
        assert db.query(RSVP).count() == 0
        assert recording_mirror.calls == []

    def test_invalid_status(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        resp = _submit(client, alice["headers"], event["id"], status="maybe")
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    def test_field_length_bounds(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        assert _submit(client, alice["headers"], event["id"], notes="x" * 1001).status_code == 400
        assert _submit(client, alice["headers"], event["id"], dietary_restrictions="x" * 501).status_code == 400
        assert _submit(client, alice["headers"], event["id"], plus_one_name="x" * 101).status_code == 400


class TestGuestRSVP:

    def test_guests_never_deduplicate(self, client, db):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        for _ in range(3):
            resp = _guest(client, event["id"], name="Bob")
            assert resp.status_code == 201
        assert db.query(GuestRSVP).filter(GuestRSVP.event_id == event["id"]).count() == 3

    def test_guest_requires_name(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        assert _guest(client, event["id"], name="").status_code == 400

    def test_guest_contact_fields(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        resp = _guest(client, event["id"], email="bob@example.com", phone="555-0100")
        assert resp.status_code == 201
        assert resp.json()["rsvp"]["phone"] == "555-0100"
        assert _guest(client, event["id"], email="nope").status_code == 400
        assert _guest(client, event["id"], phone="1" * 21).status_code == 400

    def test_guest_on_cancelled_event(self, client, db):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        client.delete(f"/api/events/{event['id']}", headers=alice["headers"])
        resp = _guest(client, event["id"])
        assert resp.status_code == 400
        assert db.query(GuestRSVP).count() == 0


class TestEventRSVPList:

    def test_owner_sees_union_in_submission_order(self, client):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        event = create_test_event(client, alice["headers"])
        _guest(client, event["id"], name="Early Guest")
        _submit(client, bob["headers"], event["id"])
        _guest(client, event["id"], name="Late Guest", status="declined")

        resp = client.get(f"/api/rsvp/event/{event['id']}", headers=alice["headers"])
        assert resp.status_code == 200
        items = resp.json()["items"]
        assert [(i["kind"], i["display_name"]) for i in items] == [
            ("guest", "Early Guest"),
            ("registered", "bob"),
            ("guest", "Late Guest"),
        ]
        assert items[1]["email"] == "bob@example.com"

    def test_resubmission_keeps_original_position(self, client):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        event = create_test_event(client, alice["headers"])
        _submit(client, bob["headers"], event["id"])
        _guest(client, event["id"], name="Guest")
        _submit(client, bob["headers"], event["id"], "declined")

        items = client.get(f"/api/rsvp/event/{event['id']}", headers=alice["headers"]).json()["items"]
        assert [i["display_name"] for i in items] == ["bob", "Guest"]
        assert items[0]["status"] == "declined"

    def test_admin_allowed(self, client, db):
        alice = register_user(client, "alice")
        admin = create_admin(db)
        event = create_test_event(client, alice["headers"])
        assert client.get(f"/api/rsvp/event/{event['id']}", headers=admin["headers"]).status_code == 200

    def test_non_owner_forbidden(self, client):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        event = create_test_event(client, alice["headers"])
        _submit(client, bob["headers"], event["id"])
        resp = client.get(f"/api/rsvp/event/{event['id']}", headers=bob["headers"])
        assert resp.status_code == 403

    def test_unknown_event(self, client):
        alice = register_user(client, "alice")
        assert client.get("/api/rsvp/event/999", headers=alice["headers"]).status_code == 404


class TestMyRSVPs:

    def test_ordered_by_event_date_and_paginated(self, client):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        late = create_test_event(client, alice["headers"], title="Late", event_date="2025-09-01T10:00:00")
        early = create_test_event(client, alice["headers"], title="Early", event_date="2025-07-01T10:00:00")
        other = create_test_event(client, alice["headers"], title="Other", event_date="2025-08-01T10:00:00")
        for event in (late, early, other):
            _submit(client, bob["headers"], event["id"])

        resp = client.get("/api/rsvp/my-rsvps?limit=2", headers=bob["headers"])
        assert resp.status_code == 200
        data = resp.json()
        assert [i["event_title"] for i in data["items"]] == ["Early", "Other"]
        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

        page2 = client.get("/api/rsvp/my-rsvps?limit=2&page=2", headers=bob["headers"]).json()
        assert [i["event_title"] for i in page2["items"]] == ["Late"]

    def test_only_callers_rsvps(self, client):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        event = create_test_event(client, alice["headers"])
        _submit(client, alice["headers"], event["id"])
        assert client.get("/api/rsvp/my-rsvps", headers=bob["headers"]).json()["items"] == []


class TestModeration:

    def test_owner_moderates(self, client, recording_mirror):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        event = create_test_event(client, alice["headers"])
        rsvp = _submit(client, bob["headers"], event["id"], "pending").json()["rsvp"]
        recording_mirror.calls.clear()

        resp = client.put(f"/api/rsvp/{rsvp['id']}", json={"status": "confirmed", "notes": "approved"},
                          headers=alice["headers"])
        assert resp.status_code == 200
        assert resp.json()["rsvp"]["status"] == "confirmed"
        assert resp.json()["rsvp"]["notes"] == "approved"
        assert recording_mirror.refreshed(event["id"]) == [("refresh", event["id"], "Launch")]

    def test_any_status_transition_allowed(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        rsvp = _submit(client, alice["headers"], event["id"], "declined").json()["rsvp"]
        for status in ("confirmed", "pending", "declined", "pending"):
            resp = client.put(f"/api/rsvp/{rsvp['id']}", json={"status": status}, headers=alice["headers"])
            assert resp.status_code == 200
            assert resp.json()["status"] == status

    def test_respondent_cannot_moderate_own_rsvp(self, client, recording_mirror):
        alice = register_user(client, "alice")
        bob = register_user(client, "bob")
        event = create_test_event(client, alice["headers"])
        rsvp = _submit(client, bob["headers"], event["id"], "pending").json()["rsvp"]
        recording_mirror.calls.clear()

        resp = client.put(f"/api/rsvp/{rsvp['id']}", json={"status": "confirmed"}, headers=bob["headers"])
        assert resp.status_code == 403
        assert recording_mirror.calls == []

    def test_admin_moderates(self, client, db):
        alice = register_user(client, "alice")
        admin = create_admin(db)
        event = create_test_event(client, alice["headers"])
        rsvp = _submit(client, alice["headers"], event["id"]).json()["rsvp"]
        resp = client.put(f"/api/rsvp/{rsvp['id']}", json={"status": "declined"}, headers=admin["headers"])
        assert resp.status_code == 200

    def test_moderate_guest(self, client):
        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        guest = _guest(client, event["id"], name="Bob", status="pending").json()["rsvp"]
        resp = client.put(f"/api/rsvp/{guest['id']}?kind=guest", json={"status": "confirmed"},
                          headers=alice["headers"])
        assert resp.status_code == 200
        assert resp.json()["rsvp"]["name"] == "Bob"
        assert resp.json()["status"] == "confirmed"

    def test_moderate_missing(self, client):
        alice = register_user(client, "alice")
        resp = client.put("/api/rsvp/999", json={"status": "confirmed"}, headers=alice["headers"])
        assert resp.status_code == 404
        assert resp.json()["message"] == "RSVP not found"


class TestStorageFailure:

    def test_database_error_is_generic_500(self, client, recording_mirror, monkeypatch):
        from sqlalchemy.exc import OperationalError
        from rsvp_app.services import rsvp_service

        def broken_write(db, payload, user):
            raise OperationalError("INSERT INTO rsvps ...", {}, Exception("database is locked"))

        alice = register_user(client, "alice")
        event = create_test_event(client, alice["headers"])
        monkeypatch.setattr(rsvp_service, "submit_rsvp", broken_write)

        resp = _submit(client, alice["headers"], event["id"])
        assert resp.status_code == 500
        assert resp.json() == {"error": "storage_error", "message": "Internal server error"}
        assert "rsvps" not in resp.text
        assert "locked" not in resp.text
        assert recording_mirror.refreshed(event["id"]) == []
