"""Tests for src/api/flask_server.py

Routes are exercised through the Flask test client with the engine wired
to in-memory collaborators.
"""

import pytest

from src.api.flask_server import create_app
from src.reconciliation.link_graph import color_for_event
from tests.conftest import ADMINS, entry, reservation


@pytest.fixture
def client(engine):
    app = create_app(engine)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def overlapping_blocks(provider):
    provider.add(entry("E1", "2025-07-01", "2025-07-05"))
    provider.add(entry("E2", "2025-07-04", "2025-07-09"))


# ─────────────────────────────────────────────────────────────────────────────
# Read endpoints
# ─────────────────────────────────────────────────────────────────────────────


class TestReadEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_availability(self, client, repository):
        repository.save(reservation("R1", "2025-06-10", "2025-06-15"))

        response = client.get("/availability?from=2025-06-01&to=2025-06-30")

        assert response.status_code == 200
        assert response.get_json()["blockedDays"] == [
            "2025-06-11", "2025-06-12", "2025-06-13", "2025-06-14"
        ]

    @pytest.mark.parametrize("query", [
        "",
        "?from=2025-06-01",
        "?from=01-06-2025&to=2025-06-30",
        "?from=2025-06-30&to=2025-06-01",
    ])
    def test_availability_rejects_bad_windows(self, client, query):
        response = client.get(f"/availability{query}")
        assert response.status_code == 400
        assert "error" in response.get_json()

    def test_conflicts(self, client, overlapping_blocks):
        response = client.get("/conflicts")

        data = response.get_json()
        assert data["total"] == 1
        conflict = data["conflicts"][0]
        assert conflict["type"] == "OVERLAPPING_CALENDAR_EVENTS"
        assert conflict["severity"] == "HIGH"
        assert [e["id"] for e in conflict["events"]] == ["E1", "E2"]

    def test_unknown_endpoint(self, client):
        assert client.get("/nope").status_code == 404


# ─────────────────────────────────────────────────────────────────────────────
# Calendar links
# ─────────────────────────────────────────────────────────────────────────────


class TestCalendarLinks:

    def test_group(self, client, overlapping_blocks, provider):
        response = client.post("/calendar-links/group", json={
            "eventIds": ["E1", "E2"], "colorId": "5", "createdBy": "Admin@Example.com",
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["members"] == ["E1", "E2"]
        assert provider.color_of("E1") == "5"
        assert client.get("/conflicts").get_json()["total"] == 0

    def test_group_rejects_info_colour(self, client, overlapping_blocks):
        response = client.post("/calendar-links/group", json={"eventIds": ["E1", "E2"], "colorId": "10"})
        assert response.status_code == 400

    def test_group_needs_two_ids(self, client, overlapping_blocks):
        response = client.post("/calendar-links/group", json={"eventIds": ["E1"], "colorId": "5"})
        assert response.status_code == 400

    def test_group_unreachable_is_conflict(self, client, overlapping_blocks, provider):
        provider.add(entry("E3", "2025-08-01", "2025-08-03"))

        response = client.post("/calendar-links/group", json={
            "eventIds": ["E1", "E3"], "colorId": "5",
        })

        assert response.status_code == 409
        assert response.get_json()["pair"] == ["E1", "E3"]

    def test_group_unknown_entry_is_not_found(self, client, overlapping_blocks):
        response = client.post("/calendar-links/group", json={
            "eventIds": ["E1", "ghost"], "colorId": "5",
        })
        assert response.status_code == 404
        assert response.get_json()["eventId"] == "ghost"

    def test_ungroup_single(self, client, overlapping_blocks, provider):
        client.post("/calendar-links/group", json={"eventIds": ["E1", "E2"], "colorId": "5"})

        response = client.post("/calendar-links/ungroup-single", json={"eventId": "E1"})

        assert response.status_code == 200
        assert response.get_json()["linksRemoved"] == 1
        assert provider.color_of("E2") == color_for_event("E2")

    def test_ungroup_single_requires_event_id(self, client):
        assert client.post("/calendar-links/ungroup-single", json={}).status_code == 400

    def test_ungroup(self, client, overlapping_blocks):
        client.post("/calendar-links/group", json={"eventIds": ["E1", "E2"], "colorId": "5"})

        response = client.post("/calendar-links/ungroup", json={"eventIds": ["E1", "E2"]})

        assert response.status_code == 200
        assert response.get_json()["linksRemoved"] == 1

    def test_missing_body_is_rejected(self, client):
        response = client.post("/calendar-links/group", data="not json", content_type="text/plain")
        assert response.status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Conflict administration
# ─────────────────────────────────────────────────────────────────────────────


class TestConflictAdministration:

    def test_ignore_and_unignore(self, client, overlapping_blocks):
        conflict = client.get("/conflicts").get_json()["conflicts"][0]
        payload = {"conflictKey": conflict["key"], "conflictType": conflict["type"], "reason": "<b>ok</b>"}

        assert client.post("/conflicts/ignore", json=payload).status_code == 200
        assert client.get("/conflicts").get_json()["conflicts"][0]["ignored"] is True
        assert client.get("/conflicts?includeIgnored=false").get_json()["total"] == 0

        assert client.delete("/conflicts/ignore", json=payload).status_code == 200
        assert client.delete("/conflicts/ignore", json=payload).status_code == 404

    def test_ignore_rejects_bad_key(self, client):
        response = client.post("/conflicts/ignore", json={
            "conflictKey": "abc", "conflictType": "CALENDAR_CONFLICT",
        })
        assert response.status_code == 400

    def test_conflict_check_requires_secret_when_configured(self, client, monkeypatch):
        monkeypatch.setattr("config.settings.Config.CRON_SECRET", "s3cret")

        assert client.post("/conflicts/check").status_code == 401
        response = client.post("/conflicts/check", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200
        assert response.get_json()["skipped"] is False

    def test_conflict_check_sends_mail(self, client, overlapping_blocks, email_sender, monkeypatch):
        monkeypatch.setattr("config.settings.Config.CRON_SECRET", "")

        data = client.post("/conflicts/check").get_json()

        assert data["notified"] == 1
        assert len(email_sender.sent) == len(ADMINS)

    def test_reservation_changed(self, client, repository, provider):
        repository.save(reservation("r1", "2025-06-10", "2025-06-15"))
        provider.add(entry("e1", "2025-06-12", "2025-06-14"))

        data = client.post("/reservations/r1/changed").get_json()

        assert data["inConflict"] is True
        assert data["notified"] == 1
