import io
from pathlib import Path

import pytest
from PIL import Image

from yachtdesk.models import AdminNotification, RepairApprovalToken, RepairRequest, YachtDocument


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color=(0, 90, 160)).save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


def _stored_files(app):
    return [path for path in Path(app.config["UPLOAD_DIR"]).rglob("*") if path.is_file()]


@pytest.mark.api
class TestAuth:
    """Sign-in, sign-out and password changes over HTTP."""

    def test_login_returns_profile(self, client, fleet):
        response = client.post("/api/v1/auth/login", json={"email": "OWNER@example.com", "password": "password123"})
        assert response.status_code == 200
        data = response.get_json()
        assert data["role"] == "owner"
        assert data["yacht_id"] == fleet.utopia.id

    def test_bad_password(self, client, fleet):
        response = client.post("/api/v1/auth/login", json={"email": "owner@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "Invalid credentials."

    def test_inactive_user_blocked(self, client, db, fleet):
        fleet.owner.is_active_user = False
        db.session.commit()
        response = client.post("/api/v1/auth/login", json={"email": "owner@example.com", "password": "password123"})
        assert response.status_code == 403

    def test_me_requires_login(self, client, fleet):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.get_json() == {"error": "Authentication required"}

    def test_change_password(self, client, fleet, login):
        login(fleet.owner)
        response = client.post(
            "/api/v1/auth/password", json={"current_password": "password123", "new_password": "short"}
        )
        assert response.status_code == 400
        response = client.post(
            "/api/v1/auth/password", json={"current_password": "password123", "new_password": "a-longer-secret"}
        )
        assert response.status_code == 200


@pytest.mark.api
class TestSession:
    def test_master_views_as_owner(self, client, fleet, login):
        login(fleet.master)
        response = client.post("/api/v1/session/role", json={"role": "owner"})
        assert response.status_code == 200
        assert response.get_json()["effective_role"] == "owner"
        assert client.get("/api/v1/auth/me").get_json()["session"]["effective_role"] == "owner"

        response = client.delete("/api/v1/session")
        assert response.get_json()["effective_role"] == "master"

    def test_staff_cannot_view_as_other_role(self, client, fleet, login):
        login(fleet.staff)
        assert client.post("/api/v1/session/role", json={"role": "owner"}).status_code == 403

    def test_staff_switches_yacht(self, client, fleet, login):
        login(fleet.staff)
        response = client.post("/api/v1/session/yacht", json={"yacht_id": fleet.serenity.id})
        data = response.get_json()
        assert data["effective_yacht_id"] == fleet.serenity.id
        assert data["fleet_wide"] is False


@pytest.mark.api
class TestDashboard:
    """Dashboard collections served per session scope."""

    def test_owner_dashboard(self, client, db, fleet, login):
        db.session.add_all(
            [
                RepairRequest(yacht_id=fleet.utopia.id, submitted_by=fleet.owner.id, title="Mine"),
                RepairRequest(yacht_id=fleet.utopia.id, submitted_by=fleet.co_owner.id, title="Theirs"),
            ]
        )
        db.session.commit()
        login(fleet.owner)
        response = client.get("/api/v1/dashboard")
        assert response.status_code == 200
        data = response.get_json()
        assert data["session"]["owner_only"] is True
        assert [item["title"] for item in data["collections"]["repair_requests"]] == ["Mine"]
        assert [item["name"] for item in data["collections"]["yachts"]] == ["Utopia"]

    def test_paged_collection(self, client, fleet, login, make_booking):
        for _ in range(3):
            make_booking(fleet.utopia, fleet.owner)
        login(fleet.staff)
        data = client.get("/api/v1/dashboard/bookings?page=2&per_page=2").get_json()
        assert len(data["items"]) == 1
        assert data["meta"]["page"] == 2

    def test_unknown_collection(self, client, fleet, login):
        login(fleet.staff)
        assert client.get("/api/v1/dashboard/moorings").status_code == 404

    def test_updates_after_staff_message(self, client, fleet, login):
        login(fleet.manager)
        client.get("/api/v1/dashboard")
        assert client.get("/api/v1/dashboard/updates").get_json() == {"collections": {}}
        response = client.post("/api/v1/chat/staff", json={"message": "Diver booked", "yacht_id": fleet.utopia.id})
        assert response.status_code == 201
        updates = client.get("/api/v1/dashboard/updates").get_json()["collections"]
        assert [item["message"] for item in updates["staff_messages"]] == ["Diver booked"]


@pytest.mark.api
class TestCalendarApi:
    def test_month_view(self, client, fleet, login):
        login(fleet.owner)
        data = client.get("/api/v1/calendar?view=month&date=2026-10-19").get_json()
        assert data["title"] == "October 2026"
        assert len(data["cells"]) == 35

    def test_bad_view(self, client, fleet, login):
        login(fleet.owner)
        assert client.get("/api/v1/calendar?view=decade").status_code == 400

    def test_bad_date(self, client, fleet, login):
        login(fleet.owner)
        assert client.get("/api/v1/calendar?date=19/10/2026").status_code == 400

    def test_holidays(self, client):
        data = client.get("/api/v1/calendar/holidays?year=2026").get_json()
        assert {"date": "2026-11-26", "name": "Thanksgiving"} in data


@pytest.mark.api
class TestTrips:
    def test_owner_books_and_checks_in(self, client, fleet, login, make_booking):
        login(fleet.owner)
        response = client.post("/api/v1/bookings", json={"start_date": "2026-10-19", "end_date": "2026-10-21"})
        assert response.status_code == 201
        assert response.get_json()["user_id"] == fleet.owner.id

        booking = make_booking(fleet.utopia, fleet.owner)
        response = client.post(f"/api/v1/bookings/{booking.id}/check-in")
        assert response.status_code == 200
        assert response.get_json()["checked_in"] is True
        assert client.post(f"/api/v1/bookings/{booking.id}/check-in").status_code == 409

        response = client.post(f"/api/v1/bookings/{booking.id}/check-out", json={"oil_change_needed": True})
        assert response.get_json()["oil_change_needed"] is True

    def test_missing_booking(self, client, fleet, login):
        login(fleet.owner)
        assert client.post("/api/v1/bookings/999/check-in").status_code == 404


@pytest.mark.api
class TestRepairsApi:
    def test_submit_with_photo(self, app, client, fleet, login):
        login(fleet.owner)
        response = client.post(
            "/api/v1/repairs",
            data={"title": "Cracked hatch", "file": (_png_bytes(), "hatch.png")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 201
        data = response.get_json()
        assert data["file_url"].startswith("/media/repairs/")
        assert data["file_url"].endswith(".png")

    def test_fake_image_rejected(self, client, fleet, login):
        login(fleet.owner)
        response = client.post(
            "/api/v1/repairs",
            data={"title": "Cracked hatch", "file": (io.BytesIO(b"not an image"), "hatch.png")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400
        assert RepairRequest.query.count() == 0

    def test_rejected_submission_leaves_no_file(self, app, client, fleet, login):
        login(fleet.owner)
        response = client.post(
            "/api/v1/repairs",
            data={"title": "", "file": (_png_bytes(), "hatch.png")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400
        assert _stored_files(app) == []

    def test_approval_link(self, client, fleet, login):
        login(fleet.owner)
        repair_id = client.post("/api/v1/repairs", json={"title": "Anchor light"}).get_json()["id"]
        token = RepairApprovalToken.query.filter_by(repair_request_id=repair_id, action_type="approve").one().token
        response = client.get(f"/api/v1/repairs/approval/{token}")
        assert response.get_json()["status"] == "approved"
        assert client.get(f"/api/v1/repairs/approval/{token}").status_code == 409


@pytest.mark.api
class TestNotificationsApi:
    def test_unread_and_mark_read(self, client, db, fleet, login):
        db.session.add_all(
            [
                AdminNotification(notification_type="general", message="Utopia", yacht_id=fleet.utopia.id),
                AdminNotification(notification_type="general", message="Serenity", yacht_id=fleet.serenity.id),
            ]
        )
        db.session.commit()
        login(fleet.manager)
        assert client.get("/api/v1/notifications/unread-count").get_json() == {"unread": 1}
        assert client.post("/api/v1/notifications/read").get_json() == {"ok": True, "updated": 1}
        assert client.get("/api/v1/notifications/unread-count").get_json() == {"unread": 0}


@pytest.mark.api
class TestDocumentsApi:
    def test_manager_uploads_and_deletes(self, app, client, fleet, login):
        login(fleet.manager)
        response = client.post(
            "/api/v1/documents",
            data={
                "yacht_id": str(fleet.utopia.id),
                "document_name": "Insurance 2026",
                "file": (io.BytesIO(b"%PDF-1.4 test"), "insurance.pdf"),
            },
            content_type="multipart/form-data",
        )
        assert response.status_code == 201
        document_id = response.get_json()["id"]
        assert YachtDocument.query.one().document_name == "Insurance 2026"

        assert client.delete(f"/api/v1/documents/{document_id}").status_code == 200
        assert YachtDocument.query.count() == 0

    def test_owner_cannot_upload(self, client, fleet, login):
        login(fleet.owner)
        response = client.post(
            "/api/v1/documents",
            data={"yacht_id": str(fleet.utopia.id), "file": (io.BytesIO(b"%PDF-1.4"), "x.pdf")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 403


@pytest.mark.api
class TestUsersApi:
    def test_staff_creates_owner(self, client, fleet, login, functions):
        login(fleet.staff)
        response = client.post(
            "/api/v1/users",
            json={"email": "crew@example.com", "role": "owner", "yacht_id": fleet.utopia.id},
        )
        assert response.status_code == 201
        assert response.get_json()["must_change_password"] is True
        assert "create-user" in functions.names()

    def test_owner_cannot_create_users(self, client, fleet, login):
        login(fleet.owner)
        response = client.post("/api/v1/users", json={"email": "crew@example.com", "role": "owner"})
        assert response.status_code == 403

    def test_staff_cannot_create_master(self, client, fleet, login):
        login(fleet.staff)
        response = client.post("/api/v1/users", json={"email": "boss@example.com", "role": "master"})
        assert response.status_code == 403


@pytest.mark.api
class TestMaintenanceApi:
    def test_malformed_yacht_id_is_a_bad_request(self, client, fleet, login):
        login(fleet.staff)
        response = client.post("/api/v1/maintenance", json={"subject": "Leak", "yacht_id": "abc"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid yacht id."}


@pytest.mark.api
class TestAppFactory:
    def test_limiter_reads_defaults_from_config(self, app):
        assert "limiter" in app.extensions
        assert app.config["RATELIMIT_DEFAULT"]
