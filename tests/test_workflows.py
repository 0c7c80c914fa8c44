import io
from pathlib import Path

import pytest
from werkzeug.datastructures import FileStorage

from yachtdesk.errors import ConflictError, ForbiddenError, ValidationError
from yachtdesk.models import AdminNotification, Appointment, RepairRequest, YachtHistoryLog
from yachtdesk.services import (
    AppointmentService,
    AuthService,
    ChatService,
    DocumentService,
    MaintenanceService,
    NotificationService,
    OutboxService,
    UserService,
    YachtService,
)
from yachtdesk.services.functions_client import SEND_MESSAGE_NOTIFICATION


class TestMaintenance:
    """Maintenance request submission, status changes and assignment."""

    @pytest.fixture
    def request_row(self, fleet, ctx_for):
        return MaintenanceService.submit(
            ctx_for(fleet.owner), fleet.owner, {"subject": "Head pump leaking", "priority": "HIGH"}
        )

    def test_submit(self, fleet, request_row):
        assert request_row.yacht_id == fleet.utopia.id
        assert request_row.priority == "high"
        assert AdminNotification.query.filter_by(notification_type="maintenance_request").count() == 1

    def test_invalid_priority(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            MaintenanceService.submit(ctx_for(fleet.owner), fleet.owner, {"subject": "Leak", "priority": "asap"})

    def test_malformed_yacht_id(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            MaintenanceService.submit(ctx_for(fleet.staff), fleet.staff, {"subject": "Leak", "yacht_id": "abc"})

    def test_status_flow(self, fleet, request_row, ctx_for):
        ctx = ctx_for(fleet.mechanic)
        MaintenanceService.update_status(ctx, fleet.mechanic, request_row, "in_progress")
        MaintenanceService.update_status(ctx, fleet.mechanic, request_row, "completed")
        assert request_row.status == "completed"
        with pytest.raises(ConflictError):
            MaintenanceService.update_status(ctx, fleet.mechanic, request_row, "in_progress")
        assert YachtHistoryLog.query.filter_by(action="maintenance_status").count() == 2

    def test_owner_cannot_change_status(self, fleet, request_row, ctx_for):
        with pytest.raises(ForbiddenError):
            MaintenanceService.update_status(ctx_for(fleet.owner), fleet.owner, request_row, "cancelled")

    def test_assign_requires_mechanic(self, fleet, request_row, ctx_for):
        with pytest.raises(ValidationError):
            MaintenanceService.assign(ctx_for(fleet.staff), fleet.staff, request_row, fleet.manager.id)
        MaintenanceService.assign(ctx_for(fleet.staff), fleet.staff, request_row, fleet.mechanic.id)
        assert request_row.assigned_to == fleet.mechanic.id


class TestAppointments:
    def test_create_from_walk_in_repair(self, db, fleet, ctx_for):
        repair = RepairRequest(
            title="Prop", is_retail_customer=True, customer_name="Pat Doe", vessel_name="Skiff"
        )
        db.session.add(repair)
        db.session.commit()
        row = AppointmentService.create_appointment(
            ctx_for(fleet.mechanic),
            fleet.mechanic,
            {"appointment_date": "2026-10-20", "appointment_time": "08:30", "repair_request_id": repair.id},
        )
        assert row.customer_name == "Pat Doe"
        assert row.vessel_name == "Skiff"
        assert row.yacht_id is None

    def test_bad_date(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            AppointmentService.create_appointment(
                ctx_for(fleet.staff), fleet.staff, {"appointment_date": "next week", "customer_name": "Pat"}
            )

    def test_owner_cannot_schedule(self, fleet, ctx_for):
        with pytest.raises(ForbiddenError):
            AppointmentService.create_appointment(
                ctx_for(fleet.owner), fleet.owner, {"appointment_date": "2026-10-20", "customer_name": "Pat"}
            )

    def test_delete(self, fleet, ctx_for):
        ctx = ctx_for(fleet.staff)
        row = AppointmentService.create_appointment(
            ctx, fleet.staff, {"appointment_date": "2026-10-20", "customer_name": "Pat"}
        )
        AppointmentService.delete_appointment(ctx, row)
        assert Appointment.query.count() == 0


class TestChat:
    def test_post_to_effective_yacht(self, fleet, ctx_for):
        row = ChatService.post_message(ctx_for(fleet.owner), "  Leaving at noon  ")
        assert row.yacht_id == fleet.utopia.id
        assert row.message == "Leaving at noon"

    def test_fleet_user_needs_a_yacht(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            ChatService.post_message(ctx_for(fleet.staff), "Hello")

    def test_owner_cannot_post_elsewhere(self, fleet, ctx_for):
        with pytest.raises(ForbiddenError):
            ChatService.post_message(ctx_for(fleet.owner), "Hello", yacht_id=fleet.serenity.id)

    def test_empty_and_long_messages(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            ChatService.post_message(ctx_for(fleet.owner), "   ")
        with pytest.raises(ValidationError):
            ChatService.post_message(ctx_for(fleet.owner), "x" * 4001)

    def test_owner_message_emails_staff(self, db, fleet, ctx_for, functions):
        fleet.mechanic.email_notifications_enabled = False
        db.session.commit()
        row = ChatService.post_message(ctx_for(fleet.owner), "Arriving at noon")
        call = next(call for call in functions.calls if call["name"] == SEND_MESSAGE_NOTIFICATION)
        assert call["json"]["messageType"] == "yacht_message"
        assert call["json"]["messageId"] == row.id
        assert call["json"]["yachtName"] == "Utopia"
        assert call["json"]["senderName"] == "Olive Owner"
        assert call["json"]["recipients"] == ["staff@example.com", "manager@example.com"]

    def test_staff_message_skips_sender_and_other_managers(self, fleet, ctx_for, functions):
        ChatService.post_staff_message(ctx_for(fleet.staff), "Diver booked", yacht_id=fleet.serenity.id)
        call = next(call for call in functions.calls if call["name"] == SEND_MESSAGE_NOTIFICATION)
        assert call["json"]["messageType"] == "staff_message"
        assert call["json"]["recipients"] == ["mechanic@example.com"]

    def test_malformed_yacht_id(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            ChatService.post_message(ctx_for(fleet.staff), "Hello", yacht_id="abc")
        with pytest.raises(ValidationError):
            ChatService.post_staff_message(ctx_for(fleet.staff), "Hello", yacht_id="abc")


class TestNotifications:
    def test_mark_read_respects_scope(self, db, fleet, ctx_for):
        elsewhere = NotificationService.push("general", "Serenity only", yacht_id=fleet.serenity.id)
        db.session.commit()
        with pytest.raises(ForbiddenError):
            NotificationService.mark_read(ctx_for(fleet.manager), elsewhere.id)
        NotificationService.mark_read(ctx_for(fleet.staff), elsewhere.id)
        assert elsewhere.is_read is True


class TestUsers:
    """Account administration and authentication."""

    def test_owner_needs_active_yacht(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            UserService.create_user(
                ctx_for(fleet.staff),
                fleet.staff,
                {"email": "x@example.com", "role": "owner", "yacht_id": fleet.retired.id},
            )

    def test_duplicate_email(self, fleet, ctx_for):
        with pytest.raises(ConflictError):
            UserService.create_user(
                ctx_for(fleet.staff), fleet.staff, {"email": "OWNER@example.com", "role": "mechanic"}
            )

    def test_deactivate_and_restore(self, fleet, ctx_for):
        ctx = ctx_for(fleet.staff)
        UserService.deactivate_user(ctx, fleet.staff, fleet.owner)
        assert fleet.owner.is_active_user is False
        with pytest.raises(ConflictError):
            UserService.deactivate_user(ctx, fleet.staff, fleet.owner)
        UserService.restore_user(ctx, fleet.staff, fleet.owner)
        assert fleet.owner.is_active_user is True

    def test_cannot_deactivate_self(self, fleet, ctx_for):
        with pytest.raises(ValidationError):
            UserService.deactivate_user(ctx_for(fleet.master), fleet.master, fleet.master)

    def test_staff_cannot_deactivate_master(self, fleet, ctx_for):
        with pytest.raises(ForbiddenError):
            UserService.deactivate_user(ctx_for(fleet.staff), fleet.staff, fleet.master)

    def test_sign_in_timestamps(self, fleet):
        user = AuthService.authenticate_user("staff@example.com", "password123")
        assert user.last_sign_in_at is not None
        AuthService.record_sign_out(user)
        assert user.last_sign_out_at is not None


class TestYachts:
    def test_create_and_update(self, app):
        yacht = YachtService.create_yacht({"name": "Wanderer", "year": "2019"})
        assert yacht.year == 2019
        YachtService.update_yacht(yacht, {"slip_location": " B-12 "})
        assert yacht.slip_location == "B-12"

    def test_name_required(self, app):
        with pytest.raises(ValidationError):
            YachtService.create_yacht({"model": "Catalina"})

    def test_bad_year(self, app):
        with pytest.raises(ValidationError):
            YachtService.create_yacht({"name": "Wanderer", "year": "old"})


class TestDocuments:
    """Stored files follow the outcome of the document write."""

    def _pdf(self):
        return FileStorage(stream=io.BytesIO(b"%PDF-1.4 survey"), filename="survey.pdf")

    def _stored_files(self, app):
        return [path for path in Path(app.config["UPLOAD_DIR"]).rglob("*") if path.is_file()]

    def test_long_name_rejected_before_saving(self, app, fleet, ctx_for):
        with pytest.raises(ValidationError):
            DocumentService.upload_document(
                ctx_for(fleet.manager), fleet.manager, fleet.utopia.id, self._pdf(), document_name="x" * 256
            )
        assert self._stored_files(app) == []

    def test_failed_write_removes_file(self, app, fleet, ctx_for, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(OutboxService, "commit_and_drain", broken)
        with pytest.raises(RuntimeError):
            DocumentService.upload_document(ctx_for(fleet.manager), fleet.manager, fleet.utopia.id, self._pdf())
        assert self._stored_files(app) == []

    def test_upload_kept_on_success(self, app, fleet, ctx_for):
        row = DocumentService.upload_document(ctx_for(fleet.manager), fleet.manager, fleet.utopia.id, self._pdf())
        assert row.document_name == "survey.pdf"
        assert len(self._stored_files(app)) == 1
