from datetime import date

from yachtdesk.errors import NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import Appointment, RepairRequest
from yachtdesk.services.booking_service import BookingService
from yachtdesk.services.scope_service import ScopeService

SCHEDULER_ROLES = ("staff", "mechanic", "master")


class AppointmentService:
    @staticmethod
    def get_appointment(appointment_id):
        row = db.session.get(Appointment, appointment_id)
        if not row:
            raise NotFoundError("Appointment not found.")
        return row

    @staticmethod
    def create_appointment(ctx, actor, data):
        ScopeService.ensure_role(ctx, *SCHEDULER_ROLES)
        try:
            day = date.fromisoformat(str(data.get("appointment_date") or "").strip()[:10])
        except ValueError as exc:
            raise ValidationError("Appointment date must be YYYY-MM-DD.") from exc

        customer_name = (data.get("customer_name") or "").strip()
        repair = None
        if data.get("repair_request_id"):
            repair = db.session.get(RepairRequest, data["repair_request_id"])
            if not repair:
                raise NotFoundError("Repair request not found.")
            customer_name = customer_name or repair.customer_name or ""
        if not customer_name:
            raise ValidationError("Customer name is required.")

        yacht_id = ScopeService.parse_yacht_id(data.get("yacht_id")) or (repair.yacht_id if repair else None)
        if yacht_id is not None:
            ScopeService.ensure_can_access(ctx, yacht_id)

        row = Appointment(
            yacht_id=yacht_id,
            repair_request_id=repair.id if repair else None,
            created_by=actor.id,
            appointment_date=day,
            appointment_time=BookingService.normalize_time(data.get("appointment_time"), "Appointment time"),
            customer_name=customer_name,
            customer_phone=(data.get("customer_phone") or "").strip() or None,
            customer_email=(data.get("customer_email") or "").strip().lower() or None,
            vessel_name=(data.get("vessel_name") or (repair.vessel_name if repair else "") or "").strip() or None,
            problem_description=(data.get("problem_description") or "").strip() or None,
        )
        db.session.add(row)
        db.session.commit()
        return row

    @staticmethod
    def delete_appointment(ctx, row):
        ScopeService.ensure_role(ctx, *SCHEDULER_ROLES)
        if row.yacht_id is not None:
            ScopeService.ensure_can_access(ctx, row.yacht_id)
        db.session.delete(row)
        db.session.commit()
