from yachtdesk.errors import ConflictError, NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import MaintenanceRequest, User
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import ScopeService

MAINTENANCE_STATUSES = ("pending", "in_progress", "completed", "cancelled")
PRIORITIES = ("low", "medium", "high", "urgent")

MAINTENANCE_TRANSITIONS = {
    "pending": {"in_progress", "completed", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


class MaintenanceService:
    @staticmethod
    def get_request(request_id):
        row = db.session.get(MaintenanceRequest, request_id)
        if not row:
            raise NotFoundError("Maintenance request not found.")
        return row

    @staticmethod
    def submit(ctx, actor, data):
        yacht_id = ScopeService.parse_yacht_id(data.get("yacht_id")) or ctx.effective_yacht_id
        if not yacht_id:
            raise ValidationError("Select a yacht for this request.")
        ScopeService.ensure_can_access(ctx, yacht_id)

        subject = (data.get("subject") or "").strip()
        if not subject:
            raise ValidationError("Subject is required.")
        priority = (data.get("priority") or "medium").strip().lower()
        if priority not in PRIORITIES:
            raise ValidationError("Invalid priority.")

        row = MaintenanceRequest(
            yacht_id=yacht_id,
            user_id=actor.id,
            subject=subject,
            description=(data.get("description") or "").strip(),
            priority=priority,
            status="pending",
        )
        db.session.add(row)
        db.session.flush()
        OutboxService.notify(
            "maintenance_request",
            f"New maintenance request from {actor.full_name}: {subject}",
            yacht_id=row.yacht_id,
            user_id=actor.id,
            reference_id=row.id,
        )
        OutboxService.commit_and_drain()
        return row

    @staticmethod
    def update_status(ctx, actor, row, status):
        ScopeService.ensure_role(ctx, "manager", "staff", "mechanic", "master")
        ScopeService.ensure_can_access(ctx, row.yacht_id)
        status = (status or "").strip().lower()
        if status not in MAINTENANCE_STATUSES:
            raise ValidationError("Invalid status.")
        if status not in MAINTENANCE_TRANSITIONS.get(row.status, set()):
            raise ConflictError(f"Invalid status transition from {row.status} to {status}.")

        row.status = status
        OutboxService.log_history(
            row.yacht_id,
            "maintenance_status",
            f"Maintenance request '{row.subject}' is now {status.replace('_', ' ')}.",
            reference_type="maintenance_request",
            reference_id=row.id,
            actor=actor,
        )
        OutboxService.commit_and_drain()
        return row

    @staticmethod
    def assign(ctx, actor, row, mechanic_id):
        ScopeService.ensure_role(ctx, "staff", "master")
        ScopeService.ensure_can_access(ctx, row.yacht_id)
        mechanic = db.session.get(User, mechanic_id) if mechanic_id else None
        if not mechanic or mechanic.role != "mechanic" or not mechanic.is_active_user:
            raise ValidationError("Assignee must be an active mechanic.")

        row.assigned_to = mechanic.id
        OutboxService.notify(
            "maintenance_assigned",
            f"{mechanic.full_name} assigned to '{row.subject}'.",
            yacht_id=row.yacht_id,
            user_id=actor.id,
            reference_id=row.id,
        )
        OutboxService.commit_and_drain()
        return row
