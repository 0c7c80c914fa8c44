import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from flask import current_app

from yachtdesk.errors import AppError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import Invoice, RepairApprovalToken, RepairRequest, User, Yacht
from yachtdesk.services.calendar_service import as_utc
from yachtdesk.services.file_service import FileService
from yachtdesk.services.functions_client import SEND_REPAIR_APPROVAL, SEND_REPAIR_NOTIFICATION
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import FLEET_WIDE_ROLES, ScopeService

REPAIR_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": {"completed"},
    "rejected": set(),
    "completed": set(),
}

APPROVER_ROLES = ("manager", "staff", "master")
COMPLETER_ROLES = ("mechanic", "staff", "master")
BILLING_ROLES = ("staff", "master")


def parse_amount(value, label, required=False):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{label} is required.")
        return None
    try:
        amount = Decimal(str(value).replace(",", "").replace("$", "").strip()).quantize(Decimal("0.01"))
    except InvalidOperation as exc:
        raise ValidationError(f"{label} must be a number.") from exc
    if amount <= 0:
        raise ValidationError(f"{label} must be greater than zero.")
    return amount


class RepairService:
    @staticmethod
    def get_request(repair_id):
        repair = db.session.get(RepairRequest, repair_id)
        if not repair:
            raise NotFoundError("Repair request not found.")
        return repair

    @staticmethod
    def _ensure_access(ctx, repair):
        if repair.yacht_id is None:
            if ctx.effective_role not in FLEET_WIDE_ROLES:
                raise ForbiddenError("You do not have access to this record.")
            return
        ScopeService.ensure_can_access(ctx, repair.yacht_id, repair.submitted_by, owner_checked=True)

    @staticmethod
    def _transition(repair, new_status):
        current = (repair.status or "").lower()
        if new_status not in REPAIR_TRANSITIONS.get(current, set()):
            raise ConflictError(f"Invalid status transition from {current} to {new_status}.")
        repair.status = new_status

    @staticmethod
    def _label(repair):
        if repair.yacht is not None:
            return f"{repair.title} ({repair.yacht.name})"
        return f"{repair.title} ({repair.vessel_name or repair.customer_name or 'walk-in'})"

    @staticmethod
    def manager_recipients(yacht_id):
        if yacht_id is None:
            return []
        managers = (
            User.query.filter_by(yacht_id=yacht_id, role="manager", is_active_user=True)
            .filter(User.email_notifications_enabled.is_(True))
            .order_by(User.id.asc())
            .all()
        )
        return [manager.notification_email or manager.email for manager in managers]

    @staticmethod
    def submit_request(ctx, actor, data, upload=None):
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required.")

        is_retail = bool(data.get("is_retail_customer"))
        yacht_id = None
        if not is_retail:
            yacht_id = ScopeService.parse_yacht_id(data.get("yacht_id")) or ctx.effective_yacht_id
        if is_retail:
            if ctx.effective_role not in FLEET_WIDE_ROLES:
                raise ForbiddenError("Only staff can log walk-in repairs.")
            if not (data.get("customer_name") or "").strip():
                raise ValidationError("Customer name is required for walk-in repairs.")
        else:
            yacht = db.session.get(Yacht, yacht_id) if yacht_id else None
            if not yacht or not yacht.is_active:
                raise NotFoundError("Yacht not found.")
            ScopeService.ensure_can_access(ctx, yacht.id)
        estimated_cost = parse_amount(data.get("estimated_repair_cost"), "Estimated cost")

        with FileService.stored_upload(upload, "repairs") as stored:
            repair = RepairService._record_submission(actor, data, title, yacht_id, is_retail, estimated_cost, stored)
        return repair

    @staticmethod
    def _record_submission(actor, data, title, yacht_id, is_retail, estimated_cost, stored):
        repair = RepairRequest(
            yacht_id=yacht_id,
            submitted_by=actor.id,
            title=title,
            description=(data.get("description") or "").strip() or None,
            status="pending",
            is_retail_customer=is_retail,
            customer_name=(data.get("customer_name") or "").strip() or None,
            customer_phone=(data.get("customer_phone") or "").strip() or None,
            customer_email=(data.get("customer_email") or "").strip().lower() or None,
            vessel_name=(data.get("vessel_name") or "").strip() or None,
            estimated_repair_cost=estimated_cost,
        )
        if stored:
            repair.file_url = stored["file_url"]
            repair.file_name = stored["file_name"]
        db.session.add(repair)
        db.session.flush()

        OutboxService.notify(
            "repair_request",
            f"New repair request from {actor.full_name}: {title}",
            yacht_id=yacht_id,
            user_id=actor.id,
            reference_id=repair.id,
        )
        if yacht_id is not None:
            OutboxService.post_chat(yacht_id, f"Repair request submitted: {title}", user_id=actor.id)
            recipients = RepairService.manager_recipients(yacht_id)
            repair.notification_recipients = ",".join(recipients) or None
            if recipients:
                tokens = RepairService.issue_approval_tokens(repair)
                OutboxService.send_email(
                    SEND_REPAIR_NOTIFICATION,
                    repairRequestId=repair.id,
                    repairTitle=title,
                    yachtName=repair.yacht.name if repair.yacht else None,
                    submitterName=actor.full_name,
                    estimatedCost=str(repair.estimated_repair_cost) if repair.estimated_repair_cost else None,
                    recipients=recipients,
                    approveUrl=RepairService.approval_url(tokens["approve"]),
                    denyUrl=RepairService.approval_url(tokens["deny"]),
                )
        OutboxService.commit_and_drain()
        return repair

    @staticmethod
    def approval_url(token):
        return f"{current_app.config['SITE_URL'].rstrip('/')}/api/v1/repairs/approval/{token}"

    @staticmethod
    def issue_approval_tokens(repair):
        ttl = timedelta(hours=current_app.config.get("APPROVAL_TOKEN_TTL_HOURS", 72))
        expires_at = datetime.now(timezone.utc) + ttl
        issued = {}
        for action in ("approve", "deny"):
            value = secrets.token_urlsafe(32)
            db.session.add(
                RepairApprovalToken(
                    repair_request_id=repair.id,
                    token=value,
                    action_type=action,
                    expires_at=expires_at,
                )
            )
            issued[action] = value
        return issued

    @staticmethod
    def redeem_approval_token(token_value, now=None):
        """Apply the action of an emailed approve/deny link once."""
        row = RepairApprovalToken.query.filter_by(token=(token_value or "").strip()).first()
        if not row:
            raise NotFoundError("Invalid approval link.")
        if row.used_at is not None:
            raise ConflictError("This approval link has already been used.")
        now = as_utc(now) if now else datetime.now(timezone.utc)
        if as_utc(row.expires_at) < now:
            raise AppError("This approval link has expired.", 410)

        repair = row.repair_request
        new_status = "approved" if row.action_type == "approve" else "rejected"
        RepairService._transition(repair, new_status)
        for sibling in repair.approval_tokens.filter(RepairApprovalToken.used_at.is_(None)):
            sibling.used_at = now
        repair.approval_notes = f"{new_status.title()} via email link."
        if new_status == "approved":
            repair.approved_at = now
        RepairService._record_decision(repair, None)
        OutboxService.commit_and_drain()
        return repair

    @staticmethod
    def _record_decision(repair, actor):
        who = actor.full_name if actor else "a yacht manager"
        message = f"Repair request {RepairService._label(repair)} was {repair.status} by {who}."
        OutboxService.notify(
            f"repair_{repair.status}",
            message,
            yacht_id=repair.yacht_id,
            user_id=actor.id if actor else None,
            reference_id=repair.id,
        )
        if repair.yacht_id is not None:
            OutboxService.post_chat(repair.yacht_id, message, user_id=actor.id if actor else None)
        submitter = db.session.get(User, repair.submitted_by) if repair.submitted_by else None
        recipient = repair.customer_email or (submitter.notification_email or submitter.email if submitter else None)
        if recipient:
            OutboxService.send_email(
                SEND_REPAIR_APPROVAL,
                repairRequestId=repair.id,
                repairTitle=repair.title,
                yachtName=repair.yacht.name if repair.yacht else repair.vessel_name,
                approverName=actor.full_name if actor else None,
                status=repair.status,
                notes=repair.approval_notes,
                estimatedCost=str(repair.estimated_repair_cost) if repair.estimated_repair_cost else None,
                recipient=recipient,
            )

    @staticmethod
    def approve(ctx, actor, repair, notes=None):
        ScopeService.ensure_role(ctx, *APPROVER_ROLES)
        RepairService._ensure_access(ctx, repair)
        RepairService._transition(repair, "approved")
        repair.approved_by = actor.id
        repair.approved_at = datetime.now(timezone.utc)
        repair.approval_notes = (notes or "").strip() or None
        RepairService._record_decision(repair, actor)
        OutboxService.commit_and_drain()
        return repair

    @staticmethod
    def deny(ctx, actor, repair, notes=None):
        ScopeService.ensure_role(ctx, *APPROVER_ROLES)
        RepairService._ensure_access(ctx, repair)
        RepairService._transition(repair, "rejected")
        repair.approved_by = actor.id
        repair.approval_notes = (notes or "").strip() or None
        RepairService._record_decision(repair, actor)
        OutboxService.commit_and_drain()
        return repair

    @staticmethod
    def complete(ctx, actor, repair, final_amount=None):
        ScopeService.ensure_role(ctx, *COMPLETER_ROLES)
        RepairService._ensure_access(ctx, repair)
        RepairService._transition(repair, "completed")
        repair.completed_by = actor.id
        repair.completed_at = datetime.now(timezone.utc)
        amount = parse_amount(final_amount, "Final amount")
        if amount is not None:
            repair.final_invoice_amount = amount
        OutboxService.notify(
            "repair_completed",
            f"Repair {RepairService._label(repair)} completed by {actor.full_name}.",
            yacht_id=repair.yacht_id,
            user_id=actor.id,
            reference_id=repair.id,
        )
        if repair.yacht_id is not None:
            OutboxService.log_history(
                repair.yacht_id,
                "repair_completed",
                f"Repair completed: {repair.title}",
                reference_type="repair_request",
                reference_id=repair.id,
                actor=actor,
            )
        OutboxService.commit_and_drain()
        return repair

    @staticmethod
    def _next_invoice_number():
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        prefix = f"INV-{today}-"
        count_today = Invoice.query.filter(Invoice.invoice_number.like(f"{prefix}%")).count() + 1
        return f"{prefix}{count_today:04d}"

    @staticmethod
    def create_invoice(ctx, actor, repair, amount=None, recipient_email=None):
        ScopeService.ensure_role(ctx, *BILLING_ROLES)
        RepairService._ensure_access(ctx, repair)
        if repair.status != "completed":
            raise ConflictError("Only completed repairs can be invoiced.")
        if repair.invoice is not None:
            raise ConflictError("This repair already has an invoice.")

        invoice_amount = parse_amount(amount, "Invoice amount") or repair.final_invoice_amount
        if invoice_amount is None:
            raise ValidationError("Invoice amount is required.")

        invoice = Invoice(
            repair_request_id=repair.id,
            yacht_id=repair.yacht_id,
            invoice_number=RepairService._next_invoice_number(),
            invoice_amount=invoice_amount,
            payment_status="pending",
            recipient_email=(recipient_email or repair.customer_email or "").strip().lower() or None,
        )
        repair.final_invoice_amount = invoice_amount
        repair.billed_at = datetime.now(timezone.utc)
        db.session.add(invoice)
        db.session.flush()
        OutboxService.notify(
            "invoice_created",
            f"Invoice {invoice.invoice_number} created for {RepairService._label(repair)}.",
            yacht_id=repair.yacht_id,
            user_id=actor.id,
            reference_id=invoice.id,
        )
        OutboxService.commit_and_drain()
        return invoice
