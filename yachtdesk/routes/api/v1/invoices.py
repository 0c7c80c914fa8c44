from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context
from yachtdesk.errors import AppError, ValidationError
from yachtdesk.extensions import limiter
from yachtdesk.models.base import isoformat
from yachtdesk.services import InvoiceService
from yachtdesk.services.calendar_service import as_utc
from yachtdesk.services.invoice_service import verify_webhook_signature

api_invoice_bp = Blueprint("api_invoice", __name__)


def _invoice_payload(invoice):
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "repair_request_id": invoice.repair_request_id,
        "yacht_id": invoice.yacht_id,
        "invoice_amount": str(invoice.invoice_amount),
        "payment_status": invoice.payment_status,
        "paid_at": isoformat(as_utc(invoice.paid_at)),
        "payment_link_url": invoice.payment_link_url,
        "recipient_email": invoice.recipient_email,
        "payment_email_sent_at": isoformat(as_utc(invoice.payment_email_sent_at)),
        "email_open_count": invoice.email_open_count,
        "email_click_count": invoice.email_click_count,
    }


@api_invoice_bp.post("/<int:invoice_id>/payment-link")
@login_required
def create_payment_link(invoice_id):
    invoice = InvoiceService.get_invoice(invoice_id)
    invoice = InvoiceService.create_payment_link(current_context(), current_user, invoice)
    return jsonify(_invoice_payload(invoice)), 201


@api_invoice_bp.delete("/<int:invoice_id>/payment-link")
@login_required
def delete_payment_link(invoice_id):
    invoice = InvoiceService.get_invoice(invoice_id)
    invoice = InvoiceService.delete_payment_link(current_context(), current_user, invoice)
    return jsonify(_invoice_payload(invoice))


@api_invoice_bp.post("/<int:invoice_id>/payment-link/regenerate")
@login_required
def regenerate_payment_link(invoice_id):
    invoice = InvoiceService.get_invoice(invoice_id)
    invoice = InvoiceService.regenerate_payment_link(current_context(), current_user, invoice)
    return jsonify(_invoice_payload(invoice))


@api_invoice_bp.post("/<int:invoice_id>/email")
@login_required
def send_payment_email(invoice_id):
    payload = request.get_json(silent=True) or {}
    invoice = InvoiceService.get_invoice(invoice_id)
    invoice = InvoiceService.send_payment_email(
        current_context(),
        current_user,
        invoice,
        recipient_email=payload.get("recipient_email"),
        recipient_name=payload.get("recipient_name"),
    )
    return jsonify(_invoice_payload(invoice))


@api_invoice_bp.post("/<int:invoice_id>/paid")
@login_required
def mark_paid(invoice_id):
    invoice = InvoiceService.get_invoice(invoice_id)
    invoice = InvoiceService.mark_paid(current_context(), current_user, invoice)
    return jsonify(_invoice_payload(invoice))


@api_invoice_bp.post("/<int:invoice_id>/failed")
@login_required
def mark_failed(invoice_id):
    invoice = InvoiceService.get_invoice(invoice_id)
    invoice = InvoiceService.mark_failed(current_context(), current_user, invoice)
    return jsonify(_invoice_payload(invoice))


@api_invoice_bp.post("/email-events")
@limiter.limit("120 per minute")
def email_webhook():
    body = request.get_data(as_text=True)
    secret = current_app.config.get("EMAIL_WEBHOOK_SECRET")
    if not secret and not current_app.testing:
        current_app.logger.error("Email webhook received but EMAIL_WEBHOOK_SECRET is not set")
        raise AppError("Email webhook is not configured.", 503)
    if secret:
        if not verify_webhook_signature(
            secret,
            request.headers.get("svix-id"),
            request.headers.get("svix-timestamp"),
            request.headers.get("svix-signature"),
            body,
        ):
            current_app.logger.warning("Rejected email webhook with an invalid signature")
            raise AppError("Invalid signature.", 401)

    event = request.get_json(silent=True) or {}
    data = event.get("data") or {}
    if not event.get("type") or not data.get("email_id"):
        raise ValidationError("Malformed email event.")
    invoice = InvoiceService.record_email_event(event["type"], data["email_id"], event.get("created_at"))
    return jsonify({"received": True, "matched": invoice is not None})
