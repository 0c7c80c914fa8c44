import base64
import hashlib
import hmac
from datetime import datetime, timezone

from flask import current_app

from yachtdesk.errors import ConflictError, NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import Invoice
from yachtdesk.services.calendar_service import as_utc
from yachtdesk.services.functions_client import (
    CREATE_PAYMENT_LINK,
    DELETE_PAYMENT_LINK,
    SEND_PAYMENT_EMAIL,
    FunctionsClient,
)
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import ScopeService

BILLING_ROLES = ("staff", "master")

EMAIL_EVENT_COLUMNS = {
    "email.delivered": "payment_email_delivered_at",
    "email.opened": "payment_email_opened_at",
    "email.clicked": "payment_email_clicked_at",
    "email.bounced": "payment_email_bounced_at",
}


def verify_webhook_signature(secret, message_id, timestamp, signature_header, body):
    """Check a ``v1,<base64 hmac>`` signature over ``id.timestamp.body``."""
    if not (message_id and timestamp and signature_header):
        return False
    encoded_secret = secret.split("_", 1)[1] if secret.startswith("whsec_") else secret
    try:
        key = base64.b64decode(encoded_secret)
    except ValueError:
        return False
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    signed = f"{message_id}.{timestamp}.{body}".encode("utf-8")
    expected = base64.b64encode(hmac.new(key, signed, hashlib.sha256).digest()).decode("ascii")
    for candidate in signature_header.split(" "):
        _, _, value = candidate.partition(",")
        if value and hmac.compare_digest(value, expected):
            return True
    return False


class InvoiceService:
    @staticmethod
    def get_invoice(invoice_id):
        invoice = db.session.get(Invoice, invoice_id)
        if not invoice:
            raise NotFoundError("Invoice not found.")
        return invoice

    @staticmethod
    def _ensure_billing(ctx, invoice):
        ScopeService.ensure_role(ctx, *BILLING_ROLES)
        if invoice.yacht_id is not None:
            ScopeService.ensure_can_access(ctx, invoice.yacht_id)

    @staticmethod
    def create_payment_link(ctx, actor, invoice, client=None):
        InvoiceService._ensure_billing(ctx, invoice)
        if invoice.payment_status == "paid":
            raise ConflictError("This invoice is already paid.")
        if invoice.payment_link_url:
            raise ConflictError("This invoice already has a payment link.")

        client = client or FunctionsClient()
        result = client.invoke(
            CREATE_PAYMENT_LINK,
            {
                "invoiceId": invoice.id,
                "invoiceNumber": invoice.invoice_number,
                "amount": str(invoice.invoice_amount),
            },
        )
        url = result.get("checkoutUrl") or result.get("url")
        if not url:
            raise ValidationError("Payment provider did not return a checkout link.")
        invoice.payment_link_url = url
        invoice.checkout_session_id = result.get("sessionId")
        invoice.payment_link_created_at = datetime.now(timezone.utc)
        current_app.logger.info("Payment link created for invoice %s by user %s", invoice.invoice_number, actor.id)
        db.session.commit()
        return invoice

    @staticmethod
    def delete_payment_link(ctx, actor, invoice, client=None):
        InvoiceService._ensure_billing(ctx, invoice)
        if invoice.payment_status == "paid":
            raise ConflictError("Cannot delete the payment link of a paid invoice.")
        if not invoice.payment_link_url:
            raise ValidationError("This invoice has no payment link.")

        client = client or FunctionsClient()
        client.invoke(
            DELETE_PAYMENT_LINK,
            {"invoiceId": invoice.id, "sessionId": invoice.checkout_session_id},
        )
        invoice.payment_link_url = None
        invoice.checkout_session_id = None
        invoice.payment_link_created_at = None
        current_app.logger.info("Payment link removed from invoice %s by user %s", invoice.invoice_number, actor.id)
        db.session.commit()
        return invoice

    @staticmethod
    def regenerate_payment_link(ctx, actor, invoice, client=None):
        client = client or FunctionsClient()
        if invoice.payment_link_url:
            InvoiceService.delete_payment_link(ctx, actor, invoice, client=client)
        return InvoiceService.create_payment_link(ctx, actor, invoice, client=client)

    @staticmethod
    def send_payment_email(ctx, actor, invoice, recipient_email=None, recipient_name=None, client=None):
        InvoiceService._ensure_billing(ctx, invoice)
        if invoice.payment_status == "paid":
            raise ConflictError("This invoice is already paid.")
        if not invoice.payment_link_url:
            raise ValidationError("Create a payment link before emailing the invoice.")
        recipient = (recipient_email or invoice.recipient_email or "").strip().lower()
        if not recipient:
            raise ValidationError("Recipient email is required.")

        client = client or FunctionsClient()
        result = client.invoke(
            SEND_PAYMENT_EMAIL,
            {"invoiceId": invoice.id, "recipientEmail": recipient, "recipientName": recipient_name},
        )
        invoice.recipient_email = recipient
        invoice.email_message_id = result.get("emailId") or result.get("id")
        invoice.payment_email_sent_at = datetime.now(timezone.utc)
        invoice.payment_email_delivered_at = None
        invoice.payment_email_opened_at = None
        invoice.payment_email_clicked_at = None
        invoice.payment_email_bounced_at = None
        invoice.email_open_count = 0
        invoice.email_click_count = 0
        db.session.commit()
        return invoice

    @staticmethod
    def mark_paid(ctx, actor, invoice, paid_at=None):
        InvoiceService._ensure_billing(ctx, invoice)
        if invoice.payment_status == "paid":
            raise ConflictError("This invoice is already paid.")
        invoice.payment_status = "paid"
        invoice.paid_at = as_utc(paid_at) if paid_at else datetime.now(timezone.utc)
        OutboxService.notify(
            "invoice_paid",
            f"Invoice {invoice.invoice_number} marked paid.",
            yacht_id=invoice.yacht_id,
            user_id=actor.id,
            reference_id=invoice.id,
        )
        if invoice.yacht_id is not None:
            OutboxService.log_history(
                invoice.yacht_id,
                "invoice_paid",
                f"Invoice {invoice.invoice_number} paid.",
                reference_type="invoice",
                reference_id=invoice.id,
                actor=actor,
            )
        OutboxService.commit_and_drain()
        return invoice

    @staticmethod
    def mark_failed(ctx, actor, invoice):
        InvoiceService._ensure_billing(ctx, invoice)
        if invoice.payment_status == "paid":
            raise ConflictError("This invoice is already paid.")
        invoice.payment_status = "failed"
        OutboxService.notify(
            "invoice_payment_failed",
            f"Payment failed for invoice {invoice.invoice_number}.",
            yacht_id=invoice.yacht_id,
            user_id=actor.id,
            reference_id=invoice.id,
        )
        OutboxService.commit_and_drain()
        return invoice

    @staticmethod
    def record_email_event(event_type, message_id, occurred_at=None):
        """Apply a delivery-tracking event; the first timestamp of each kind wins."""
        if not message_id:
            raise ValidationError("Email id is required.")
        invoice = Invoice.query.filter_by(email_message_id=message_id).first()
        if not invoice:
            current_app.logger.info("No invoice found for email %s", message_id)
            return None

        column = EMAIL_EVENT_COLUMNS.get(event_type)
        if column is None:
            return invoice
        if isinstance(occurred_at, str):
            try:
                occurred_at = datetime.fromisoformat(occurred_at.replace("Z", "+00:00"))
            except ValueError as exc:
                raise ValidationError("Invalid event timestamp.") from exc
        elif occurred_at is not None and not isinstance(occurred_at, datetime):
            raise ValidationError("Invalid event timestamp.")
        occurred_at = as_utc(occurred_at) if occurred_at else datetime.now(timezone.utc)

        if getattr(invoice, column) is None:
            setattr(invoice, column, occurred_at)
        if event_type == "email.opened":
            invoice.email_open_count = (invoice.email_open_count or 0) + 1
        elif event_type == "email.clicked":
            invoice.email_click_count = (invoice.email_click_count or 0) + 1
        db.session.commit()
        return invoice
