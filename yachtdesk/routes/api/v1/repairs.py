from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context
from yachtdesk.extensions import limiter
from yachtdesk.models.base import isoformat
from yachtdesk.services import RepairService
from yachtdesk.services.calendar_service import as_utc

api_repair_bp = Blueprint("api_repair", __name__)


def _repair_payload(repair):
    return {
        "id": repair.id,
        "yacht_id": repair.yacht_id,
        "submitted_by": repair.submitted_by,
        "title": repair.title,
        "description": repair.description,
        "status": repair.status,
        "is_retail_customer": repair.is_retail_customer,
        "customer_name": repair.customer_name,
        "estimated_repair_cost": str(repair.estimated_repair_cost) if repair.estimated_repair_cost else None,
        "final_invoice_amount": str(repair.final_invoice_amount) if repair.final_invoice_amount else None,
        "approval_notes": repair.approval_notes,
        "approved_at": isoformat(as_utc(repair.approved_at)),
        "completed_at": isoformat(as_utc(repair.completed_at)),
        "file_url": repair.file_url,
    }


def _payload():
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict()
    return request.get_json(silent=True) or {}


@api_repair_bp.post("")
@login_required
def submit_request():
    payload = _payload()
    if isinstance(payload.get("is_retail_customer"), str):
        payload["is_retail_customer"] = payload["is_retail_customer"].lower() in {"1", "true", "yes", "on"}
    repair = RepairService.submit_request(current_context(), current_user, payload, upload=request.files.get("file"))
    return jsonify(_repair_payload(repair)), 201


@api_repair_bp.post("/<int:repair_id>/approve")
@login_required
def approve(repair_id):
    payload = request.get_json(silent=True) or {}
    repair = RepairService.get_request(repair_id)
    repair = RepairService.approve(current_context(), current_user, repair, notes=payload.get("notes"))
    return jsonify(_repair_payload(repair))


@api_repair_bp.post("/<int:repair_id>/deny")
@login_required
def deny(repair_id):
    payload = request.get_json(silent=True) or {}
    repair = RepairService.get_request(repair_id)
    repair = RepairService.deny(current_context(), current_user, repair, notes=payload.get("notes"))
    return jsonify(_repair_payload(repair))


@api_repair_bp.post("/<int:repair_id>/complete")
@login_required
def complete(repair_id):
    payload = request.get_json(silent=True) or {}
    repair = RepairService.get_request(repair_id)
    repair = RepairService.complete(current_context(), current_user, repair, final_amount=payload.get("final_amount"))
    return jsonify(_repair_payload(repair))


@api_repair_bp.post("/<int:repair_id>/invoice")
@login_required
def create_invoice(repair_id):
    payload = request.get_json(silent=True) or {}
    repair = RepairService.get_request(repair_id)
    invoice = RepairService.create_invoice(
        current_context(),
        current_user,
        repair,
        amount=payload.get("amount"),
        recipient_email=payload.get("recipient_email"),
    )
    return (
        jsonify(
            {
                "id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "invoice_amount": str(invoice.invoice_amount),
                "payment_status": invoice.payment_status,
            }
        ),
        201,
    )


@api_repair_bp.get("/approval/<string:token>")
@limiter.limit("20 per minute")
def handle_approval_link(token):
    repair = RepairService.redeem_approval_token(token)
    return jsonify({"id": repair.id, "title": repair.title, "status": repair.status})
