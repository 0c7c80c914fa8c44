from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context
from yachtdesk.services import AppointmentService

api_appointment_bp = Blueprint("api_appointment", __name__)


@api_appointment_bp.post("")
@login_required
def create_appointment():
    payload = request.get_json(silent=True) or {}
    row = AppointmentService.create_appointment(current_context(), current_user, payload)
    return (
        jsonify(
            {
                "id": row.id,
                "yacht_id": row.yacht_id,
                "repair_request_id": row.repair_request_id,
                "appointment_date": row.appointment_date.isoformat(),
                "appointment_time": row.appointment_time,
                "customer_name": row.customer_name,
            }
        ),
        201,
    )


@api_appointment_bp.delete("/<int:appointment_id>")
@login_required
def delete_appointment(appointment_id):
    row = AppointmentService.get_appointment(appointment_id)
    AppointmentService.delete_appointment(current_context(), row)
    return jsonify({"ok": True})
