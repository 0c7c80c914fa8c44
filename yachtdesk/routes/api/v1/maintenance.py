from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context
from yachtdesk.services import MaintenanceService

api_maintenance_bp = Blueprint("api_maintenance", __name__)


def _payload(row):
    return {
        "id": row.id,
        "yacht_id": row.yacht_id,
        "user_id": row.user_id,
        "assigned_to": row.assigned_to,
        "subject": row.subject,
        "description": row.description,
        "priority": row.priority,
        "status": row.status,
    }


@api_maintenance_bp.post("")
@login_required
def submit():
    payload = request.get_json(silent=True) or {}
    row = MaintenanceService.submit(current_context(), current_user, payload)
    return jsonify(_payload(row)), 201


@api_maintenance_bp.patch("/<int:request_id>/status")
@login_required
def update_status(request_id):
    payload = request.get_json(silent=True) or {}
    row = MaintenanceService.get_request(request_id)
    row = MaintenanceService.update_status(current_context(), current_user, row, payload.get("status"))
    return jsonify(_payload(row))


@api_maintenance_bp.post("/<int:request_id>/assign")
@login_required
def assign(request_id):
    payload = request.get_json(silent=True) or {}
    row = MaintenanceService.get_request(request_id)
    row = MaintenanceService.assign(current_context(), current_user, row, payload.get("mechanic_id"))
    return jsonify(_payload(row))
