from flask import Blueprint, jsonify, request
from flask_login import login_required

from yachtdesk.decorators import current_context, role_required
from yachtdesk.services import FleetLoader, YachtService

api_yacht_bp = Blueprint("api_yacht", __name__)


def _payload(yacht):
    return {
        "id": yacht.id,
        "name": yacht.name,
        "model": yacht.model,
        "year": yacht.year,
        "hull_number": yacht.hull_number,
        "marina_name": yacht.marina_name,
        "slip_location": yacht.slip_location,
        "is_active": yacht.is_active,
    }


@api_yacht_bp.get("")
@login_required
def list_yachts():
    return jsonify({"items": FleetLoader(current_context()).yachts()})


@api_yacht_bp.post("")
@login_required
@role_required("staff", "master")
def create_yacht():
    payload = request.get_json(silent=True) or {}
    return jsonify(_payload(YachtService.create_yacht(payload))), 201


@api_yacht_bp.patch("/<int:yacht_id>")
@login_required
@role_required("staff", "master")
def update_yacht(yacht_id):
    payload = request.get_json(silent=True) or {}
    yacht = YachtService.get_yacht(yacht_id)
    if "is_active" in payload:
        YachtService.set_active(yacht, payload.pop("is_active"))
    return jsonify(_payload(YachtService.update_yacht(yacht, payload)))
