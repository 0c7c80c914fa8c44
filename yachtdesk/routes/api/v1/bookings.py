from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context
from yachtdesk.models.base import isoformat
from yachtdesk.services import BookingService
from yachtdesk.services.calendar_service import as_utc

api_booking_bp = Blueprint("api_booking", __name__)


def _booking_payload(booking):
    return {
        "id": booking.id,
        "yacht_id": booking.yacht_id,
        "user_id": booking.user_id,
        "start_date": isoformat(as_utc(booking.start_date)),
        "end_date": isoformat(as_utc(booking.end_date)),
        "departure_time": booking.departure_time,
        "arrival_time": booking.arrival_time,
        "checked_in": booking.checked_in,
        "checked_out": booking.checked_out,
        "checked_in_at": isoformat(as_utc(booking.checked_in_at)),
        "checked_out_at": isoformat(as_utc(booking.checked_out_at)),
        "oil_change_needed": booking.oil_change_needed,
        "notes": booking.notes,
        "owners": [{"owner_name": o.owner_name, "owner_contact": o.owner_contact} for o in booking.owners],
    }


@api_booking_bp.post("")
@login_required
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking = BookingService.create_booking(current_context(), current_user, payload)
    return jsonify(_booking_payload(booking)), 201


@api_booking_bp.patch("/<int:booking_id>")
@login_required
def update_booking(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.get_booking(booking_id)
    booking = BookingService.update_booking(current_context(), current_user, booking, payload)
    return jsonify(_booking_payload(booking))


@api_booking_bp.delete("/<int:booking_id>")
@login_required
def delete_booking(booking_id):
    booking = BookingService.get_booking(booking_id)
    BookingService.delete_booking(current_context(), current_user, booking)
    return jsonify({"ok": True})


@api_booking_bp.post("/<int:booking_id>/check-in")
@login_required
def check_in(booking_id):
    booking = BookingService.get_booking(booking_id)
    booking = BookingService.check_in(current_context(), current_user, booking)
    return jsonify(_booking_payload(booking))


@api_booking_bp.post("/<int:booking_id>/check-out")
@login_required
def check_out(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.get_booking(booking_id)
    booking = BookingService.check_out(
        current_context(), current_user, booking, oil_change_needed=bool(payload.get("oil_change_needed"))
    )
    return jsonify(_booking_payload(booking))
