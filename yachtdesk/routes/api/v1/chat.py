from flask import Blueprint, jsonify, request
from flask_login import login_required

from yachtdesk.decorators import current_context
from yachtdesk.models.base import isoformat
from yachtdesk.services import ChatService

api_chat_bp = Blueprint("api_chat", __name__)


@api_chat_bp.post("")
@login_required
def post_message():
    payload = request.get_json(silent=True) or {}
    row = ChatService.post_message(current_context(), payload.get("message"), yacht_id=payload.get("yacht_id"))
    return (
        jsonify({"id": row.id, "yacht_id": row.yacht_id, "message": row.message, "created_at": isoformat(row.created_at)}),
        201,
    )


@api_chat_bp.post("/staff")
@login_required
def post_staff_message():
    payload = request.get_json(silent=True) or {}
    row = ChatService.post_staff_message(
        current_context(),
        payload.get("message"),
        yacht_id=payload.get("yacht_id"),
        notification_type=payload.get("notification_type"),
    )
    return jsonify({"id": row.id, "yacht_id": row.yacht_id, "message": row.message}), 201
