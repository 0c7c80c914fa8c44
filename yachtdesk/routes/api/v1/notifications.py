from flask import Blueprint, jsonify
from flask_login import login_required

from yachtdesk.decorators import current_context
from yachtdesk.services import NotificationService

api_notification_bp = Blueprint("api_notification", __name__)


@api_notification_bp.get("/unread-count")
@login_required
def unread_count():
    return jsonify({"unread": NotificationService.unread_count(current_context())})


@api_notification_bp.post("/<int:notification_id>/read")
@login_required
def mark_read(notification_id):
    notification = NotificationService.mark_read(current_context(), notification_id)
    return jsonify({"id": notification.id, "is_read": notification.is_read})


@api_notification_bp.post("/read")
@login_required
def mark_all_read():
    updated = NotificationService.mark_all_read(current_context())
    return jsonify({"ok": True, "updated": updated})
