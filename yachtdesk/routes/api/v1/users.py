from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from yachtdesk.decorators import current_context, role_required
from yachtdesk.services import UserService

api_user_bp = Blueprint("api_user", __name__)


def _payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "yacht_id": user.yacht_id,
        "is_active": user.is_active_user,
        "must_change_password": user.must_change_password,
    }


@api_user_bp.post("")
@login_required
@role_required("staff", "master")
def create_user():
    payload = request.get_json(silent=True) or {}
    user = UserService.create_user(current_context(), current_user, payload)
    return jsonify(_payload(user)), 201


@api_user_bp.post("/<int:user_id>/deactivate")
@login_required
@role_required("staff", "master")
def deactivate_user(user_id):
    user = UserService.get_user(user_id)
    user = UserService.deactivate_user(current_context(), current_user, user)
    return jsonify(_payload(user))


@api_user_bp.post("/<int:user_id>/restore")
@login_required
@role_required("staff", "master")
def restore_user(user_id):
    user = UserService.get_user(user_id)
    user = UserService.restore_user(current_context(), current_user, user)
    return jsonify(_payload(user))
