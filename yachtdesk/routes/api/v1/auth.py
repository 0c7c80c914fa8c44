from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from yachtdesk.decorators import clear_context, current_context
from yachtdesk.extensions import limiter
from yachtdesk.services import AuthService, ScopeService

api_auth_bp = Blueprint("api_auth", __name__)


def _user_payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "yacht_id": user.yacht_id,
        "must_change_password": user.must_change_password,
    }


@api_auth_bp.post("/login")
@limiter.limit("30 per minute")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(payload.get("email", ""), payload.get("password", ""))
    clear_context()
    login_user(user, remember=bool(payload.get("remember")))
    return jsonify(_user_payload(user))


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    AuthService.record_sign_out(current_user)
    clear_context()
    logout_user()
    return jsonify({"ok": True})


@api_auth_bp.get("/me")
@login_required
def api_me():
    data = _user_payload(current_user)
    data["session"] = ScopeService.describe(current_context())
    return jsonify(data)


@api_auth_bp.post("/password")
@login_required
@limiter.limit("15 per minute")
def api_change_password():
    payload = request.get_json(silent=True) or {}
    AuthService.change_password(current_user, payload.get("current_password"), payload.get("new_password"))
    return jsonify({"ok": True})
