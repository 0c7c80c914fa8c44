from flask import Blueprint, jsonify, request
from flask_login import login_required

from yachtdesk.decorators import clear_context, current_context, store_context
from yachtdesk.services import ScopeService

api_session_bp = Blueprint("api_session", __name__)


@api_session_bp.get("")
@login_required
def get_session():
    return jsonify(ScopeService.describe(current_context()))


@api_session_bp.post("/role")
@login_required
def impersonate_role():
    payload = request.get_json(silent=True) or {}
    ctx = ScopeService.impersonate_role(current_context(), payload.get("role"))
    store_context(ctx)
    return jsonify(ScopeService.describe(ctx))


@api_session_bp.post("/yacht")
@login_required
def impersonate_yacht():
    payload = request.get_json(silent=True) or {}
    ctx = ScopeService.impersonate_yacht(current_context(), payload.get("yacht_id"))
    store_context(ctx)
    return jsonify(ScopeService.describe(ctx))


@api_session_bp.delete("")
@login_required
def reset_session():
    clear_context()
    return jsonify(ScopeService.describe(current_context()))
