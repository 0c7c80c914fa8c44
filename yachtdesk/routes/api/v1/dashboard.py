from flask import Blueprint, jsonify, request
from flask_login import login_required

from yachtdesk.decorators import current_context
from yachtdesk.services import FleetLoader, ScopeService, change_feed
from yachtdesk.services.fleet_loader import DashboardRegistry

api_dashboard_bp = Blueprint("api_dashboard", __name__)

dashboard_registry = DashboardRegistry()


def _state():
    return dashboard_registry.for_context(current_context(), feed=change_feed)


@api_dashboard_bp.get("")
@login_required
def dashboard():
    state = _state()
    collections = state.reload_all()
    return jsonify({"session": ScopeService.describe(state.ctx), "collections": collections})


@api_dashboard_bp.get("/updates")
@login_required
def dashboard_updates():
    """Collections re-fetched because a watched table changed since the last poll."""
    return jsonify({"collections": _state().refresh_dirty()})


@api_dashboard_bp.get("/<string:key>")
@login_required
def dashboard_collection(key):
    if key not in FleetLoader.COLLECTIONS:
        return jsonify({"error": "Not found"}), 404
    filters = {}
    page = request.args.get("page", type=int)
    if page is not None:
        filters["page"] = page
        filters["per_page"] = request.args.get("per_page", type=int)
    if key in ("documents", "budgets") and request.args.get("yacht_id") is not None:
        filters["yacht_id"] = request.args.get("yacht_id", type=int)
    result = _state().reload(key, **filters)
    if isinstance(result, dict):
        return jsonify(result)
    return jsonify({"items": result})
