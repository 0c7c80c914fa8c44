from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from yachtdesk.decorators import current_context
from yachtdesk.errors import ValidationError
from yachtdesk.extensions import cache
from yachtdesk.services import CalendarService
from yachtdesk.services.calendar_service import VIEWS, federal_holidays, today

api_calendar_bp = Blueprint("api_calendar", __name__)


@api_calendar_bp.get("")
@login_required
def calendar_view():
    view = (request.args.get("view") or "month").lower()
    if view not in VIEWS:
        raise ValidationError(f"Unknown calendar view: {view}")
    ref = request.args.get("date") or None
    try:
        result = CalendarService.build_view(current_context(), view=view, ref=ref)
    except ValueError as exc:
        raise ValidationError("Date must be YYYY-MM-DD.") from exc
    return jsonify(result)


@api_calendar_bp.get("/holidays")
@cache.cached(timeout=3600, query_string=True)
def holidays():
    year = request.args.get("year", type=int) or today(current_app.config["APP_TIMEZONE"]).year
    return jsonify([{"date": day.isoformat(), "name": name} for day, name in federal_holidays(year)])
