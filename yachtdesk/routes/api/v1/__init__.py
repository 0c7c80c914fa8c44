from flask import Blueprint

from yachtdesk.extensions import csrf
from yachtdesk.routes.api.v1.appointments import api_appointment_bp
from yachtdesk.routes.api.v1.auth import api_auth_bp
from yachtdesk.routes.api.v1.bookings import api_booking_bp
from yachtdesk.routes.api.v1.calendar import api_calendar_bp
from yachtdesk.routes.api.v1.chat import api_chat_bp
from yachtdesk.routes.api.v1.dashboard import api_dashboard_bp
from yachtdesk.routes.api.v1.documents import api_document_bp
from yachtdesk.routes.api.v1.invoices import api_invoice_bp
from yachtdesk.routes.api.v1.maintenance import api_maintenance_bp
from yachtdesk.routes.api.v1.notifications import api_notification_bp
from yachtdesk.routes.api.v1.repairs import api_repair_bp
from yachtdesk.routes.api.v1.session import api_session_bp
from yachtdesk.routes.api.v1.users import api_user_bp
from yachtdesk.routes.api.v1.yachts import api_yacht_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_session_bp, url_prefix="/session")
api_v1_bp.register_blueprint(api_dashboard_bp, url_prefix="/dashboard")
api_v1_bp.register_blueprint(api_calendar_bp, url_prefix="/calendar")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_appointment_bp, url_prefix="/appointments")
api_v1_bp.register_blueprint(api_repair_bp, url_prefix="/repairs")
api_v1_bp.register_blueprint(api_maintenance_bp, url_prefix="/maintenance")
api_v1_bp.register_blueprint(api_invoice_bp, url_prefix="/invoices")
api_v1_bp.register_blueprint(api_chat_bp, url_prefix="/chat")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")
api_v1_bp.register_blueprint(api_document_bp, url_prefix="/documents")
api_v1_bp.register_blueprint(api_user_bp, url_prefix="/users")
api_v1_bp.register_blueprint(api_yacht_bp, url_prefix="/yachts")

csrf.exempt(api_v1_bp)
