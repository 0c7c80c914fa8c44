from yachtdesk.services.appointment_service import AppointmentService
from yachtdesk.services.auth_service import AuthService
from yachtdesk.services.booking_service import BookingService
from yachtdesk.services.calendar_service import CalendarService
from yachtdesk.services.change_feed import ChangeFeed, change_feed
from yachtdesk.services.chat_service import ChatService
from yachtdesk.services.document_service import DocumentService
from yachtdesk.services.file_service import FileService
from yachtdesk.services.fleet_loader import DashboardRegistry, DashboardState, FleetLoader
from yachtdesk.services.functions_client import FunctionsClient
from yachtdesk.services.invoice_service import InvoiceService
from yachtdesk.services.maintenance_service import MaintenanceService
from yachtdesk.services.notification_service import NotificationService
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.repair_service import RepairService
from yachtdesk.services.scope_service import ScopeService, SessionContext, resolve_scope
from yachtdesk.services.user_service import UserService
from yachtdesk.services.yacht_service import YachtService

__all__ = [
    "AppointmentService",
    "AuthService",
    "BookingService",
    "CalendarService",
    "ChangeFeed",
    "ChatService",
    "DashboardRegistry",
    "DashboardState",
    "DocumentService",
    "FileService",
    "FleetLoader",
    "FunctionsClient",
    "InvoiceService",
    "MaintenanceService",
    "NotificationService",
    "OutboxService",
    "RepairService",
    "ScopeService",
    "SessionContext",
    "UserService",
    "YachtService",
    "change_feed",
    "resolve_scope",
]
