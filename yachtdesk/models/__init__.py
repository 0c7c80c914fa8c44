from yachtdesk.models.appointment import Appointment
from yachtdesk.models.booking import BookingOwner, YachtBooking
from yachtdesk.models.chat_message import OwnerChatMessage, StaffMessage
from yachtdesk.models.document import YachtBudget, YachtDocument
from yachtdesk.models.history_log import YachtHistoryLog
from yachtdesk.models.invoice import Invoice
from yachtdesk.models.maintenance_request import MaintenanceRequest
from yachtdesk.models.notification import AdminNotification
from yachtdesk.models.outbox import OutboxEvent
from yachtdesk.models.repair_request import RepairApprovalToken, RepairRequest
from yachtdesk.models.user import ROLES, User
from yachtdesk.models.yacht import Yacht

__all__ = [
    "ROLES",
    "User",
    "Yacht",
    "YachtBooking",
    "BookingOwner",
    "Appointment",
    "MaintenanceRequest",
    "RepairRequest",
    "RepairApprovalToken",
    "Invoice",
    "OwnerChatMessage",
    "StaffMessage",
    "AdminNotification",
    "YachtDocument",
    "YachtBudget",
    "YachtHistoryLog",
    "OutboxEvent",
]
