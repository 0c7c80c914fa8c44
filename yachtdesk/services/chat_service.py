from yachtdesk.errors import ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import OwnerChatMessage, StaffMessage, User, Yacht
from yachtdesk.services.functions_client import SEND_MESSAGE_NOTIFICATION
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import ScopeService, resolve_scope

MAX_MESSAGE_LENGTH = 4000
NOTIFIED_ROLES = ("staff", "manager", "mechanic")


class ChatService:
    @staticmethod
    def _clean(message):
        text = (message or "").strip()
        if not text:
            raise ValidationError("Message is required.")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError("Message is too long.")
        return text

    @staticmethod
    def message_recipients(yacht_id, sender_id=None):
        """Staff, mechanics and the yacht's managers who accept email notifications."""
        users = (
            User.query.filter(User.role.in_(NOTIFIED_ROLES), User.is_active_user.is_(True))
            .filter(User.email_notifications_enabled.is_(True))
            .order_by(User.id.asc())
            .all()
        )
        recipients = []
        for user in users:
            if user.id == sender_id:
                continue
            if user.role == "manager" and yacht_id is not None and user.yacht_id != yacht_id:
                continue
            recipients.append(user.notification_email or user.email)
        return recipients

    @staticmethod
    def _notify(message_type, row, yacht_id, ctx):
        recipients = ChatService.message_recipients(yacht_id, sender_id=ctx.user_id)
        if not recipients:
            return None
        sender = db.session.get(User, ctx.user_id)
        yacht = db.session.get(Yacht, yacht_id) if yacht_id is not None else None
        return OutboxService.send_email(
            SEND_MESSAGE_NOTIFICATION,
            messageType=message_type,
            messageId=row.id,
            yachtId=yacht_id,
            yachtName=yacht.name if yacht else None,
            senderName=sender.full_name if sender else "Unknown",
            messageContent=row.message,
            notificationType=getattr(row, "notification_type", None),
            recipients=recipients,
        )

    @staticmethod
    def post_message(ctx, message, yacht_id=None):
        """Post to the owner chat of the effective yacht."""
        scope = resolve_scope(ctx)
        target = ScopeService.parse_yacht_id(yacht_id) or scope.yacht_id or ctx.effective_yacht_id
        if not target:
            raise ValidationError("Select a yacht before posting.")
        ScopeService.ensure_can_access(ctx, target)

        row = OwnerChatMessage(yacht_id=target, user_id=ctx.user_id, message=ChatService._clean(message))
        db.session.add(row)
        db.session.flush()
        ChatService._notify("yacht_message", row, target, ctx)
        OutboxService.commit_and_drain()
        return row

    @staticmethod
    def post_staff_message(ctx, message, yacht_id=None, notification_type="general"):
        ScopeService.ensure_role(ctx, "staff", "mechanic", "master", "manager")
        yacht_id = ScopeService.parse_yacht_id(yacht_id)
        if yacht_id is not None:
            ScopeService.ensure_can_access(ctx, yacht_id)
        row = StaffMessage(
            yacht_id=yacht_id,
            created_by=ctx.user_id,
            notification_type=(notification_type or "general").strip() or "general",
            message=ChatService._clean(message),
        )
        db.session.add(row)
        db.session.flush()
        ChatService._notify("staff_message", row, yacht_id, ctx)
        OutboxService.commit_and_drain()
        return row
