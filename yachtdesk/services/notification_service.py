from yachtdesk.errors import NotFoundError
from yachtdesk.extensions import db
from yachtdesk.models import AdminNotification
from yachtdesk.services.scope_service import ScopeService, resolve_scope


class NotificationService:
    @staticmethod
    def push(notification_type, message, yacht_id=None, user_id=None, reference_id=None):
        notification = AdminNotification(
            notification_type=notification_type,
            message=message,
            yacht_id=yacht_id,
            user_id=user_id,
            reference_id=reference_id,
        )
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def _scoped(ctx):
        return ScopeService.apply(AdminNotification.query, resolve_scope(ctx), yacht_column=AdminNotification.yacht_id)

    @staticmethod
    def unread_count(ctx):
        return NotificationService._scoped(ctx).filter(AdminNotification.is_read.is_(False)).count()

    @staticmethod
    def mark_read(ctx, notification_id):
        notification = db.session.get(AdminNotification, notification_id)
        if not notification:
            raise NotFoundError("Notification not found.")
        if notification.yacht_id is not None:
            ScopeService.ensure_can_access(ctx, notification.yacht_id)
        notification.is_read = True
        db.session.commit()
        return notification

    @staticmethod
    def mark_all_read(ctx):
        ids = [row.id for row in NotificationService._scoped(ctx).filter(AdminNotification.is_read.is_(False)).all()]
        if ids:
            AdminNotification.query.filter(AdminNotification.id.in_(ids)).update(
                {"is_read": True}, synchronize_session=False
            )
        db.session.commit()
        return len(ids)
