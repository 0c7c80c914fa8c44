from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class AdminNotification(TimestampMixin, db.Model):
    __tablename__ = "admin_notifications"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    notification_type = db.Column(db.String(32), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    reference_id = db.Column(PKType, nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False, index=True)
