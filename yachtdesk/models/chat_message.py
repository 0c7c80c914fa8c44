from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class OwnerChatMessage(TimestampMixin, db.Model):
    __tablename__ = "owner_chat_messages"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    message = db.Column(db.Text, nullable=False)


class StaffMessage(TimestampMixin, db.Model):
    __tablename__ = "staff_messages"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=True, index=True)
    created_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    notification_type = db.Column(db.String(32), nullable=False, default="general")
    message = db.Column(db.Text, nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
