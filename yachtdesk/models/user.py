from flask_login import UserMixin

from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin

ROLES = ("owner", "manager", "staff", "mechanic", "master")


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="SET NULL"), nullable=True, index=True)
    first_name = db.Column(db.String(80), nullable=False, default="")
    last_name = db.Column(db.String(80), nullable=False, default="")
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(32), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True, index=True)
    must_change_password = db.Column(db.Boolean, nullable=False, default=False)
    notification_email = db.Column(db.String(255), nullable=True)
    email_notifications_enabled = db.Column(db.Boolean, nullable=False, default=True)
    trip_number = db.Column(db.String(32), nullable=True)
    last_sign_in_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_sign_out_at = db.Column(db.DateTime(timezone=True), nullable=True)

    yacht = db.relationship("Yacht", back_populates="users")
    bookings = db.relationship("YachtBooking", back_populates="user", lazy="dynamic")

    __table_args__ = (
        db.Index("ix_users_yacht_role", "yacht_id", "role"),
    )

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.email

    @property
    def is_active(self):
        return bool(self.is_active_user)
