from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class MaintenanceRequest(TimestampMixin, db.Model):
    __tablename__ = "maintenance_requests"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    subject = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    priority = db.Column(db.String(16), nullable=False, default="medium")
    status = db.Column(db.String(24), nullable=False, default="pending", index=True)

    __table_args__ = (
        db.Index("ix_maintenance_requests_yacht_status", "yacht_id", "status"),
    )
