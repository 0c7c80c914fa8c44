from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class Invoice(TimestampMixin, db.Model):
    __tablename__ = "yacht_invoices"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    repair_request_id = db.Column(
        PKType, db.ForeignKey("repair_requests.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="SET NULL"), nullable=True, index=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    invoice_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    payment_link_url = db.Column(db.String(500), nullable=True)
    checkout_session_id = db.Column(db.String(255), nullable=True)
    payment_link_created_at = db.Column(db.DateTime(timezone=True), nullable=True)

    recipient_email = db.Column(db.String(255), nullable=True)
    email_message_id = db.Column(db.String(255), nullable=True, index=True)
    payment_email_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_email_delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_email_opened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_email_clicked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_email_bounced_at = db.Column(db.DateTime(timezone=True), nullable=True)
    email_open_count = db.Column(db.Integer, nullable=False, default=0)
    email_click_count = db.Column(db.Integer, nullable=False, default=0)

    repair_request = db.relationship("RepairRequest", back_populates="invoice")
