from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class RepairRequest(TimestampMixin, db.Model):
    __tablename__ = "repair_requests"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    # Null for walk-in customers, who are identified by the customer_* fields.
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=True, index=True)
    submitted_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    file_url = db.Column(db.String(500), nullable=True)
    file_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(24), nullable=False, default="pending", index=True)

    is_retail_customer = db.Column(db.Boolean, nullable=False, default=False)
    customer_name = db.Column(db.String(140), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    vessel_name = db.Column(db.String(140), nullable=True)

    estimated_repair_cost = db.Column(db.Numeric(12, 2), nullable=True)
    final_invoice_amount = db.Column(db.Numeric(12, 2), nullable=True)
    approved_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approval_notes = db.Column(db.Text, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    billed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notification_recipients = db.Column(db.Text, nullable=True)

    yacht = db.relationship("Yacht")
    invoice = db.relationship("Invoice", back_populates="repair_request", uselist=False)
    approval_tokens = db.relationship(
        "RepairApprovalToken", back_populates="repair_request", cascade="all, delete-orphan", lazy="dynamic"
    )

    __table_args__ = (
        db.Index("ix_repair_requests_yacht_status", "yacht_id", "status"),
    )


class RepairApprovalToken(TimestampMixin, db.Model):
    __tablename__ = "repair_request_approval_tokens"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    repair_request_id = db.Column(
        PKType, db.ForeignKey("repair_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    action_type = db.Column(db.String(16), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    repair_request = db.relationship("RepairRequest", back_populates="approval_tokens")
