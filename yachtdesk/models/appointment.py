from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class Appointment(TimestampMixin, db.Model):
    __tablename__ = "appointments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="SET NULL"), nullable=True, index=True)
    repair_request_id = db.Column(
        PKType, db.ForeignKey("repair_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    appointment_date = db.Column(db.Date, nullable=False, index=True)
    appointment_time = db.Column(db.String(5), nullable=True)
    customer_name = db.Column(db.String(140), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    vessel_name = db.Column(db.String(140), nullable=True)
    problem_description = db.Column(db.Text, nullable=True)

    repair_request = db.relationship("RepairRequest")
