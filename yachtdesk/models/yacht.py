from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class Yacht(TimestampMixin, db.Model):
    __tablename__ = "yachts"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(140), nullable=False, index=True)
    model = db.Column(db.String(140), nullable=True)
    year = db.Column(db.Integer, nullable=True)
    hull_number = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=True)
    port_engine = db.Column(db.String(140), nullable=True)
    starboard_engine = db.Column(db.String(140), nullable=True)
    port_generator = db.Column(db.String(140), nullable=True)
    starboard_generator = db.Column(db.String(140), nullable=True)
    marina_name = db.Column(db.String(140), nullable=True)
    slip_location = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    users = db.relationship("User", back_populates="yacht", lazy="dynamic")
    bookings = db.relationship("YachtBooking", back_populates="yacht", lazy="dynamic")
