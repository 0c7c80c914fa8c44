from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class YachtBooking(TimestampMixin, db.Model):
    __tablename__ = "yacht_bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=False, index=True)
    # Legacy rows carry ad-hoc owner names instead of a user reference.
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    departure_time = db.Column(db.String(5), nullable=True)
    arrival_time = db.Column(db.String(5), nullable=True)

    checked_in = db.Column(db.Boolean, nullable=False, default=False)
    checked_out = db.Column(db.Boolean, nullable=False, default=False)
    checked_in_at = db.Column(db.DateTime(timezone=True), nullable=True)
    checked_out_at = db.Column(db.DateTime(timezone=True), nullable=True)
    oil_change_needed = db.Column(db.Boolean, nullable=False, default=False)

    notes = db.Column(db.Text, nullable=True)
    owner_name = db.Column(db.String(140), nullable=True)
    owner_contact = db.Column(db.String(140), nullable=True)

    yacht = db.relationship("Yacht", back_populates="bookings")
    user = db.relationship("User", back_populates="bookings")
    owners = db.relationship("BookingOwner", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_yacht_bookings_yacht_start", "yacht_id", "start_date"),
        db.CheckConstraint("start_date <= end_date", name="ck_booking_start_before_end"),
    )


class BookingOwner(TimestampMixin, db.Model):
    __tablename__ = "yacht_booking_owners"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("yacht_bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_name = db.Column(db.String(140), nullable=False)
    owner_contact = db.Column(db.String(140), nullable=True)

    booking = db.relationship("YachtBooking", back_populates="owners")
