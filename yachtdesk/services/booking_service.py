import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from flask import current_app

from yachtdesk.errors import ConflictError, NotFoundError, ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import BookingOwner, User, Yacht, YachtBooking
from yachtdesk.services.calendar_service import as_utc
from yachtdesk.services.outbox_service import OutboxService
from yachtdesk.services.scope_service import ScopeService

BOOKING_ROLES = ("owner", "manager", "staff", "master")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class BookingService:
    @staticmethod
    def _local_zone():
        return ZoneInfo(current_app.config["APP_TIMEZONE"])

    @staticmethod
    def parse_datetime(value, end_of_day=False):
        """Aware UTC datetime for an ISO value.

        A date-only value is a local calendar day: midnight for a start,
        23:59:59 for an end so the whole last day stays inside the trip.
        """
        if value is None or value == "":
            raise ValidationError("Start and end dates are required.")
        tz = BookingService._local_zone()
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime.combine(value, time(23, 59, 59) if end_of_day else time.min)
        else:
            raw = str(value).strip()
            try:
                if len(raw) == 10:
                    day = date.fromisoformat(raw)
                    parsed = datetime.combine(day, time(23, 59, 59) if end_of_day else time.min)
                else:
                    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError as exc:
                raise ValidationError(f"Invalid date: {raw}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def normalize_time(value, label):
        text = (value or "").strip()
        if not text:
            return None
        if not TIME_PATTERN.match(text):
            raise ValidationError(f"{label} must use HH:MM format.")
        return text

    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(YachtBooking, booking_id)
        if not booking:
            raise NotFoundError("Booking not found.")
        return booking

    @staticmethod
    def _active_yacht(yacht_id):
        yacht = db.session.get(Yacht, yacht_id) if yacht_id else None
        if not yacht or not yacht.is_active:
            raise NotFoundError("Yacht not found.")
        return yacht

    @staticmethod
    def _owners_from_payload(owners):
        rows = []
        for entry in owners or []:
            if isinstance(entry, str):
                entry = {"owner_name": entry}
            name = (entry.get("owner_name") or "").strip()
            if not name:
                continue
            rows.append(BookingOwner(owner_name=name, owner_contact=(entry.get("owner_contact") or "").strip() or None))
        return rows

    @staticmethod
    def create_booking(ctx, actor, data):
        ScopeService.ensure_role(ctx, *BOOKING_ROLES)
        yacht_id = ScopeService.parse_yacht_id(data.get("yacht_id")) or ctx.effective_yacht_id
        yacht = BookingService._active_yacht(yacht_id)
        ScopeService.ensure_can_access(ctx, yacht.id)

        start = BookingService.parse_datetime(data.get("start_date"))
        end = BookingService.parse_datetime(data.get("end_date"), end_of_day=True)
        if start > end:
            raise ValidationError("Trip start must be on or before its end.")

        user_id = data.get("user_id")
        if ctx.effective_role == "owner":
            user_id = ctx.user_id
        if user_id is not None:
            owner = db.session.get(User, user_id)
            if not owner or owner.yacht_id != yacht.id:
                raise ValidationError("Booking owner must belong to the yacht.")

        booking = YachtBooking(
            yacht_id=yacht.id,
            user_id=user_id,
            start_date=start,
            end_date=end,
            departure_time=BookingService.normalize_time(data.get("departure_time"), "Departure time"),
            arrival_time=BookingService.normalize_time(data.get("arrival_time"), "Arrival time"),
            notes=(data.get("notes") or "").strip() or None,
            owner_name=(data.get("owner_name") or "").strip() or None,
            owner_contact=(data.get("owner_contact") or "").strip() or None,
        )
        booking.owners = BookingService._owners_from_payload(data.get("owners"))
        db.session.add(booking)
        db.session.flush()

        OutboxService.log_history(
            yacht.id,
            "booking_created",
            f"Trip booked from {start.date().isoformat()} to {end.date().isoformat()}.",
            reference_type="booking",
            reference_id=booking.id,
            actor=actor,
        )
        OutboxService.commit_and_drain()
        return booking

    @staticmethod
    def update_booking(ctx, actor, booking, data):
        ScopeService.ensure_role(ctx, *BOOKING_ROLES)
        ScopeService.ensure_can_access(ctx, booking.yacht_id, booking.user_id, owner_checked=True)

        start = as_utc(booking.start_date)
        end = as_utc(booking.end_date)
        if "start_date" in data:
            start = BookingService.parse_datetime(data["start_date"])
        if "end_date" in data:
            end = BookingService.parse_datetime(data["end_date"], end_of_day=True)
        if start > end:
            raise ValidationError("Trip start must be on or before its end.")

        booking.start_date = start
        booking.end_date = end
        if "departure_time" in data:
            booking.departure_time = BookingService.normalize_time(data["departure_time"], "Departure time")
        if "arrival_time" in data:
            booking.arrival_time = BookingService.normalize_time(data["arrival_time"], "Arrival time")
        if "notes" in data:
            booking.notes = (data["notes"] or "").strip() or None
        if "owners" in data:
            booking.owners = BookingService._owners_from_payload(data["owners"])

        OutboxService.log_history(
            booking.yacht_id,
            "booking_updated",
            f"Trip #{booking.id} updated.",
            reference_type="booking",
            reference_id=booking.id,
            actor=actor,
        )
        OutboxService.commit_and_drain()
        return booking

    @staticmethod
    def delete_booking(ctx, actor, booking):
        ScopeService.ensure_role(ctx, "manager", "staff", "master")
        ScopeService.ensure_can_access(ctx, booking.yacht_id)
        yacht_id, booking_id = booking.yacht_id, booking.id
        db.session.delete(booking)
        OutboxService.log_history(
            yacht_id,
            "booking_deleted",
            f"Trip #{booking_id} deleted.",
            reference_type="booking",
            reference_id=booking_id,
            actor=actor,
        )
        OutboxService.commit_and_drain()

    @staticmethod
    def check_in(ctx, actor, booking, now=None):
        """Mark the trip as started. Rejected without a write outside start..end."""
        ScopeService.ensure_can_access(ctx, booking.yacht_id, booking.user_id, owner_checked=True)
        if booking.checked_in:
            raise ConflictError("This trip is already checked in.")
        now = as_utc(now) if now else datetime.now(timezone.utc)
        start = as_utc(booking.start_date)
        end = as_utc(booking.end_date)
        if now < start:
            raise ValidationError("Check-in opens when the trip starts.")
        if now > end:
            raise ValidationError("This trip has already ended.")

        booking.checked_in = True
        booking.checked_in_at = now
        OutboxService.log_history(
            booking.yacht_id,
            "check_in",
            f"{actor.full_name} checked in for trip #{booking.id}.",
            reference_type="booking",
            reference_id=booking.id,
            actor=actor,
        )
        OutboxService.notify(
            "check_in",
            f"{actor.full_name} checked in.",
            yacht_id=booking.yacht_id,
            user_id=actor.id,
            reference_id=booking.id,
        )
        OutboxService.commit_and_drain()
        return booking

    @staticmethod
    def check_out(ctx, actor, booking, oil_change_needed=False, now=None):
        ScopeService.ensure_can_access(ctx, booking.yacht_id, booking.user_id, owner_checked=True)
        if not booking.checked_in:
            raise ValidationError("This trip has not been checked in.")
        if booking.checked_out:
            raise ConflictError("This trip is already checked out.")

        booking.checked_out = True
        booking.checked_out_at = as_utc(now) if now else datetime.now(timezone.utc)
        booking.oil_change_needed = bool(oil_change_needed)
        summary = f"{actor.full_name} checked out of trip #{booking.id}."
        if booking.oil_change_needed:
            summary += " Oil change needed."
        OutboxService.log_history(
            booking.yacht_id,
            "check_out",
            summary,
            reference_type="booking",
            reference_id=booking.id,
            actor=actor,
        )
        OutboxService.notify(
            "check_out",
            summary,
            yacht_id=booking.yacht_id,
            user_id=actor.id,
            reference_id=booking.id,
        )
        OutboxService.commit_and_drain()
        return booking
