"""
Booking calendar computation.

The functions at module level are pure: they work on ``CalendarItem`` values
and plain dates, never on the database. ``CalendarService`` is the thin layer
that loads scoped bookings and appointments and lays them onto a grid.
"""
import calendar as _calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app

from yachtdesk.errors import ValidationError

VIEWS = ("month", "week", "day")
DEPARTURE = "departure"
ARRIVAL = "arrival"
ARRIVAL_OIL_CHANGE = "arrival_oil_change"
APPOINTMENT = "appointment"

MONTH_NAMES = list(_calendar.month_name)[1:]
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _zone(tz):
    if tz is None:
        return ZoneInfo("UTC")
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_local_date(value, tz=None):
    """Return the local calendar day for ``value``.

    Date-only strings and ``date`` objects are local midnight already. Aware
    datetimes are converted into ``tz``; naive datetimes are taken as local.
    """
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if len(raw) == 10:
            return date.fromisoformat(raw)
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(_zone(tz))
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Unsupported date value: {value!r}")


def as_utc(value):
    """Attach UTC to naive timestamps read back from the database."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_time_of_day(value):
    """Minutes since midnight for an ``HH:MM`` string; missing sorts as midnight."""
    if not value:
        return 0
    try:
        hours, minutes = str(value).strip().split(":")[:2]
        return int(hours) * 60 + int(minutes)
    except ValueError:
        return 0


@dataclass(frozen=True)
class CalendarItem:
    kind: str
    id: int
    start: date
    end: date
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    oil_change_needed: bool = False
    yacht_id: Optional[int] = None
    title: str = ""
    checked_in: bool = False
    checked_out: bool = False

    @classmethod
    def from_booking(cls, booking, tz=None, title=""):
        return cls(
            kind="booking",
            id=booking.id,
            start=to_local_date(as_utc(booking.start_date), tz),
            end=to_local_date(as_utc(booking.end_date), tz),
            departure_time=booking.departure_time,
            arrival_time=booking.arrival_time,
            oil_change_needed=bool(booking.oil_change_needed),
            yacht_id=booking.yacht_id,
            title=title,
            checked_in=bool(booking.checked_in),
            checked_out=bool(booking.checked_out),
        )

    @classmethod
    def from_appointment(cls, appointment, title=""):
        day = to_local_date(appointment.appointment_date)
        return cls(
            kind=APPOINTMENT,
            id=appointment.id,
            start=day,
            end=day,
            departure_time=appointment.appointment_time,
            yacht_id=appointment.yacht_id,
            title=title or appointment.customer_name,
        )


def occurs_on(item, day):
    day = to_local_date(day)
    if item.kind == APPOINTMENT:
        return item.start == day
    return day == item.start or day == item.end


def classify(item, day):
    """``departure``, ``arrival``, ``appointment`` or ``None`` for ``day``.

    A trip that starts and ends on the same day is a departure.
    """
    day = to_local_date(day)
    if not occurs_on(item, day):
        return None
    if item.kind == APPOINTMENT:
        return APPOINTMENT
    if day == item.start:
        return DEPARTURE
    return ARRIVAL


def display_bucket(item, day):
    kind = classify(item, day)
    if kind == ARRIVAL and item.oil_change_needed:
        return ARRIVAL_OIL_CHANGE
    return kind


def time_of_day(item, day):
    kind = classify(item, day)
    if kind == ARRIVAL:
        return parse_time_of_day(item.arrival_time)
    return parse_time_of_day(item.departure_time)


def sort_key(day):
    return lambda item: time_of_day(item, day)


def items_for_day(items, day):
    day = to_local_date(day)
    todays = [item for item in items if occurs_on(item, day)]
    # sorted() is stable, so equal times keep their input order.
    return sorted(todays, key=sort_key(day))


def month_grid(ref):
    """Leading ``None`` cells for weekday alignment, then every day of the month."""
    ref = to_local_date(ref)
    first = ref.replace(day=1)
    days_in_month = _calendar.monthrange(ref.year, ref.month)[1]
    starting_day_of_week = (first.weekday() + 1) % 7
    cells = [None] * starting_day_of_week
    cells.extend(first + timedelta(days=offset) for offset in range(days_in_month))
    return cells


def week_days(ref):
    ref = to_local_date(ref)
    sunday = ref - timedelta(days=(ref.weekday() + 1) % 7)
    return [sunday + timedelta(days=offset) for offset in range(7)]


def day_view(ref):
    return [to_local_date(ref)]


def navigate(ref, view, step):
    ref = to_local_date(ref)
    if view == "day":
        return ref + timedelta(days=step)
    if view == "week":
        return ref + timedelta(weeks=step)
    if view == "month":
        month_index = ref.year * 12 + (ref.month - 1) + step
        return date(month_index // 12, month_index % 12 + 1, 1)
    raise ValidationError(f"Unknown calendar view: {view}")


def today(tz=None):
    return datetime.now(_zone(tz)).date()


def _nth_weekday(year, month, weekday, n):
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + (n - 1) * 7)


def _last_weekday(year, month, weekday):
    last = date(year, month, _calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def federal_holidays(year):
    return [
        (date(year, 1, 1), "New Year's Day"),
        (_nth_weekday(year, 1, _calendar.MONDAY, 3), "MLK Jr. Day"),
        (_nth_weekday(year, 2, _calendar.MONDAY, 3), "Presidents' Day"),
        (_last_weekday(year, 5, _calendar.MONDAY), "Memorial Day"),
        (date(year, 6, 19), "Juneteenth"),
        (date(year, 7, 4), "Independence Day"),
        (_nth_weekday(year, 9, _calendar.MONDAY, 1), "Labor Day"),
        (_nth_weekday(year, 10, _calendar.MONDAY, 2), "Columbus Day"),
        (date(year, 11, 11), "Veterans Day"),
        (_nth_weekday(year, 11, _calendar.THURSDAY, 4), "Thanksgiving"),
        (date(year, 12, 25), "Christmas Day"),
    ]


def holiday_for(day):
    day = to_local_date(day)
    for holiday, name in federal_holidays(day.year):
        if holiday == day:
            return name
    return None


def serialize_item(item, day):
    return {
        "kind": item.kind,
        "id": item.id,
        "title": item.title,
        "yacht_id": item.yacht_id,
        "bucket": display_bucket(item, day),
        "time": item.arrival_time if classify(item, day) == ARRIVAL else item.departure_time,
        "start": item.start.isoformat(),
        "end": item.end.isoformat(),
        "checked_in": item.checked_in,
        "checked_out": item.checked_out,
        "oil_change_needed": item.oil_change_needed,
    }


class CalendarService:
    @staticmethod
    def _range_for(view, ref):
        if view == "month":
            cells = month_grid(ref)
            days = [cell for cell in cells if cell is not None]
            return cells, days[0], days[-1]
        if view == "week":
            days = week_days(ref)
            return days, days[0], days[-1]
        if view == "day":
            days = day_view(ref)
            return days, days[0], days[0]
        raise ValidationError(f"Unknown calendar view: {view}")

    @staticmethod
    def build_view(ctx, view="month", ref=None):
        from yachtdesk.services.fleet_loader import FleetLoader

        tz = current_app.config["APP_TIMEZONE"]
        ref = to_local_date(ref) if ref else today(tz)
        cells, first_day, last_day = CalendarService._range_for(view, ref)

        loader = FleetLoader(ctx)
        items = loader.calendar_items(first_day, last_day)

        grid = []
        for cell in cells:
            if cell is None:
                grid.append(None)
                continue
            grid.append(
                {
                    "date": cell.isoformat(),
                    "holiday": holiday_for(cell),
                    "items": [serialize_item(item, cell) for item in items_for_day(items, cell)],
                }
            )
        return {
            "view": view,
            "reference_date": ref.isoformat(),
            "title": f"{MONTH_NAMES[ref.month - 1]} {ref.year}",
            "day_names": DAY_NAMES,
            "previous": navigate(ref, view, -1).isoformat(),
            "next": navigate(ref, view, 1).isoformat(),
            "today": today(tz).isoformat(),
            "cells": grid,
        }
