"""
Scoped data loading for the fleet dashboard.

``FleetLoader`` runs one scoped query per collection and denormalises display
fields (submitter, yacht and mechanic names) through batching ``DataLoader``
instances, so enrichment costs one lookup per distinct id set instead of one
per row. ``DashboardState`` keeps the last good result per collection for a
session context.
"""
import threading
from collections import OrderedDict
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy import and_, false, or_
from sqlalchemy.exc import SQLAlchemyError

from yachtdesk.errors import ValidationError
from yachtdesk.extensions import db
from yachtdesk.models import (
    AdminNotification,
    Appointment,
    BookingOwner,
    Invoice,
    MaintenanceRequest,
    OwnerChatMessage,
    RepairRequest,
    StaffMessage,
    User,
    Yacht,
    YachtBooking,
    YachtBudget,
    YachtDocument,
)
from yachtdesk.models.base import isoformat
from yachtdesk.services.calendar_service import CalendarItem, as_utc
from yachtdesk.services.dataloader import DataLoader, user_name_loader, yacht_name_loader
from yachtdesk.services.scope_service import ScopeService, resolve_scope


def _ts(value):
    return isoformat(as_utc(value))


def _money(value):
    return str(value) if value is not None else None


class FleetLoader:
    COLLECTIONS = (
        "bookings",
        "appointments",
        "maintenance_requests",
        "repair_requests",
        "chat_messages",
        "notifications",
        "staff_messages",
        "yachts",
        "users",
        "invoices",
        "documents",
        "budgets",
    )

    def __init__(self, ctx):
        self.ctx = ctx
        self.scope = resolve_scope(ctx)
        self.user_names = user_name_loader()
        self.yacht_names = yacht_name_loader()

    # -- paging ---------------------------------------------------------

    @staticmethod
    def page_bounds(page, per_page):
        """Validate a 1-based page and clamp ``per_page`` to the configured maximum."""
        default_size = current_app.config.get("LOADER_PAGE_SIZE", 100)
        max_size = current_app.config.get("LOADER_MAX_PAGE_SIZE", 500)
        try:
            page = int(page)
            per_page = int(per_page or default_size)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Page and page size must be integers.") from exc
        if page < 1:
            raise ValidationError("Page must be 1 or greater.")
        return page, max(1, min(per_page, max_size))

    def _fetch(self, query, page=None, per_page=None):
        if page is None:
            return query.all(), None
        page, per_page = self.page_bounds(page, per_page)
        paginated = query.paginate(page=page, per_page=per_page, error_out=False)
        meta = {
            "page": paginated.page,
            "per_page": per_page,
            "pages": paginated.pages,
            "total": paginated.total,
            "has_next": paginated.has_next,
            "has_prev": paginated.has_prev,
        }
        return paginated.items, meta

    def load(self, key, page=None, per_page=None, **filters):
        if key not in self.COLLECTIONS:
            raise ValidationError(f"Unknown collection: {key}")
        query, serialize = getattr(self, f"_{key}")(**filters)
        rows, meta = self._fetch(query, page, per_page)
        items = serialize(rows)
        if meta is None:
            return items
        return {"items": items, "meta": meta}

    def _scoped(self, query, yacht_column=None, user_column=None):
        return ScopeService.apply(query, self.scope, yacht_column=yacht_column, user_column=user_column)

    def _yacht_filter(self, query, column, yacht_id):
        if yacht_id is None:
            return query
        yacht_id = ScopeService.parse_yacht_id(yacht_id)
        if not ScopeService.allows(self.scope, yacht_id):
            return query.filter(false())
        return query.filter(column == yacht_id)

    # -- collections ----------------------------------------------------

    def bookings(self, page=None, per_page=None):
        return self.load("bookings", page, per_page)

    def _bookings(self):
        query = self._scoped(YachtBooking.query, YachtBooking.yacht_id).order_by(
            YachtBooking.start_date.asc(), YachtBooking.id.asc()
        )

        def serialize(rows):
            users = self.user_names.load_many(row.user_id for row in rows)
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            owners = self._booking_owners([row.id for row in rows])
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id),
                    "user_id": row.user_id,
                    "user_name": users.get(row.user_id) or row.owner_name,
                    "owners": owners.get(row.id, []),
                    "start_date": _ts(row.start_date),
                    "end_date": _ts(row.end_date),
                    "departure_time": row.departure_time,
                    "arrival_time": row.arrival_time,
                    "checked_in": row.checked_in,
                    "checked_out": row.checked_out,
                    "oil_change_needed": row.oil_change_needed,
                    "notes": row.notes,
                }
                for row in rows
            ]

        return query, serialize

    @staticmethod
    def _booking_owners(booking_ids):
        if not booking_ids:
            return {}
        rows = (
            BookingOwner.query.filter(BookingOwner.booking_id.in_(booking_ids))
            .order_by(BookingOwner.id.asc())
            .all()
        )
        grouped = {}
        for row in rows:
            grouped.setdefault(row.booking_id, []).append(
                {"owner_name": row.owner_name, "owner_contact": row.owner_contact}
            )
        return grouped

    def appointments(self, page=None, per_page=None):
        return self.load("appointments", page, per_page)

    def _appointments(self):
        query = self._scoped(Appointment.query, Appointment.yacht_id).order_by(
            Appointment.appointment_date.asc(), Appointment.appointment_time.asc(), Appointment.id.asc()
        )

        def serialize(rows):
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id) or row.vessel_name,
                    "repair_request_id": row.repair_request_id,
                    "appointment_date": row.appointment_date.isoformat(),
                    "appointment_time": row.appointment_time,
                    "customer_name": row.customer_name,
                    "customer_phone": row.customer_phone,
                    "customer_email": row.customer_email,
                    "problem_description": row.problem_description,
                }
                for row in rows
            ]

        return query, serialize

    def maintenance_requests(self, page=None, per_page=None):
        return self.load("maintenance_requests", page, per_page)

    def _maintenance_requests(self):
        query = self._scoped(
            MaintenanceRequest.query, MaintenanceRequest.yacht_id, MaintenanceRequest.user_id
        ).order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc())

        def serialize(rows):
            user_ids = [row.user_id for row in rows] + [row.assigned_to for row in rows]
            users = self.user_names.load_many(user_ids)
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id),
                    "user_id": row.user_id,
                    "submitter_name": users.get(row.user_id),
                    "assigned_to": row.assigned_to,
                    "mechanic_name": users.get(row.assigned_to),
                    "subject": row.subject,
                    "description": row.description,
                    "priority": row.priority,
                    "status": row.status,
                    "created_at": _ts(row.created_at),
                }
                for row in rows
            ]

        return query, serialize

    def repair_requests(self, page=None, per_page=None):
        return self.load("repair_requests", page, per_page)

    def _repair_requests(self):
        query = self._scoped(RepairRequest.query, RepairRequest.yacht_id, RepairRequest.submitted_by).order_by(
            RepairRequest.created_at.desc(), RepairRequest.id.desc()
        )

        def serialize(rows):
            user_ids = []
            for row in rows:
                user_ids.extend((row.submitted_by, row.approved_by, row.completed_by))
            users = self.user_names.load_many(user_ids)
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id) or row.vessel_name,
                    "submitted_by": row.submitted_by,
                    "submitter_name": users.get(row.submitted_by) or row.customer_name,
                    "title": row.title,
                    "description": row.description,
                    "status": row.status,
                    "is_retail_customer": row.is_retail_customer,
                    "customer_name": row.customer_name,
                    "estimated_repair_cost": _money(row.estimated_repair_cost),
                    "final_invoice_amount": _money(row.final_invoice_amount),
                    "approved_by_name": users.get(row.approved_by),
                    "approval_notes": row.approval_notes,
                    "completed_by_name": users.get(row.completed_by),
                    "completed_at": _ts(row.completed_at),
                    "file_url": row.file_url,
                    "created_at": _ts(row.created_at),
                }
                for row in rows
            ]

        return query, serialize

    def chat_messages(self, page=None, per_page=None):
        return self.load("chat_messages", page, per_page)

    def _chat_messages(self):
        query = self._scoped(OwnerChatMessage.query, OwnerChatMessage.yacht_id).order_by(
            OwnerChatMessage.created_at.asc(), OwnerChatMessage.id.asc()
        )

        def serialize(rows):
            users = self.user_names.load_many(row.user_id for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "user_id": row.user_id,
                    "sender_name": users.get(row.user_id) or "System",
                    "message": row.message,
                    "created_at": _ts(row.created_at),
                }
                for row in rows
            ]

        return query, serialize

    def notifications(self, page=None, per_page=None):
        return self.load("notifications", page, per_page)

    def _notifications(self):
        query = self._scoped(AdminNotification.query, AdminNotification.yacht_id).order_by(
            AdminNotification.created_at.desc(), AdminNotification.id.desc()
        )

        def serialize(rows):
            users = self.user_names.load_many(row.user_id for row in rows)
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id),
                    "user_name": users.get(row.user_id),
                    "notification_type": row.notification_type,
                    "message": row.message,
                    "reference_id": row.reference_id,
                    "is_read": row.is_read,
                    "created_at": _ts(row.created_at),
                }
                for row in rows
            ]

        return query, serialize

    def staff_messages(self, page=None, per_page=None):
        return self.load("staff_messages", page, per_page)

    def _staff_messages(self):
        query = self._scoped(StaffMessage.query, StaffMessage.yacht_id).order_by(
            StaffMessage.created_at.desc(), StaffMessage.id.desc()
        )

        def serialize(rows):
            users = self.user_names.load_many(row.created_by for row in rows)
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id),
                    "created_by_name": users.get(row.created_by),
                    "notification_type": row.notification_type,
                    "message": row.message,
                    "completed_at": _ts(row.completed_at),
                    "created_at": _ts(row.created_at),
                }
                for row in rows
            ]

        return query, serialize

    def yachts(self, page=None, per_page=None):
        return self.load("yachts", page, per_page)

    def _yachts(self):
        query = self._scoped(Yacht.query.filter(Yacht.is_active.is_(True)), Yacht.id).order_by(
            Yacht.name.asc(), Yacht.id.asc()
        )

        def serialize(rows):
            for row in rows:
                self.yacht_names.prime(row.id, row.name)
            return [
                {
                    "id": row.id,
                    "name": row.name,
                    "model": row.model,
                    "year": row.year,
                    "hull_number": row.hull_number,
                    "marina_name": row.marina_name,
                    "slip_location": row.slip_location,
                    "port_engine": row.port_engine,
                    "starboard_engine": row.starboard_engine,
                    "port_generator": row.port_generator,
                    "starboard_generator": row.starboard_generator,
                }
                for row in rows
            ]

        return query, serialize

    def users(self, page=None, per_page=None):
        return self.load("users", page, per_page)

    def _users(self):
        query = self._scoped(User.query, User.yacht_id, User.id).order_by(
            User.first_name.asc(), User.last_name.asc(), User.id.asc()
        )

        def serialize(rows):
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            return [
                {
                    "id": row.id,
                    "first_name": row.first_name,
                    "last_name": row.last_name,
                    "email": row.email,
                    "phone": row.phone,
                    "role": row.role,
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id),
                    "is_active": row.is_active_user,
                    "last_sign_in_at": _ts(row.last_sign_in_at),
                }
                for row in rows
            ]

        return query, serialize

    def invoices(self, page=None, per_page=None):
        return self.load("invoices", page, per_page)

    def _invoices(self):
        query = self._scoped(Invoice.query, Invoice.yacht_id).order_by(Invoice.created_at.desc(), Invoice.id.desc())

        def serialize(rows):
            yachts = self.yacht_names.load_many(row.yacht_id for row in rows)
            repairs = DataLoader(
                lambda ids: {
                    repair.id: repair.title
                    for repair in RepairRequest.query.filter(RepairRequest.id.in_(ids)).all()
                }
            ).load_many(row.repair_request_id for row in rows)
            return [
                {
                    "id": row.id,
                    "invoice_number": row.invoice_number,
                    "repair_request_id": row.repair_request_id,
                    "repair_title": repairs.get(row.repair_request_id),
                    "yacht_id": row.yacht_id,
                    "yacht_name": yachts.get(row.yacht_id),
                    "invoice_amount": _money(row.invoice_amount),
                    "payment_status": row.payment_status,
                    "paid_at": _ts(row.paid_at),
                    "payment_link_url": row.payment_link_url,
                    "payment_email_sent_at": _ts(row.payment_email_sent_at),
                    "payment_email_delivered_at": _ts(row.payment_email_delivered_at),
                    "payment_email_opened_at": _ts(row.payment_email_opened_at),
                    "payment_email_clicked_at": _ts(row.payment_email_clicked_at),
                    "email_open_count": row.email_open_count,
                    "email_click_count": row.email_click_count,
                }
                for row in rows
            ]

        return query, serialize

    def documents(self, yacht_id=None, page=None, per_page=None):
        return self.load("documents", page, per_page, yacht_id=yacht_id)

    def _documents(self, yacht_id=None):
        query = self._scoped(YachtDocument.query, YachtDocument.yacht_id)
        query = self._yacht_filter(query, YachtDocument.yacht_id, yacht_id).order_by(
            YachtDocument.created_at.desc(), YachtDocument.id.desc()
        )

        def serialize(rows):
            users = self.user_names.load_many(row.uploaded_by for row in rows)
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "document_name": row.document_name,
                    "file_url": row.file_url,
                    "file_size": row.file_size,
                    "content_type": row.content_type,
                    "notes": row.notes,
                    "uploaded_by_name": users.get(row.uploaded_by),
                    "created_at": _ts(row.created_at),
                }
                for row in rows
            ]

        return query, serialize

    def budgets(self, yacht_id=None, page=None, per_page=None):
        return self.load("budgets", page, per_page, yacht_id=yacht_id)

    def _budgets(self, yacht_id=None):
        query = self._scoped(YachtBudget.query, YachtBudget.yacht_id)
        query = self._yacht_filter(query, YachtBudget.yacht_id, yacht_id).order_by(
            YachtBudget.budget_year.desc(), YachtBudget.category.asc(), YachtBudget.id.asc()
        )

        def serialize(rows):
            return [
                {
                    "id": row.id,
                    "yacht_id": row.yacht_id,
                    "budget_year": row.budget_year,
                    "category": row.category,
                    "budgeted_amount": _money(row.budgeted_amount),
                    "spent_amount": _money(row.spent_amount),
                    "notes": row.notes,
                }
                for row in rows
            ]

        return query, serialize

    # -- calendar -------------------------------------------------------

    def calendar_items(self, first_day, last_day):
        """Bookings starting or ending within the range, plus appointments in it."""
        tz = ZoneInfo(current_app.config["APP_TIMEZONE"])
        # One day of padding on each side absorbs the local/UTC offset.
        range_start = datetime.combine(first_day - timedelta(days=1), time.min, tzinfo=tz).astimezone(timezone.utc)
        range_end = datetime.combine(last_day + timedelta(days=2), time.min, tzinfo=tz).astimezone(timezone.utc)

        bookings = (
            self._scoped(YachtBooking.query, YachtBooking.yacht_id)
            .filter(
                or_(
                    and_(YachtBooking.start_date >= range_start, YachtBooking.start_date < range_end),
                    and_(YachtBooking.end_date >= range_start, YachtBooking.end_date < range_end),
                )
            )
            .order_by(YachtBooking.start_date.asc(), YachtBooking.id.asc())
            .all()
        )
        appointments = (
            self._scoped(Appointment.query, Appointment.yacht_id)
            .filter(Appointment.appointment_date >= first_day, Appointment.appointment_date <= last_day)
            .order_by(Appointment.appointment_date.asc(), Appointment.id.asc())
            .all()
        )

        yachts = self.yacht_names.load_many(row.yacht_id for row in bookings)
        users = self.user_names.load_many(row.user_id for row in bookings)
        items = []
        for booking in bookings:
            label = users.get(booking.user_id) or booking.owner_name or ""
            title = f"{yachts.get(booking.yacht_id) or ''} {label}".strip()
            items.append(CalendarItem.from_booking(booking, tz, title=title))
        items.extend(CalendarItem.from_appointment(appointment) for appointment in appointments)
        return items


class DashboardState:
    """Last good result per collection for one session context.

    A failed reload logs and keeps the previous list. A reload that started
    under a context that has since been replaced is discarded on arrival.
    """

    WATCHED_TABLES = {
        "yacht_invoices": "invoices",
        "staff_messages": "staff_messages",
    }

    def __init__(self, ctx, loader_factory=FleetLoader):
        self._lock = threading.Lock()
        self._ctx = ctx
        self._token = 0
        self._loader_factory = loader_factory
        self._dirty = set()
        self._unsubscribers = []
        self.collections = {}

    @property
    def ctx(self):
        return self._ctx

    @property
    def token(self):
        return self._token

    def set_context(self, ctx):
        with self._lock:
            if ctx == self._ctx:
                return False
            self._ctx = ctx
            self._token += 1
            self.collections.clear()
            self._dirty.clear()
            return True

    def reload(self, key, **filters):
        with self._lock:
            token = self._token
            ctx = self._ctx
        try:
            rows = self._loader_factory(ctx).load(key, **filters)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Reload of %s failed; keeping %d previously loaded rows: %s",
                key,
                len(self.collections.get(key, [])),
                exc,
            )
            return self.collections.get(key, [])

        with self._lock:
            if token != self._token:
                current_app.logger.info("Discarding %s result loaded for a superseded scope", key)
                return self.collections.get(key, [])
            self.collections[key] = rows
            self._dirty.discard(key)
        return rows

    def reload_all(self):
        for key in FleetLoader.COLLECTIONS:
            self.reload(key)
        return dict(self.collections)

    def invalidate(self, key):
        with self._lock:
            self._dirty.add(key)

    def refresh_dirty(self):
        with self._lock:
            pending = sorted(self._dirty)
        return {key: self.reload(key) for key in pending}

    def subscribe(self, feed):
        for table, key in self.WATCHED_TABLES.items():
            self._unsubscribers.append(feed.subscribe(table, lambda _table, key=key: self.invalidate(key)))

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class DashboardRegistry:
    """Per-user dashboard states held by this process, most recent first."""

    def __init__(self, max_entries=256):
        self._lock = threading.Lock()
        self._states = OrderedDict()
        self.max_entries = max_entries

    def for_context(self, ctx, feed=None):
        with self._lock:
            state = self._states.get(ctx.user_id)
            if state is None:
                state = DashboardState(ctx)
                if feed is not None:
                    state.subscribe(feed)
                self._states[ctx.user_id] = state
            else:
                state.set_context(ctx)
                self._states.move_to_end(ctx.user_id)
            while len(self._states) > self.max_entries:
                _, evicted = self._states.popitem(last=False)
                evicted.close()
            return state

    def discard(self, user_id):
        with self._lock:
            state = self._states.pop(user_id, None)
        if state is not None:
            state.close()
