from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import event as orm_event
from sqlalchemy.orm import Session

from yachtdesk.extensions import db
from yachtdesk.models import OutboxEvent, OwnerChatMessage, YachtHistoryLog
from yachtdesk.services.functions_client import FunctionsClient
from yachtdesk.services.notification_service import NotificationService

KINDS = ("notification", "chat_message", "history_log", "email")

# Events added to a session since its last commit or rollback.
_RECORDED_KEY = "outbox_recorded"


@orm_event.listens_for(Session, "after_commit")
@orm_event.listens_for(Session, "after_soft_rollback")
def _forget_recorded(session, *_args):
    session.info.pop(_RECORDED_KEY, None)


class OutboxService:
    """Side effects recorded next to a primary write and delivered afterwards.

    ``record`` only adds the event to the current session, so it commits or
    rolls back together with the write that caused it. ``commit_and_drain``
    delivers the events of the transaction it commits; anything left pending
    is picked up by ``drain`` (``flask drain-outbox``), which retries until
    ``OUTBOX_MAX_ATTEMPTS`` and then marks the event ``failed``. An event is
    claimed (``pending`` -> ``processing``) before delivery so two drains
    never send it twice.
    """

    @staticmethod
    def record(kind, **payload):
        if kind not in KINDS:
            raise ValueError(f"Unknown outbox kind: {kind}")
        event = OutboxEvent(kind=kind, payload=payload, status="pending", attempts=0)
        db.session.add(event)
        db.session.info.setdefault(_RECORDED_KEY, []).append(event)
        return event

    @staticmethod
    def notify(notification_type, message, yacht_id=None, user_id=None, reference_id=None):
        return OutboxService.record(
            "notification",
            notification_type=notification_type,
            message=message,
            yacht_id=yacht_id,
            user_id=user_id,
            reference_id=reference_id,
        )

    @staticmethod
    def log_history(yacht_id, action, description, reference_type=None, reference_id=None, actor=None):
        return OutboxService.record(
            "history_log",
            yacht_id=yacht_id,
            action=action,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            created_by=actor.id if actor else None,
            created_by_name=actor.full_name if actor else None,
        )

    @staticmethod
    def post_chat(yacht_id, message, user_id=None):
        return OutboxService.record("chat_message", yacht_id=yacht_id, user_id=user_id, message=message)

    @staticmethod
    def send_email(function_name, secret_fields=(), **payload):
        """Queue a function call; ``secret_fields`` are dropped from the stored body once the event settles."""
        return OutboxService.record(
            "email", function=function_name, body=payload, secret_fields=list(secret_fields)
        )

    @staticmethod
    def _deliver(event):
        payload = event.payload or {}
        if event.kind == "notification":
            NotificationService.push(
                payload["notification_type"],
                payload["message"],
                yacht_id=payload.get("yacht_id"),
                user_id=payload.get("user_id"),
                reference_id=payload.get("reference_id"),
            )
        elif event.kind == "chat_message":
            db.session.add(
                OwnerChatMessage(
                    yacht_id=payload["yacht_id"],
                    user_id=payload.get("user_id"),
                    message=payload["message"],
                )
            )
        elif event.kind == "history_log":
            db.session.add(YachtHistoryLog(**payload))
        elif event.kind == "email":
            FunctionsClient().invoke(payload["function"], payload.get("body") or {})
        else:
            raise ValueError(f"Unknown outbox kind: {event.kind}")

    @staticmethod
    def _scrub(event):
        payload = dict(event.payload or {})
        secret_fields = payload.pop("secret_fields", None)
        if not secret_fields:
            return
        payload["body"] = {key: value for key, value in (payload.get("body") or {}).items() if key not in secret_fields}
        event.payload = payload

    @staticmethod
    def _claim(event_id):
        claimed = (
            db.session.query(OutboxEvent)
            .filter(OutboxEvent.id == event_id, OutboxEvent.status == "pending")
            .update({"status": "processing", "updated_at": datetime.now(timezone.utc)}, synchronize_session=False)
        )
        db.session.commit()
        return claimed == 1

    @staticmethod
    def _process(event_id, max_attempts, summary):
        if not OutboxService._claim(event_id):
            return
        event = db.session.get(OutboxEvent, event_id)
        try:
            OutboxService._deliver(event)
            event.attempts = (event.attempts or 0) + 1
            event.status = "delivered"
            event.last_error = None
            event.processed_at = datetime.now(timezone.utc)
            OutboxService._scrub(event)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            event = db.session.get(OutboxEvent, event_id)
            event.attempts = (event.attempts or 0) + 1
            event.last_error = str(exc)[:1000]
            if event.attempts >= max_attempts:
                event.status = "failed"
                OutboxService._scrub(event)
                summary["failed"] += 1
                current_app.logger.error(
                    "Outbox event %s (%s) failed permanently after %s attempts: %s",
                    event.id,
                    event.kind,
                    event.attempts,
                    exc,
                )
            else:
                event.status = "pending"
                summary["retrying"] += 1
                current_app.logger.warning(
                    "Outbox event %s (%s) attempt %s failed: %s", event.id, event.kind, event.attempts, exc
                )
            db.session.commit()
        else:
            summary["delivered"] += 1

    @staticmethod
    def _deliver_ids(event_ids):
        max_attempts = current_app.config.get("OUTBOX_MAX_ATTEMPTS", 5)
        summary = {"delivered": 0, "retrying": 0, "failed": 0}
        for event_id in event_ids:
            OutboxService._process(event_id, max_attempts, summary)
        return summary

    @staticmethod
    def release_stale_claims():
        """Return events stuck in ``processing`` (a worker died mid-delivery) to ``pending``."""
        timeout = current_app.config.get("OUTBOX_CLAIM_TIMEOUT_MINUTES", 15)
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=timeout)
        released = (
            db.session.query(OutboxEvent)
            .filter(OutboxEvent.status == "processing", OutboxEvent.updated_at < cutoff)
            .update({"status": "pending"}, synchronize_session=False)
        )
        db.session.commit()
        if released:
            current_app.logger.warning("Released %s stale outbox claims", released)
        return released

    @staticmethod
    def drain(limit=100):
        OutboxService.release_stale_claims()
        event_ids = [
            row.id
            for row in db.session.query(OutboxEvent.id)
            .filter(OutboxEvent.status == "pending")
            .order_by(OutboxEvent.id.asc())
            .limit(limit)
            .all()
        ]
        return OutboxService._deliver_ids(event_ids)

    @staticmethod
    def pending_count():
        return OutboxEvent.query.filter_by(status="pending").count()

    @staticmethod
    def commit_and_drain():
        """Commit the current transaction and deliver only the events it recorded."""
        db.session.flush()
        recorded = db.session.info.get(_RECORDED_KEY, [])
        event_ids = [event.id for event in recorded if event.id is not None]
        db.session.commit()
        return OutboxService._deliver_ids(event_ids)
