"""
Table-level change notifications.

SQLAlchemy session events record which tables a flush touched; once the
transaction commits, every handler subscribed to one of those tables is called
with the table name. Handlers only schedule a re-fetch, they never receive row
data.
"""
import threading

from flask import current_app, has_app_context
from sqlalchemy import event
from sqlalchemy.orm import Session

_PENDING_KEY = "yachtdesk_changed_tables"


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._handlers = {}
        self._installed = False

    def subscribe(self, table, handler):
        with self._lock:
            self._handlers.setdefault(table, []).append(handler)

        def unsubscribe():
            with self._lock:
                handlers = self._handlers.get(table, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, table):
        with self._lock:
            return len(self._handlers.get(table, []))

    def publish(self, table):
        with self._lock:
            handlers = list(self._handlers.get(table, []))
        for handler in handlers:
            try:
                handler(table)
            except Exception:
                # A broken subscriber must not fail the commit that triggered it.
                if has_app_context():
                    current_app.logger.exception("Change handler for %s failed", table)

    def install(self, session_cls=Session):
        if self._installed:
            return
        event.listen(session_cls, "after_flush", self._after_flush)
        event.listen(session_cls, "after_commit", self._after_commit)
        event.listen(session_cls, "after_soft_rollback", self._after_rollback)
        self._installed = True

    def uninstall(self, session_cls=Session):
        if not self._installed:
            return
        event.remove(session_cls, "after_flush", self._after_flush)
        event.remove(session_cls, "after_commit", self._after_commit)
        event.remove(session_cls, "after_soft_rollback", self._after_rollback)
        self._installed = False

    @staticmethod
    def _after_flush(session, _flush_context):
        touched = session.info.setdefault(_PENDING_KEY, set())
        for instance in list(session.new) + list(session.dirty) + list(session.deleted):
            table = getattr(instance, "__tablename__", None)
            if table:
                touched.add(table)

    def _after_commit(self, session):
        touched = session.info.pop(_PENDING_KEY, set())
        for table in sorted(touched):
            self.publish(table)

    @staticmethod
    def _after_rollback(session, _previous_transaction):
        session.info.pop(_PENDING_KEY, None)


change_feed = ChangeFeed()
