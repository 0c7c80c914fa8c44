from yachtdesk.extensions import db
from yachtdesk.models.base import JSONType, PKType, TimestampMixin


class OutboxEvent(TimestampMixin, db.Model):
    """A side effect recorded in the same transaction as its primary write."""

    __tablename__ = "outbox_events"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    kind = db.Column(db.String(32), nullable=False, index=True)
    payload = db.Column(JSONType, nullable=False, default=dict)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.Index("ix_outbox_events_status_id", "status", "id"),
    )
