from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class YachtHistoryLog(TimestampMixin, db.Model):
    __tablename__ = "yacht_history_logs"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(PKType, nullable=True)
    created_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_name = db.Column(db.String(160), nullable=True)
