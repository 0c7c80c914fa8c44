from yachtdesk.extensions import db
from yachtdesk.models.base import PKType, TimestampMixin


class YachtDocument(TimestampMixin, db.Model):
    __tablename__ = "yacht_documents"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=False, index=True)
    uploaded_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    document_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_url = db.Column(db.String(500), nullable=False)
    file_size = db.Column(db.Integer, nullable=True)
    content_type = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)


class YachtBudget(TimestampMixin, db.Model):
    __tablename__ = "yacht_budgets"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    yacht_id = db.Column(PKType, db.ForeignKey("yachts.id", ondelete="CASCADE"), nullable=False, index=True)
    budget_year = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(80), nullable=False)
    budgeted_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    spent_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("yacht_id", "budget_year", "category", name="uq_budget_yacht_year_category"),
    )
