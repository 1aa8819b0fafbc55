from __future__ import annotations

from ..extensions import db
from gemalery.time_utils import to_utc_z
from .catalog import _money


EXPENSE_TYPE_INCOME = "INCOME"
EXPENSE_TYPE_EXPENSE = "EXPENSE"
EXPENSE_TYPES = (EXPENSE_TYPE_INCOME, EXPENSE_TYPE_EXPENSE)


class Expense(db.Model):
    """
    Manual ledger entry (rent, salaries, ad spend, misc income).

    Only the profit/loss report reads these; they have no link to orders.
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_type_date", "type", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, default=EXPENSE_TYPE_EXPENSE)
    category = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Expense id={self.id} type={self.type} amount={self.amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "amount": _money(self.amount),
            "date": to_utc_z(self.date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
