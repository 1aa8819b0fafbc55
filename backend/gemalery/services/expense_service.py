# Overview: Service-layer operations for manual income and expense entries.

from __future__ import annotations

from ..extensions import db
from ..models import Expense
from ..validation import NotFoundError
from gemalery.time_utils import parse_iso_datetime

EXPENSE_MUTABLE_FIELDS = {"type", "category", "amount", "date", "notes"}


def apply_expense_patch(expense: Expense, patch: dict) -> None:
    for k, v in patch.items():
        if k not in EXPENSE_MUTABLE_FIELDS:
            continue
        setattr(expense, k, v)


def list_expenses(*, expense_type: str | None = None, start: str | None = None, end: str | None = None) -> list[Expense]:
    query = db.session.query(Expense)
    if expense_type:
        query = query.filter(Expense.type == expense_type)
    start_dt = parse_iso_datetime(start) if start else None
    end_dt = parse_iso_datetime(end) if end else None
    if start_dt:
        query = query.filter(Expense.date >= start_dt)
    if end_dt:
        query = query.filter(Expense.date <= end_dt)
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("expense not found")
    return expense


def create_expense(patch: dict) -> Expense:
    expense = Expense()
    apply_expense_patch(expense, patch)
    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(expense_id: int, patch: dict) -> Expense:
    expense = get_expense(expense_id)
    apply_expense_patch(expense, patch)
    db.session.commit()
    return expense


def delete_expense(expense_id: int) -> None:
    expense = get_expense(expense_id)
    db.session.delete(expense)
    db.session.commit()
