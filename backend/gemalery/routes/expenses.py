# Overview: Flask API routes for expenses operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models import Expense
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..models.finance import EXPENSE_TYPES
from ..services import expense_service
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_non_negative,
    validate_payload,
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"type", "category", "amount", "date", "notes"},
    required_on_create={"category", "amount", "date"},
)

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


def _validate(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=partial)
    if "type" in patch:
        patch["type"] = (patch["type"] or "").upper()
        if patch["type"] not in EXPENSE_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(EXPENSE_TYPES)}")
    enforce_non_negative(patch, "amount")
    return patch


@expenses_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_expenses_route():
    """
    Query params:
    - type: INCOME | EXPENSE (optional)
    - start, end: ISO-8601 (optional, inclusive)
    """
    try:
        expenses = expense_service.list_expenses(
            expense_type=request.args.get("type"),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ValueError:
        return {"error": "start/end must be ISO-8601 datetimes"}, 400
    return {"items": [e.to_dict() for e in expenses], "count": len(expenses)}


@expenses_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_expense_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validate(payload, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return expense_service.create_expense(patch).to_dict(), 201


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_expense_route(expense_id: int):
    try:
        return expense_service.get_expense(expense_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@expenses_bp.patch("/<int:expense_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = _validate(payload, partial=True)
        expense = expense_service.update_expense(expense_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return expense.to_dict()


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return "", 204
