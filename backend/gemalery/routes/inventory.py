# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/gemalery/routes/inventory.py
"""
Inventory routes (admin/staff).

Manual movements go through record_movement so every change to
stock_on_hand has a StockMovement row beside it.
"""

from flask import Blueprint, request

from .. import get_settings
from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..schemas import parse_stock_movement
from ..services import inventory_service
from ..validation import ConflictError, NotFoundError, ValidationError

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/movements")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_movement_route():
    """
    Body: {"variant_id", "type": IN|OUT|ADJUST, "quantity", "unit_cost_applied"?, "note"?}

    ADJUST sets the absolute on-hand count; IN/OUT move it by quantity.
    """
    try:
        command = parse_stock_movement(request.get_json(silent=True))
        movement = inventory_service.record_movement(command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    return movement.to_dict(), 201


@inventory_bp.get("/movements")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_movements_route():
    movements = inventory_service.list_movements(
        variant_id=request.args.get("variant_id", type=int),
        ref_table=request.args.get("ref_table"),
        ref_id=request.args.get("ref_id", type=int),
    )
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@inventory_bp.get("/variants/<int:variant_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def stock_summary_route(variant_id: int):
    try:
        return inventory_service.stock_summary(variant_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@inventory_bp.get("/low-stock")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def low_stock_route():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = get_settings().low_stock_threshold
    variants = inventory_service.low_stock(threshold)
    return {"threshold": threshold, "items": [v.to_dict() for v in variants]}
