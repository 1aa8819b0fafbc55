# Overview: Flask API routes for suppliers and purchase orders; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..decorators import require_auth, require_role
from ..models import Supplier
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..schemas import parse_purchase_item, parse_purchase_order
from ..services import purchase_service
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    validate_payload,
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "notes"},
    required_on_create={"name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")
purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchase-orders")


# =============================================================================
# SUPPLIERS
# =============================================================================

@suppliers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_suppliers_route():
    return {"items": [s.to_dict() for s in purchase_service.list_suppliers()]}


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_supplier_route(supplier_id: int):
    try:
        return purchase_service.get_supplier(supplier_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@suppliers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return purchase_service.create_supplier(patch).to_dict(), 201


@suppliers_bp.patch("/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        supplier = purchase_service.update_supplier(supplier_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return supplier.to_dict()


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_supplier_route(supplier_id: int):
    try:
        purchase_service.delete_supplier(supplier_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return "", 204


# =============================================================================
# PURCHASE ORDERS
# =============================================================================

@purchases_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_purchase_orders_route():
    pos = purchase_service.list_purchase_orders(status=request.args.get("status"))
    return {"items": [po.to_dict() for po in pos], "count": len(pos)}


@purchases_bp.get("/<int:po_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_purchase_order_route(po_id: int):
    try:
        return purchase_service.get_purchase_order(po_id).to_dict(include_items=True)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@purchases_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_purchase_order_route():
    try:
        command = parse_purchase_order(request.get_json(silent=True))
        po = purchase_service.create_purchase_order(command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return po.to_dict(include_items=True), 201


@purchases_bp.post("/<int:po_id>/items")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def add_purchase_item_route(po_id: int):
    try:
        command = parse_purchase_item(request.get_json(silent=True))
        item = purchase_service.add_item(po_id, command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return item.to_dict(), 201


@purchases_bp.delete("/<int:po_id>/items/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def remove_purchase_item_route(po_id: int, item_id: int):
    try:
        purchase_service.remove_item(po_id, item_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return "", 204


@purchases_bp.post("/<int:po_id>/receive")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def receive_purchase_order_route(po_id: int):
    """
    Receive all items: stock up, weighted-average cost recomputed, one IN
    movement per item. All or nothing.
    """
    try:
        po = purchase_service.receive_purchase_order(po_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        current_app.logger.warning("Receiving purchase order %s failed: %s", po_id, e)
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Receiving purchase order %s failed", po_id)
        return {"error": "Internal server error"}, 500
    return po.to_dict(include_items=True)
