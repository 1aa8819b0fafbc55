# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

# backend/gemalery/routes/orders.py
"""
Order administration routes (admin/staff).

- GET    /api/orders                         list (status, channel, limit)
- GET    /api/orders/<id>                    order with items, payments, shipments
- POST   /api/orders/import                  marketplace order import
- POST   /api/orders/<id>/status             status transition
- POST   /api/orders/<id>/payments           record a payment
- POST   /api/orders/<id>/fulfill            ship (commits stock for web orders)
- GET    /api/orders/<id>/shipments
- GET    /api/orders/<id>/tracking           latest shipment event
- POST   /api/orders/shipments/<id>/events   append a carrier event
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..schemas import parse_fulfill, parse_marketplace_order, parse_payment, parse_status
from ..services import order_service
from ..validation import ConflictError, InternalError, NotFoundError, ValidationError

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

MAX_LIST_LIMIT = 500


def _order_detail(order) -> dict:
    data = order.to_dict()
    data["payments"] = [p.to_dict() for p in order.payments]
    data["shipments"] = [s.to_dict(include_events=True) for s in order.shipments]
    return data


@orders_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_orders_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, MAX_LIST_LIMIT))
    orders = order_service.list_orders(
        status=request.args.get("status"),
        channel=request.args.get("channel"),
        limit=limit,
    )
    return {"items": [o.to_dict(include_items=False) for o in orders], "count": len(orders)}


@orders_bp.get("/<int:order_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return _order_detail(order)


@orders_bp.post("/import")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def import_order_route():
    try:
        command = parse_marketplace_order(request.get_json(silent=True), user_id=g.current_user.id)
        order = order_service.import_marketplace_order(command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except InternalError as e:
        current_app.logger.exception("Marketplace import failed")
        return {"error": str(e)}, 500
    except Exception:
        current_app.logger.exception("Marketplace import failed")
        return {"error": "Internal server error"}, 500

    return _order_detail(order), 201


@orders_bp.post("/<int:order_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_status_route(order_id: int):
    try:
        status = parse_status(request.get_json(silent=True))
        order = order_service.update_status(order_id, status)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return order.to_dict()


@orders_bp.post("/<int:order_id>/payments")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def record_payment_route(order_id: int):
    try:
        command = parse_payment(request.get_json(silent=True))
        payment = order_service.record_payment(order_id, command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return payment.to_dict(), 201


@orders_bp.post("/<int:order_id>/fulfill")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def fulfill_order_route(order_id: int):
    try:
        command = parse_fulfill(request.get_json(silent=True))
        shipment = order_service.fulfill_order(order_id, command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Fulfilling order %s failed", order_id)
        return {"error": "Internal server error"}, 500
    return shipment.to_dict(), 201


@orders_bp.get("/<int:order_id>/shipments")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_shipments_route(order_id: int):
    try:
        shipments = order_service.list_shipments(order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [s.to_dict(include_events=True) for s in shipments]}


@orders_bp.get("/<int:order_id>/tracking")
@require_auth
def tracking_route(order_id: int):
    """Staff see any order; customers only their own."""
    user = g.current_user
    try:
        if user.role not in (ROLE_ADMIN, ROLE_STAFF):
            order = order_service.get_order(order_id)
            if user.customer is None or order.customer_id != user.customer.id:
                return {"error": "order not found"}, 404
        return order_service.latest_tracking(order_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@orders_bp.post("/shipments/<int:shipment_id>/events")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def add_shipment_event_route(shipment_id: int):
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not isinstance(status, str) or not status.strip():
        return {"error": "status is required"}, 400
    try:
        event = order_service.record_shipment_event(
            shipment_id,
            status=status.strip(),
            description=payload.get("description"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return event.to_dict(), 201
