# Overview: Flask API routes for customers and the address book; parses input and returns JSON responses.

# backend/gemalery/routes/customers.py
"""
Customer routes.

Staff may manage any customer. A customer-role user may only reach the
address book of its own Customer record.
"""

from functools import wraps

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models import Customer
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..schemas import parse_address_command, parse_address_patch
from ..services import customer_service
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def require_customer_access(f):
    """Must be applied AFTER @require_auth."""
    @wraps(f)
    def decorated_function(customer_id, *args, **kwargs):
        user = g.current_user
        if user.role not in (ROLE_ADMIN, ROLE_STAFF):
            if user.customer is None or user.customer.id != customer_id:
                return jsonify({"error": "Forbidden"}), 403
        return f(customer_id, *args, **kwargs)

    return decorated_function


@customers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_customers_route():
    customers = customer_service.list_customers(q=request.args.get("q"))
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return customer_service.create_customer(patch).to_dict(), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_customer_access
def get_customer_route(customer_id: int):
    try:
        return customer_service.get_customer(customer_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_customer_access
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return customer.to_dict()


@customers_bp.get("/<int:customer_id>/addresses")
@require_auth
@require_customer_access
def list_addresses_route(customer_id: int):
    try:
        addresses = customer_service.list_addresses(customer_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [a.to_dict() for a in addresses]}


@customers_bp.post("/<int:customer_id>/addresses")
@require_auth
@require_customer_access
def create_address_route(customer_id: int):
    try:
        command = parse_address_command(request.get_json(silent=True))
        address = customer_service.create_address(customer_id, command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return address.to_dict(), 201


@customers_bp.patch("/<int:customer_id>/addresses/<int:address_id>")
@require_auth
@require_customer_access
def update_address_route(customer_id: int, address_id: int):
    try:
        patch = parse_address_patch(request.get_json(silent=True))
        address = customer_service.update_address(customer_id, address_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return address.to_dict()


@customers_bp.delete("/<int:customer_id>/addresses/<int:address_id>")
@require_auth
@require_customer_access
def delete_address_route(customer_id: int, address_id: int):
    try:
        customer_service.delete_address(customer_id, address_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return "", 204


@customers_bp.post("/<int:customer_id>/addresses/<int:address_id>/default")
@require_auth
@require_customer_access
def set_default_address_route(customer_id: int, address_id: int):
    try:
        address = customer_service.set_default_address(customer_id, address_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return address.to_dict()
