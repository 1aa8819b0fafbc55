# Overview: Flask API routes for the catalog; categories, products and variants.

# backend/gemalery/routes/catalog.py
"""
Catalog routes.

Reads are public (the storefront lists products). Writes require an admin
or staff session.
"""

from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models import Product, ProductCategory, ProductVariant
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import catalog_service
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_variant,
    to_decimal,
    validate_payload,
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category_id", "is_active"},
    required_on_create={"name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "barcode",
        "price",
        "weight_gram",
        "cogs_current",
        "default_purchase_price",
        "default_operational_cost_unit",
    },
    required_on_create={"sku", "price"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
products_bp = Blueprint("products", __name__, url_prefix="/api/products")
variants_bp = Blueprint("variants", __name__, url_prefix="/api/variants")


# =============================================================================
# CATEGORIES
# =============================================================================

@categories_bp.get("")
def list_categories_route():
    return {"items": catalog_service.list_categories()}


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        return catalog_service.get_category(category_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@categories_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return category.to_dict(), 201


@categories_bp.patch("/<int:category_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=True)
        category = catalog_service.update_category(category_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return category.to_dict()


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return "", 204


@categories_bp.post("/<int:category_id>/components")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def add_component_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    if not name:
        return {"error": "name is required"}, 400
    try:
        amount = to_decimal(payload.get("amount"), "amount")
        if amount < 0:
            raise ValidationError("amount must be >= 0")
        component = catalog_service.add_cost_component(category_id, name=name, amount=amount)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return component.to_dict(), 201


@categories_bp.delete("/<int:category_id>/components/<int:component_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def delete_component_route(category_id: int, component_id: int):
    try:
        catalog_service.delete_cost_component(category_id, component_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return "", 204


# =============================================================================
# PRODUCTS
# =============================================================================

@products_bp.get("")
def list_products_route():
    """
    Query params:
    - category_id: int (optional)
    - active: "1" to hide deactivated products
    """
    category_id = request.args.get("category_id", type=int)
    active_only = request.args.get("active") in {"1", "true"}
    products = catalog_service.list_products(category_id=category_id, active_only=active_only)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return catalog_service.get_product(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        product = catalog_service.create_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict(), 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        product = catalog_service.update_product(product_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return "", 204


@products_bp.post("/<int:product_id>/variants")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_variant_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductVariant, payload=payload, policy=VARIANT_POLICY, partial=False)
        enforce_rules_variant(patch)
        variant = catalog_service.create_variant(product_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return variant.to_dict(), 201


# =============================================================================
# VARIANTS
# =============================================================================

@variants_bp.get("/<int:variant_id>")
def get_variant_route(variant_id: int):
    try:
        return catalog_service.get_variant(variant_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@variants_bp.get("/by-sku/<path:sku>")
def get_variant_by_sku_route(sku: str):
    try:
        return catalog_service.find_variant_by_sku(sku).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@variants_bp.patch("/<int:variant_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def update_variant_route(variant_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductVariant, payload=payload, policy=VARIANT_POLICY, partial=True)
        enforce_rules_variant(patch)
        variant = catalog_service.update_variant(variant_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return variant.to_dict()


@variants_bp.delete("/<int:variant_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_variant_route(variant_id: int):
    try:
        catalog_service.delete_variant(variant_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    return "", 204
