# Overview: Service-layer operations for the catalog; categories, products and variants.

"""
Catalog Service

SKU UNIQUENESS: case-insensitive, enforced by the unique constraint on
ProductVariant.sku_normalized. The pre-check below only produces a nicer
message; the constraint is what closes the race between two writers.

COST SEEDING: a new variant without an explicit cogs_current starts at
default_purchase_price + default_operational_cost_unit, and the
operational cost falls back to the category's component sum.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    CategoryOperationalCostComponent,
    OrderItem,
    Product,
    ProductCategory,
    ProductVariant,
    StockMovement,
)
from ..models.catalog import normalize_sku
from ..validation import ConflictError, NotFoundError, ValidationError

CATEGORY_MUTABLE_FIELDS = {"name", "description"}
PRODUCT_MUTABLE_FIELDS = {"name", "description", "category_id", "is_active"}
# stock_on_hand moves only through stock movements
VARIANT_MUTABLE_FIELDS = {
    "sku",
    "barcode",
    "price",
    "weight_gram",
    "cogs_current",
    "default_purchase_price",
    "default_operational_cost_unit",
}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


def _commit_or_conflict(message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(message) from exc


# =============================================================================
# CATEGORIES
# =============================================================================

def list_categories() -> list[dict]:
    counts = dict(
        db.session.query(Product.category_id, db.func.count(Product.id))
        .group_by(Product.category_id)
        .all()
    )
    categories = db.session.query(ProductCategory).order_by(ProductCategory.name.asc()).all()
    return [c.to_dict(product_count=counts.get(c.id, 0)) for c in categories]


def get_category(category_id: int) -> ProductCategory:
    category = db.session.get(ProductCategory, category_id)
    if category is None:
        raise NotFoundError("category not found")
    return category


def create_category(patch: dict) -> ProductCategory:
    category = ProductCategory()
    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    db.session.add(category)
    _commit_or_conflict("Category name already exists")
    return category


def update_category(category_id: int, patch: dict) -> ProductCategory:
    category = get_category(category_id)
    _apply_patch(category, patch, CATEGORY_MUTABLE_FIELDS)
    _commit_or_conflict("Category name already exists")
    return category


def delete_category(category_id: int) -> None:
    category = get_category(category_id)
    in_use = db.session.query(Product.id).filter_by(category_id=category.id).first()
    if in_use is not None:
        raise ConflictError("Category still has products")
    db.session.delete(category)
    db.session.commit()


def add_cost_component(category_id: int, *, name: str, amount: Decimal) -> CategoryOperationalCostComponent:
    category = get_category(category_id)
    component = CategoryOperationalCostComponent(category_id=category.id, name=name, amount=amount)
    db.session.add(component)
    db.session.commit()
    return component


def delete_cost_component(category_id: int, component_id: int) -> None:
    component = (
        db.session.query(CategoryOperationalCostComponent)
        .filter_by(id=component_id, category_id=category_id)
        .first()
    )
    if component is None:
        raise NotFoundError("cost component not found")
    db.session.delete(component)
    db.session.commit()


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(*, category_id: int | None = None, active_only: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("product not found")
    return product


def create_product(patch: dict) -> Product:
    if patch.get("category_id") is not None:
        get_category(patch["category_id"])
    product = Product()
    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product(product_id)
    if patch.get("category_id") is not None:
        get_category(patch["category_id"])
    _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """
    Deactivate rather than delete when the product already has sales or
    movements, so order history keeps pointing at real rows.
    """
    product = get_product(product_id)

    variant_ids = [v.id for v in product.variants]
    referenced = False
    if variant_ids:
        referenced = (
            db.session.query(OrderItem.id).filter(OrderItem.product_variant_id.in_(variant_ids)).first() is not None
            or db.session.query(StockMovement.id).filter(StockMovement.product_variant_id.in_(variant_ids)).first() is not None
        )
    if referenced:
        product.is_active = False
    else:
        db.session.delete(product)
    db.session.commit()


# =============================================================================
# VARIANTS
# =============================================================================

def _ensure_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(ProductVariant.id).filter(ProductVariant.sku_normalized == normalize_sku(sku))
    if exclude_id is not None:
        query = query.filter(ProductVariant.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU already exists: {sku}")


def get_variant(variant_id: int) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise NotFoundError("variant not found")
    return variant


def find_variant_by_sku(sku: str) -> ProductVariant:
    variant = db.session.query(ProductVariant).filter_by(sku_normalized=normalize_sku(sku)).first()
    if variant is None:
        raise NotFoundError("variant not found")
    return variant


def create_variant(product_id: int, patch: dict) -> ProductVariant:
    product = get_product(product_id)
    sku = (patch.get("sku") or "").strip()
    if not sku:
        raise ValidationError("sku is required")
    _ensure_sku_free(sku)

    variant = ProductVariant(product_id=product.id)
    _apply_patch(variant, patch, VARIANT_MUTABLE_FIELDS)
    variant.sku = sku
    variant.sku_normalized = normalize_sku(sku)

    if patch.get("default_operational_cost_unit") is None and product.category is not None:
        variant.default_operational_cost_unit = product.category.operational_cost_unit
    if patch.get("cogs_current") is None:
        variant.cogs_current = (
            Decimal(variant.default_purchase_price or 0) + Decimal(variant.default_operational_cost_unit or 0)
        )

    db.session.add(variant)
    _commit_or_conflict(f"SKU already exists: {sku}")
    return variant


def update_variant(variant_id: int, patch: dict) -> ProductVariant:
    variant = get_variant(variant_id)
    if "sku" in patch:
        sku = patch["sku"].strip()
        _ensure_sku_free(sku, exclude_id=variant.id)
        patch = {**patch, "sku": sku}
        variant.sku_normalized = normalize_sku(sku)
    _apply_patch(variant, patch, VARIANT_MUTABLE_FIELDS)
    _commit_or_conflict(f"SKU already exists: {patch.get('sku', variant.sku)}")
    return variant


def delete_variant(variant_id: int) -> None:
    variant = get_variant(variant_id)
    if (
        db.session.query(OrderItem.id).filter_by(product_variant_id=variant.id).first() is not None
        or db.session.query(StockMovement.id).filter_by(product_variant_id=variant.id).first() is not None
    ):
        raise ConflictError("Variant has order or stock history")
    db.session.delete(variant)
    db.session.commit()
