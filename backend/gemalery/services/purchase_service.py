# Overview: Service-layer operations for suppliers and purchase orders; owns goods receipt.

"""
Purchase Service

A purchase order is built up as a draft and received exactly once.

RECEIVING (authoritative):
- Every item's variant is locked and updated in one transaction; if any
  item fails, nothing is written and the order stays draft.
- Per item, in item order:
    new_stock = old_stock + qty
    new_cogs  = (old_stock * old_cogs + qty * landed) / new_stock
  rounded half-up to four places. When new_stock is zero the landed cost
  is taken as is.
- One StockMovement(IN) per item, ref_table='purchase_order'.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import ProductVariant, PurchaseItem, PurchaseOrder, StockMovement, Supplier
from ..models.inventory import MOVEMENT_IN, PO_STATUS_DRAFT, PO_STATUS_RECEIVED, REF_PURCHASE_ORDER
from ..schemas import PurchaseItemCommand, PurchaseOrderCommand
from ..validation import ConflictError, NotFoundError, ValidationError
from gemalery.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


COGS_QUANTUM = Decimal("0.0001")

SUPPLIER_MUTABLE_FIELDS = {"name", "phone", "email", "notes"}


def weighted_average_cost(old_stock: int, old_cogs: Decimal, qty: int, landed: Decimal) -> Decimal:
    """
    Running average unit cost after receiving qty units at landed.

    >>> weighted_average_cost(10, Decimal("100"), 10, Decimal("200"))
    Decimal('150.0000')
    """
    new_stock = old_stock + qty
    if new_stock == 0:
        return Decimal(landed).quantize(COGS_QUANTUM, rounding=ROUND_HALF_UP)
    total = Decimal(old_stock) * Decimal(old_cogs) + Decimal(qty) * Decimal(landed)
    return (total / Decimal(new_stock)).quantize(COGS_QUANTUM, rounding=ROUND_HALF_UP)


# =============================================================================
# SUPPLIERS
# =============================================================================

def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("supplier not found")
    return supplier


def create_supplier(patch: dict) -> Supplier:
    supplier = Supplier(**{k: v for k, v in patch.items() if k in SUPPLIER_MUTABLE_FIELDS})
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    supplier = get_supplier(supplier_id)
    in_use = db.session.query(PurchaseOrder.id).filter_by(supplier_id=supplier.id).first()
    if in_use is not None:
        raise ConflictError("Supplier has purchase orders")
    db.session.delete(supplier)
    db.session.commit()


# =============================================================================
# PURCHASE ORDERS
# =============================================================================

def list_purchase_orders(*, status: str | None = None) -> list[PurchaseOrder]:
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("purchase order not found")
    return po


def create_purchase_order(command: PurchaseOrderCommand) -> PurchaseOrder:
    get_supplier(command.supplier_id)
    po = PurchaseOrder(supplier_id=command.supplier_id, status=PO_STATUS_DRAFT, notes=command.notes)
    db.session.add(po)
    db.session.commit()
    return po


def add_item(po_id: int, command: PurchaseItemCommand) -> PurchaseItem:
    """Append a line to a draft purchase order; landed cost is fixed here."""
    def _op():
        po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if po is None:
            raise NotFoundError("purchase order not found")
        if po.status != PO_STATUS_DRAFT:
            raise ConflictError("Purchase order already received")
        if db.session.get(ProductVariant, command.variant_id) is None:
            raise NotFoundError("variant not found")

        item = PurchaseItem(
            purchase_order_id=po.id,
            product_variant_id=command.variant_id,
            qty=command.qty,
            unit_cost=command.unit_cost,
            operational_cost_unit=command.operational_cost_unit,
            landed_cost_unit=command.landed_cost_unit,
        )
        db.session.add(item)
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_item(po_id: int, item_id: int) -> None:
    def _op():
        po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if po is None:
            raise NotFoundError("purchase order not found")
        if po.status != PO_STATUS_DRAFT:
            raise ConflictError("Purchase order already received")
        item = db.session.query(PurchaseItem).filter_by(id=item_id, purchase_order_id=po.id).first()
        if item is None:
            raise NotFoundError("purchase item not found")
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)


def receive_purchase_order(po_id: int) -> PurchaseOrder:
    """
    Receive every item of a draft purchase order.

    Raises:
        ValidationError: the order has no items
        NotFoundError: unknown purchase order, or an item's variant is gone
        ConflictError: the order was already received
    """
    def _op():
        po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if po is None:
            raise NotFoundError("purchase order not found")
        if po.status == PO_STATUS_RECEIVED:
            raise ConflictError("Purchase order already received")
        if not po.items:
            raise ValidationError("purchase order has no items")

        for item in po.items:
            variant = lock_for_update(
                db.session.query(ProductVariant).filter_by(id=item.product_variant_id)
            ).first()
            if variant is None:
                raise NotFoundError(f"variant {item.product_variant_id} not found")

            landed = Decimal(item.landed_cost_unit)
            variant.cogs_current = weighted_average_cost(
                variant.stock_on_hand, Decimal(variant.cogs_current), item.qty, landed
            )
            variant.stock_on_hand = variant.stock_on_hand + item.qty

            db.session.add(StockMovement(
                product_variant_id=variant.id,
                type=MOVEMENT_IN,
                quantity=item.qty,
                unit_cost_applied=landed,
                ref_table=REF_PURCHASE_ORDER,
                ref_id=po.id,
            ))

        po.status = PO_STATUS_RECEIVED
        po.received_at = utcnow()
        db.session.commit()
        current_app.logger.info("Purchase order %s received (%d item(s))", po.id, len(po.items))
        return po

    return run_with_retry(_op)
