from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from gemalery.time_utils import to_utc_z, utcnow
from .catalog import _money


MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUST)

REF_ORDER = "order"
REF_PURCHASE_ORDER = "purchase_order"
REF_MANUAL = "manual"


class StockMovement(db.Model):
    """
    Append-only audit record of a stock change.

    quantity is always the magnitude of the change for IN/OUT; for ADJUST
    it is the absolute on-hand count that was set. The paired update to
    ProductVariant.stock_on_hand happens in the same DB transaction.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_variant_created", "product_variant_id", "created_at"),
        db.Index("ix_movements_ref", "ref_table", "ref_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_applied = db.Column(db.Numeric(16, 4), nullable=True)

    # Originating entity: order, purchase_order, or manual (ref_id NULL)
    ref_table = db.Column(db.String(32), nullable=False, default=REF_MANUAL)
    ref_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    variant = db.relationship("ProductVariant", backref=db.backref("movements", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} type={self.type} qty={self.quantity} ref={self.ref_table}:{self.ref_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_variant_id": self.product_variant_id,
            "type": self.type,
            "quantity": self.quantity,
            "unit_cost_applied": _money(self.unit_cost_applied),
            "ref_table": self.ref_table,
            "ref_id": self.ref_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


PO_STATUS_DRAFT = "draft"
PO_STATUS_RECEIVED = "received"


class PurchaseOrder(db.Model):
    """
    Restocking document with a supplier.

    LIFECYCLE: draft -> received. Receiving is one-way: it posts IN
    movements and recomputes each variant's weighted-average cost, and
    nothing in this system reverses it.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.Index("ix_purchase_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_DRAFT)
    notes = db.Column(db.Text, nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} status={self.status}>"

    def to_dict(self, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "status": self.status,
            "notes": self.notes,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(14, 2), nullable=False)
    operational_cost_unit = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    # unit_cost + operational_cost_unit
    landed_cost_unit = db.Column(db.Numeric(14, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_variant_id": self.product_variant_id,
            "qty": self.qty,
            "unit_cost": _money(self.unit_cost),
            "operational_cost_unit": _money(self.operational_cost_unit),
            "landed_cost_unit": _money(self.landed_cost_unit),
        }
