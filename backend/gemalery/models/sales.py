from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from gemalery.time_utils import to_utc_z, utcnow
from .catalog import _money


CHANNEL_WEB = "web"
CHANNEL_TOKOPEDIA = "tokopedia"
CHANNEL_SHOPEE = "shopee"
CHANNEL_TIKTOK = "tiktok"
CHANNEL_OFFLINE = "offline"

CHANNEL_NAMES = {
    CHANNEL_WEB: "Web",
    CHANNEL_TOKOPEDIA: "Tokopedia",
    CHANNEL_SHOPEE: "Shopee",
    CHANNEL_TIKTOK: "TikTok",
    CHANNEL_OFFLINE: "Offline",
}
MARKETPLACE_CHANNELS = (CHANNEL_TOKOPEDIA, CHANNEL_SHOPEE, CHANNEL_TIKTOK)

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_FULFILLED = "fulfilled"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_REFUNDED = "refunded"
ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PAID,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_REFUNDED,
)

# Imported orders always take stock, so they cannot arrive already cancelled or refunded
IMPORTABLE_ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PAID,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_COMPLETED,
)


class Channel(db.Model):
    """Sales venue. Rows are seeded by `flask system init`, one per key."""
    __tablename__ = "channels"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(120), nullable=False)

    def __repr__(self) -> str:
        return f"<Channel id={self.id} key={self.key!r}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "key": self.key, "name": self.name}


class Order(db.Model):
    """
    A committed sale from any channel.

    Totals and shipping_address_snapshot are frozen at creation; status
    is the only field that moves afterwards (plus stock_committed, which
    flips once when a web order's stock is taken at fulfilment).

    stock_committed:
    - POS and marketplace imports decrement stock in the creating transaction
    - web checkout leaves it False until fulfil_order commits the stock
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_created", "created_at"),
        db.Index("ix_orders_channel_created", "channel_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    channel_id = db.Column(db.Integer, db.ForeignKey("channels.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    discount_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    fees_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    shipping_method = db.Column(db.String(64), nullable=True)
    shipping_cost = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0"))
    shipping_address_snapshot = db.Column(db.JSON, nullable=True)

    stock_committed = db.Column(db.Boolean, nullable=False, default=False)
    external_ref = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    channel = db.relationship("Channel")
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} subtotal={self.subtotal}>"

    def to_dict(self, *, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "channel_id": self.channel_id,
            "channel": self.channel.key if self.channel else None,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "status": self.status,
            "subtotal": _money(self.subtotal),
            "discount_total": _money(self.discount_total),
            "fees_total": _money(self.fees_total),
            "shipping_method": self.shipping_method,
            "shipping_cost": _money(self.shipping_cost),
            "shipping_address_snapshot": self.shipping_address_snapshot,
            "stock_committed": self.stock_committed,
            "external_ref": self.external_ref,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    # Snapshots at sale time; later price/cost edits never touch history
    price = db.Column(db.Numeric(14, 2), nullable=False)
    cogs_snapshot = db.Column(db.Numeric(16, 4), nullable=False, default=Decimal("0"))

    variant = db.relationship("ProductVariant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_variant_id": self.product_variant_id,
            "qty": self.qty,
            "price": _money(self.price),
            "cogs_snapshot": _money(self.cogs_snapshot),
        }


class Payment(db.Model):
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    method = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="paid")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount": _money(self.amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class Shipment(db.Model):
    """Carrier hand-off for an order; awb is the carrier's tracking number."""
    __tablename__ = "shipments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    carrier = db.Column(db.String(32), nullable=False, default="JNE")
    service = db.Column(db.String(64), nullable=True)
    awb = db.Column(db.String(64), nullable=True, index=True)
    # What the carrier actually charged us, when known
    actual_cost = db.Column(db.Numeric(14, 2), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", backref=db.backref("shipments", lazy=True, order_by="Shipment.id"))
    events = db.relationship(
        "ShipmentEvent",
        backref="shipment",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ShipmentEvent.event_time",
    )

    def to_dict(self, *, include_events: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "carrier": self.carrier,
            "service": self.service,
            "awb": self.awb,
            "actual_cost": _money(self.actual_cost),
            "created_at": to_utc_z(self.created_at),
        }
        if include_events:
            data["events"] = [e.to_dict() for e in self.events]
        return data


class ShipmentEvent(db.Model):
    __tablename__ = "shipment_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey("shipments.id"), nullable=False, index=True)
    status = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    event_time = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shipment_id": self.shipment_id,
            "status": self.status,
            "description": self.description,
            "event_time": to_utc_z(self.event_time),
        }
