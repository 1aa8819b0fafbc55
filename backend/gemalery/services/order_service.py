# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Service - the four ways an order comes into existence, and what
happens to it afterwards.

INVARIANTS:
- Every order is created together with its items in one unit of work.
- Stock leaves the shelf exactly once per order: at creation for POS and
  marketplace imports, at fulfillment for web checkout. Order.stock_committed
  records which has happened.
- Each unit that leaves the shelf has one StockMovement(OUT) row written in
  the same transaction as the stock_on_hand decrement.
- Stock is checked before anything is written; an order that would take a
  variant below zero fails with ConflictError and leaves no trace.
- OrderItem.price and OrderItem.cogs_snapshot are frozen at creation and
  all four workflows take the COGS snapshot through snapshot_cogs().
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    Channel,
    Customer,
    CustomerAddress,
    Order,
    OrderItem,
    Payment,
    ProductVariant,
    Shipment,
    ShipmentEvent,
    StockMovement,
)
from ..models.inventory import MOVEMENT_OUT, REF_ORDER
from ..models.sales import (
    CHANNEL_OFFLINE,
    CHANNEL_WEB,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_PAID,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_REFUNDED,
)
from ..schemas import (
    CheckoutCommand,
    FulfillCommand,
    LineItem,
    MarketplaceOrderCommand,
    PaymentCommand,
    PosOrderCommand,
)
from ..validation import ConflictError, InternalError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .pricing_service import PricedLine, ShippingQuote, build_quote, load_variants, price_lines


# Allowed forward moves; cancelled and refunded are terminal
STATUS_TRANSITIONS = {
    ORDER_STATUS_PENDING: {ORDER_STATUS_PAID, ORDER_STATUS_FULFILLED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_PAID: {ORDER_STATUS_FULFILLED, ORDER_STATUS_CANCELLED, ORDER_STATUS_REFUNDED},
    ORDER_STATUS_FULFILLED: {ORDER_STATUS_COMPLETED, ORDER_STATUS_REFUNDED},
    ORDER_STATUS_COMPLETED: {ORDER_STATUS_REFUNDED},
    ORDER_STATUS_CANCELLED: set(),
    ORDER_STATUS_REFUNDED: set(),
}

FULFILLABLE_STATUSES = {ORDER_STATUS_PENDING, ORDER_STATUS_PAID}


# =============================================================================
# SHARED BUILDING BLOCKS
# =============================================================================

def resolve_channel(key: str) -> Channel:
    channel = db.session.query(Channel).filter_by(key=key).first()
    if channel is None:
        raise InternalError(f"{key} channel missing")
    return channel


def snapshot_cogs(variant: ProductVariant, *, capture: bool = True) -> Decimal:
    """Unit cost frozen onto an order line."""
    if not capture:
        return Decimal("0")
    return Decimal(variant.cogs_current)


def _load_order_variants(items: tuple[LineItem, ...], *, lock: bool) -> dict[int, ProductVariant]:
    try:
        return load_variants((item.variant_id for item in items), lock=lock)
    except NotFoundError as exc:
        # Order creation reports unknown variants as a bad request
        raise ValidationError(str(exc)) from exc


def _build_order_items(lines: tuple[PricedLine, ...], *, capture_cogs: bool) -> list[OrderItem]:
    return [
        OrderItem(
            product_variant_id=line.variant.id,
            qty=line.qty,
            price=line.price,
            cogs_snapshot=snapshot_cogs(line.variant, capture=capture_cogs),
        )
        for line in lines
    ]


def ensure_stock_available(requested: list[tuple[ProductVariant, int]]) -> None:
    """
    Raise ConflictError unless every variant can cover its total requested
    quantity. Quantities for the same variant on several lines are summed.
    """
    totals: dict[int, int] = {}
    by_id: dict[int, ProductVariant] = {}
    for variant, qty in requested:
        totals[variant.id] = totals.get(variant.id, 0) + qty
        by_id[variant.id] = variant

    insufficient = []
    for variant_id, qty in totals.items():
        on_hand = by_id[variant_id].stock_on_hand
        if on_hand < qty:
            insufficient.append({
                "variant_id": variant_id,
                "sku": by_id[variant_id].sku,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise ConflictError("Insufficient stock", details={"items": insufficient})


def commit_stock(order: Order, requested: list[tuple[ProductVariant, int]]) -> list[StockMovement]:
    """
    Write one OUT movement per line and decrement stock. Caller has already
    run ensure_stock_available and flushed the order so it has an id.
    """
    movements = []
    for variant, qty in requested:
        movement = StockMovement(
            product_variant_id=variant.id,
            type=MOVEMENT_OUT,
            quantity=qty,
            unit_cost_applied=Decimal(variant.cogs_current),
            ref_table=REF_ORDER,
            ref_id=order.id,
        )
        db.session.add(movement)
        variant.stock_on_hand = variant.stock_on_hand - qty
        movements.append(movement)
    order.stock_committed = True
    return movements


def _resolve_address_snapshot(command: CheckoutCommand) -> dict:
    if command.address_id is not None:
        query = db.session.query(CustomerAddress).filter_by(id=command.address_id, is_deleted=False)
        if command.customer_id is not None:
            query = query.filter_by(customer_id=command.customer_id)
        address = query.first()
        if address is None:
            raise NotFoundError("address not found")
        return address.snapshot()
    if command.address is not None:
        return command.address.as_snapshot()
    raise ValidationError("shipping address required")


def _ensure_customer(customer_id: int | None) -> None:
    if customer_id is None:
        return
    if db.session.get(Customer, customer_id) is None:
        raise NotFoundError("customer not found")


# =============================================================================
# ORDER CREATION
# =============================================================================

def checkout(command: CheckoutCommand, *, snapshot_cogs_at_checkout: bool = False) -> tuple[Order, ShippingQuote]:
    """
    Customer checkout: a pending web order at list price.

    Stock is NOT touched here; fulfill_order() commits it later. A guest
    checkout without customer_id records the guest as a Customer row.
    """
    def _op():
        _ensure_customer(command.customer_id)
        address_snapshot = _resolve_address_snapshot(command)

        variants = _load_order_variants(command.items, lock=False)
        quote = build_quote(price_lines(command.items, variants))

        channel = resolve_channel(CHANNEL_WEB)

        customer_id = command.customer_id
        if customer_id is None and command.guest is not None:
            guest = Customer(name=command.guest.name, email=command.guest.email, phone=command.guest.phone)
            db.session.add(guest)
            db.session.flush()
            customer_id = guest.id

        order = Order(
            channel_id=channel.id,
            customer_id=customer_id,
            status=ORDER_STATUS_PENDING,
            subtotal=quote.subtotal,
            discount_total=Decimal("0"),
            fees_total=Decimal("0"),
            shipping_method=quote.shipping_quote.name,
            shipping_cost=quote.shipping_quote.cost,
            shipping_address_snapshot=address_snapshot,
            stock_committed=False,
        )
        order.items = _build_order_items(quote.lines, capture_cogs=snapshot_cogs_at_checkout)
        db.session.add(order)
        db.session.commit()
        return order, quote.shipping_quote

    return run_with_retry(_op)


def create_pos_order(command: PosOrderCommand) -> Order:
    """
    Point-of-sale sale: paid immediately, stock leaves in the same
    transaction.
    """
    def _op():
        variants = _load_order_variants(command.items, lock=True)
        lines = price_lines(command.items, variants)
        requested = [(line.variant, line.qty) for line in lines]
        ensure_stock_available(requested)

        channel = resolve_channel(CHANNEL_OFFLINE)
        quote = build_quote(lines)

        order = Order(
            channel_id=channel.id,
            user_id=command.user_id,
            status=ORDER_STATUS_PAID,
            subtotal=quote.subtotal,
            discount_total=Decimal("0"),
            fees_total=Decimal("0"),
            shipping_cost=Decimal("0"),
        )
        order.items = _build_order_items(lines, capture_cogs=True)
        db.session.add(order)
        db.session.flush()

        commit_stock(order, requested)
        db.session.commit()
        current_app.logger.info("POS order %s created with %d line(s)", order.id, len(lines))
        return order

    return run_with_retry(_op)


def import_marketplace_order(command: MarketplaceOrderCommand) -> Order:
    """
    Record an order taken on a marketplace (Tokopedia, Shopee, TikTok).

    Same stock treatment as POS. When the marketplace already issued an
    AWB, the shipment row is written in the same transaction.
    """
    def _op():
        _ensure_customer(command.customer_id)
        variants = _load_order_variants(command.items, lock=True)
        lines = price_lines(command.items, variants)
        requested = [(line.variant, line.qty) for line in lines]
        ensure_stock_available(requested)

        channel = resolve_channel(command.channel)
        quote = build_quote(lines)

        order = Order(
            channel_id=channel.id,
            customer_id=command.customer_id,
            user_id=command.user_id,
            status=command.status,
            subtotal=quote.subtotal,
            discount_total=command.discount_total,
            fees_total=command.fees_total,
            shipping_method=command.shipping_service,
            shipping_cost=command.shipping_cost,
            shipping_address_snapshot=command.address.as_snapshot() if command.address else None,
            external_ref=command.external_ref,
        )
        order.items = _build_order_items(lines, capture_cogs=True)
        db.session.add(order)
        db.session.flush()

        commit_stock(order, requested)

        if command.awb:
            db.session.add(Shipment(
                order_id=order.id,
                carrier="JNE",
                service=command.shipping_service,
                awb=command.awb,
            ))

        db.session.commit()
        current_app.logger.info(
            "Imported %s order %s (external_ref=%s)", command.channel, order.id, command.external_ref
        )
        return order

    return run_with_retry(_op)


# =============================================================================
# AFTER CREATION
# =============================================================================

def _get_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("order not found")
    return order


def fulfill_order(order_id: int, command: FulfillCommand) -> Shipment:
    """
    Hand an order to the carrier.

    For web orders this is where stock is committed: same sufficiency
    check, OUT movements and decrement as a POS sale.
    """
    def _op():
        order = _get_order_locked(order_id)
        if order.status not in FULFILLABLE_STATUSES:
            raise ConflictError(f"Cannot fulfill order with status {order.status}")

        if not order.stock_committed:
            variants = load_variants((item.product_variant_id for item in order.items), lock=True)
            requested = [(variants[item.product_variant_id], item.qty) for item in order.items]
            ensure_stock_available(requested)
            commit_stock(order, requested)

        shipment = Shipment(
            order_id=order.id,
            carrier="JNE",
            service=command.service,
            awb=command.awb,
            actual_cost=command.actual_cost,
        )
        db.session.add(shipment)
        order.status = ORDER_STATUS_FULFILLED
        db.session.commit()
        return shipment

    return run_with_retry(_op)


def update_status(order_id: int, status: str) -> Order:
    def _op():
        order = _get_order_locked(order_id)
        if status == order.status:
            return order
        if status not in STATUS_TRANSITIONS.get(order.status, set()):
            raise ConflictError(f"Cannot move order from {order.status} to {status}")
        if status == ORDER_STATUS_FULFILLED and not order.stock_committed:
            raise ConflictError("Use fulfillment to ship an order whose stock is not committed")
        order.status = status
        db.session.commit()
        return order

    return run_with_retry(_op)


def record_payment(order_id: int, command: PaymentCommand) -> Payment:
    def _op():
        order = _get_order_locked(order_id)
        if order.status in (ORDER_STATUS_CANCELLED, ORDER_STATUS_REFUNDED):
            raise ConflictError(f"Cannot pay an order with status {order.status}")
        payment = Payment(order_id=order.id, method=command.method, amount=command.amount, status="paid")
        db.session.add(payment)
        if order.status == ORDER_STATUS_PENDING:
            order.status = ORDER_STATUS_PAID
        db.session.commit()
        return payment

    return run_with_retry(_op)


def record_shipment_event(shipment_id: int, *, status: str, description: str | None = None) -> ShipmentEvent:
    def _op():
        shipment = db.session.get(Shipment, shipment_id)
        if shipment is None:
            raise NotFoundError("shipment not found")
        event = ShipmentEvent(shipment_id=shipment.id, status=status, description=description)
        db.session.add(event)
        db.session.commit()
        return event

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("order not found")
    return order


def list_orders(*, status: str | None = None, channel: str | None = None, limit: int = 100) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if channel:
        query = query.join(Channel, Order.channel_id == Channel.id).filter(Channel.key == channel)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def list_shipments(order_id: int) -> list[Shipment]:
    get_order(order_id)
    return db.session.query(Shipment).filter_by(order_id=order_id).order_by(Shipment.id.asc()).all()


def latest_tracking(order_id: int) -> dict:
    shipments = list_shipments(order_id)
    if not shipments:
        raise NotFoundError("no shipments")
    latest = (
        db.session.query(ShipmentEvent)
        .filter(ShipmentEvent.shipment_id.in_([s.id for s in shipments]))
        .order_by(ShipmentEvent.event_time.desc(), ShipmentEvent.id.desc())
        .first()
    )
    return {
        "shipment": shipments[0].to_dict(),
        "latest_event": latest.to_dict() if latest else None,
    }
