"""
Web checkout: pending orders, address snapshots and the deferred stock commit.
"""

from decimal import Decimal

import pytest

from gemalery.models import Customer, CustomerAddress, Order, StockMovement
from gemalery.models.sales import ORDER_STATUS_PENDING
from gemalery.schemas import parse_checkout
from gemalery.services import order_service
from gemalery.validation import InternalError, NotFoundError, ValidationError


INLINE_ADDRESS = {
    "recipient_name": "Siti Rahayu",
    "recipient_phone": "0812345678",
    "address_line": "Jl. Malioboro No. 12",
    "city": "Yogyakarta",
    "postal_code": "55213",
}


def checkout_payload(*items, **extra):
    payload = {
        "items": [{"variant_id": v, "qty": q} for v, q in items],
        "shipping": {"address": INLINE_ADDRESS},
    }
    payload.update(extra)
    return payload


# =============================================================================
# SERVICE LEVEL
# =============================================================================

class TestCheckoutService:
    """order_service.checkout"""

    def test_creates_pending_order_without_touching_stock(self, db_session, channels, variant_a, variant_b):
        command = parse_checkout(checkout_payload((variant_a.id, 2), (variant_b.id, 1)))

        order, shipping_quote = order_service.checkout(command)

        assert order.status == ORDER_STATUS_PENDING
        assert order.channel.key == "web"
        assert order.stock_committed is False
        assert order.subtotal == Decimal("125000")
        assert order.shipping_cost == Decimal("10000")
        assert shipping_quote.cost == Decimal("10000")
        assert len(order.items) == 2

        db_session.refresh(variant_a)
        db_session.refresh(variant_b)
        assert variant_a.stock_on_hand == 10
        assert variant_b.stock_on_hand == 5
        assert db_session.query(StockMovement).count() == 0

    def test_inline_address_is_snapshotted(self, db_session, channels, variant_a):
        order, _ = order_service.checkout(parse_checkout(checkout_payload((variant_a.id, 1))))
        snapshot = order.shipping_address_snapshot
        assert snapshot["address_id"] is None
        assert snapshot["recipient_name"] == "Siti Rahayu"
        assert snapshot["postal_code"] == "55213"

    def test_cogs_snapshot_is_zero_by_default(self, db_session, channels, variant_a):
        order, _ = order_service.checkout(parse_checkout(checkout_payload((variant_a.id, 1))))
        assert order.items[0].cogs_snapshot == Decimal("0")

    def test_cogs_snapshot_opt_in(self, db_session, channels, variant_a):
        order, _ = order_service.checkout(
            parse_checkout(checkout_payload((variant_a.id, 1))),
            snapshot_cogs_at_checkout=True,
        )
        assert order.items[0].cogs_snapshot == Decimal("30000")

    def test_missing_variant_aborts_without_order(self, db_session, channels, variant_a):
        command = parse_checkout(checkout_payload((variant_a.id, 1), (variant_a.id + 999, 1)))

        with pytest.raises(ValidationError):
            order_service.checkout(command)

        assert db_session.query(Order).count() == 0

    def test_saved_address_is_snapshotted(self, db_session, channels, customer, variant_a):
        address = CustomerAddress(customer_id=customer.id, label="Rumah", **INLINE_ADDRESS)
        db_session.add(address)
        db_session.commit()

        command = parse_checkout({
            "items": [{"variant_id": variant_a.id, "qty": 1}],
            "customer_id": customer.id,
            "shipping": {"address_id": address.id},
        })
        order, _ = order_service.checkout(command)

        assert order.customer_id == customer.id
        assert order.shipping_address_snapshot["address_id"] == address.id
        assert order.shipping_address_snapshot["label"] == "Rumah"

    def test_deleted_address_is_not_found(self, db_session, channels, customer, variant_a):
        address = CustomerAddress(customer_id=customer.id, is_deleted=True, **INLINE_ADDRESS)
        db_session.add(address)
        db_session.commit()

        command = parse_checkout({
            "items": [{"variant_id": variant_a.id, "qty": 1}],
            "shipping": {"address_id": address.id},
        })
        with pytest.raises(NotFoundError):
            order_service.checkout(command)
        assert db_session.query(Order).count() == 0

    def test_address_of_another_customer_is_not_found(self, db_session, channels, customer, variant_a):
        other = Customer(name="Budi")
        db_session.add(other)
        db_session.commit()
        address = CustomerAddress(customer_id=other.id, **INLINE_ADDRESS)
        db_session.add(address)
        db_session.commit()

        command = parse_checkout({
            "items": [{"variant_id": variant_a.id, "qty": 1}],
            "customer_id": customer.id,
            "shipping": {"address_id": address.id},
        })
        with pytest.raises(NotFoundError):
            order_service.checkout(command)

    def test_guest_checkout_records_customer(self, db_session, channels, variant_a):
        command = parse_checkout(checkout_payload(
            (variant_a.id, 1),
            guest={"name": "Tamu", "email": "tamu@example.com", "phone": "0899999"},
        ))
        order, _ = order_service.checkout(command)

        guest = db_session.get(Customer, order.customer_id)
        assert guest is not None
        assert guest.email == "tamu@example.com"
        assert guest.user_id is None

    def test_missing_channel_is_internal_error(self, db_session, variant_a):
        with pytest.raises(InternalError):
            order_service.checkout(parse_checkout(checkout_payload((variant_a.id, 1))))


# =============================================================================
# DECODING
# =============================================================================

class TestCheckoutDecoding:

    def test_requires_address(self):
        with pytest.raises(ValidationError, match="shipping address required"):
            parse_checkout({"items": [{"variant_id": 1, "qty": 1}], "shipping": {}})

    def test_rejects_short_phone(self):
        address = dict(INLINE_ADDRESS, recipient_phone="08")
        with pytest.raises(ValidationError, match="recipient_phone"):
            parse_checkout({"items": [{"variant_id": 1, "qty": 1}], "shipping": {"address": address}})

    def test_default_service(self):
        command = parse_checkout(checkout_payload((1, 1)))
        assert command.service == "JNE REG"
        assert command.address_id is None


# =============================================================================
# HTTP
# =============================================================================

class TestCheckoutRoute:

    def test_checkout_returns_order_and_quote(self, client, channels, variant_a):
        resp = client.post("/api/checkout", json=checkout_payload((variant_a.id, 3)))
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["order"]["status"] == "pending"
        assert body["order"]["stock_committed"] is False
        assert Decimal(body["order"]["subtotal"]) == Decimal("150000")
        assert Decimal(body["shipping_quote"]["cost"]) == Decimal("16000")

    def test_unknown_variant_is_bad_request(self, client, db_session, channels, variant_a):
        resp = client.post("/api/checkout", json=checkout_payload((variant_a.id + 999, 1)))
        assert resp.status_code == 400
        assert db_session.query(Order).count() == 0

    def test_unknown_address_is_not_found(self, client, channels, variant_a):
        resp = client.post("/api/checkout", json={
            "items": [{"variant_id": variant_a.id, "qty": 1}],
            "shipping": {"address_id": 4242},
        })
        assert resp.status_code == 404

    def test_missing_channel_is_server_error(self, client, variant_a):
        resp = client.post("/api/checkout", json=checkout_payload((variant_a.id, 1)))
        assert resp.status_code == 500
