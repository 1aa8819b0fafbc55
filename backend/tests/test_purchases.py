"""
Suppliers, purchase orders and receiving with weighted-average costing.
"""

from decimal import Decimal

import pytest

from gemalery.models import PurchaseItem, PurchaseOrder, StockMovement
from gemalery.models.inventory import MOVEMENT_IN, REF_PURCHASE_ORDER
from gemalery.schemas import PurchaseItemCommand, PurchaseOrderCommand
from gemalery.services import purchase_service
from gemalery.services.purchase_service import weighted_average_cost
from gemalery.validation import ConflictError, NotFoundError, ValidationError


def draft_po(supplier, *lines):
    po = purchase_service.create_purchase_order(PurchaseOrderCommand(supplier_id=supplier.id))
    for variant, qty, unit_cost, op_cost in lines:
        purchase_service.add_item(po.id, PurchaseItemCommand(
            variant_id=variant.id,
            qty=qty,
            unit_cost=Decimal(unit_cost),
            operational_cost_unit=Decimal(op_cost),
        ))
    return po


# =============================================================================
# WEIGHTED AVERAGE
# =============================================================================

@pytest.mark.parametrize(
    "old_stock,old_cogs,qty,landed,expected",
    [
        (0, "0", 10, "100", "100"),
        (10, "100", 10, "200", "150"),
        (3, "10", 1, "11", "10.25"),
        (2, "1", 1, "0", "0.6667"),
        (0, "999", 0, "42", "42"),
    ],
)
def test_weighted_average_cost(old_stock, old_cogs, qty, landed, expected):
    result = weighted_average_cost(old_stock, Decimal(old_cogs), qty, Decimal(landed))
    assert result == Decimal(expected)


# =============================================================================
# RECEIVING
# =============================================================================

class TestReceive:

    def test_first_receipt_sets_cost(self, db_session, supplier, empty_variant):
        po = draft_po(supplier, (empty_variant, 10, "90", "10"))

        received = purchase_service.receive_purchase_order(po.id)

        assert received.status == "received"
        assert received.received_at is not None
        db_session.refresh(empty_variant)
        assert empty_variant.stock_on_hand == 10
        assert empty_variant.cogs_current == Decimal("100")

        movements = db_session.query(StockMovement).all()
        assert len(movements) == 1
        assert movements[0].type == MOVEMENT_IN
        assert movements[0].quantity == 10
        assert movements[0].unit_cost_applied == Decimal("100")
        assert movements[0].ref_table == REF_PURCHASE_ORDER
        assert movements[0].ref_id == po.id

    def test_second_receipt_averages(self, db_session, supplier, empty_variant):
        purchase_service.receive_purchase_order(draft_po(supplier, (empty_variant, 10, "100", "0")).id)
        purchase_service.receive_purchase_order(draft_po(supplier, (empty_variant, 10, "200", "0")).id)

        db_session.refresh(empty_variant)
        assert empty_variant.stock_on_hand == 20
        assert empty_variant.cogs_current == Decimal("150")

    def test_receiving_twice_is_conflict(self, db_session, supplier, variant_a):
        po = draft_po(supplier, (variant_a, 5, "30000", "0"))
        purchase_service.receive_purchase_order(po.id)

        with pytest.raises(ConflictError):
            purchase_service.receive_purchase_order(po.id)

        db_session.refresh(variant_a)
        assert variant_a.stock_on_hand == 15
        assert db_session.query(StockMovement).count() == 1

    def test_missing_variant_rolls_back_every_item(self, db_session, supplier, variant_a):
        po = draft_po(supplier, (variant_a, 5, "60000", "0"))
        db_session.add(PurchaseItem(
            purchase_order_id=po.id,
            product_variant_id=9999,
            qty=1,
            unit_cost=Decimal("1"),
            operational_cost_unit=Decimal("0"),
            landed_cost_unit=Decimal("1"),
        ))
        db_session.commit()

        with pytest.raises(NotFoundError, match="9999"):
            purchase_service.receive_purchase_order(po.id)

        db_session.refresh(variant_a)
        assert variant_a.stock_on_hand == 10
        assert variant_a.cogs_current == Decimal("30000")
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(PurchaseOrder, po.id).status == "draft"

    def test_empty_purchase_order_is_rejected(self, db_session, supplier):
        po = draft_po(supplier)

        with pytest.raises(ValidationError, match="no items"):
            purchase_service.receive_purchase_order(po.id)

        po = db_session.get(PurchaseOrder, po.id)
        assert po.status == "draft"
        assert po.received_at is None

    def test_unknown_purchase_order(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_service.receive_purchase_order(31337)

    def test_received_order_is_frozen(self, db_session, supplier, variant_a):
        po = draft_po(supplier, (variant_a, 1, "100", "0"))
        purchase_service.receive_purchase_order(po.id)

        with pytest.raises(ConflictError):
            purchase_service.add_item(po.id, PurchaseItemCommand(variant_id=variant_a.id, qty=1, unit_cost=Decimal("1")))
        with pytest.raises(ConflictError):
            purchase_service.remove_item(po.id, po.items[0].id)


class TestDraftLines:

    def test_landed_cost_is_unit_plus_operational(self, db_session, supplier, variant_a):
        po = draft_po(supplier, (variant_a, 2, "25000", "1500"))
        assert po.items[0].landed_cost_unit == Decimal("26500")

    def test_unknown_variant_is_rejected(self, db_session, supplier):
        po = purchase_service.create_purchase_order(PurchaseOrderCommand(supplier_id=supplier.id))
        with pytest.raises(NotFoundError):
            purchase_service.add_item(po.id, PurchaseItemCommand(variant_id=404, qty=1, unit_cost=Decimal("1")))

    def test_unknown_supplier_is_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase_order(PurchaseOrderCommand(supplier_id=404))

    def test_supplier_with_orders_cannot_be_deleted(self, db_session, supplier):
        purchase_service.create_purchase_order(PurchaseOrderCommand(supplier_id=supplier.id))
        with pytest.raises(ConflictError):
            purchase_service.delete_supplier(supplier.id)


# =============================================================================
# HTTP
# =============================================================================

class TestPurchaseRoutes:

    def test_full_flow(self, client, supplier, empty_variant, staff_headers):
        resp = client.post("/api/purchase-orders", headers=staff_headers, json={"supplier_id": supplier.id})
        assert resp.status_code == 201
        po_id = resp.get_json()["id"]

        resp = client.post(f"/api/purchase-orders/{po_id}/items", headers=staff_headers, json={
            "variant_id": empty_variant.id,
            "qty": 4,
            "unit_cost": "12000",
            "operational_cost_unit": 500,
        })
        assert resp.status_code == 201

        resp = client.post(f"/api/purchase-orders/{po_id}/receive", headers=staff_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "received"
        assert len(body["items"]) == 1

        resp = client.post(f"/api/purchase-orders/{po_id}/receive", headers=staff_headers)
        assert resp.status_code == 409

    def test_item_validation(self, client, supplier, empty_variant, staff_headers):
        po_id = client.post("/api/purchase-orders", headers=staff_headers,
                            json={"supplier_id": supplier.id}).get_json()["id"]
        resp = client.post(f"/api/purchase-orders/{po_id}/items", headers=staff_headers,
                           json={"variant_id": empty_variant.id, "qty": 0, "unit_cost": 10})
        assert resp.status_code == 400

    def test_receive_empty_order_is_400(self, client, supplier, staff_headers):
        po_id = client.post("/api/purchase-orders", headers=staff_headers,
                            json={"supplier_id": supplier.id}).get_json()["id"]

        resp = client.post(f"/api/purchase-orders/{po_id}/receive", headers=staff_headers)
        assert resp.status_code == 400
        assert client.get(f"/api/purchase-orders/{po_id}", headers=staff_headers).get_json()["status"] == "draft"

    def test_supplier_crud(self, client, db_session, admin_headers):
        resp = client.post("/api/suppliers", headers=admin_headers, json={"name": "UD Benang Emas"})
        assert resp.status_code == 201
        supplier_id = resp.get_json()["id"]

        resp = client.patch(f"/api/suppliers/{supplier_id}", headers=admin_headers, json={"phone": "0274123456"})
        assert resp.status_code == 200
        assert resp.get_json()["phone"] == "0274123456"

        resp = client.delete(f"/api/suppliers/{supplier_id}", headers=admin_headers)
        assert resp.status_code == 204
