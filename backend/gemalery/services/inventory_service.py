# Overview: Service-layer operations for inventory; manual stock movements and stock views.

"""
Inventory invariants (authoritative)

- ProductVariant.stock_on_hand is the live count; StockMovement rows are
  its append-only audit trail and are written in the same transaction as
  the count they explain.
- stock_on_hand never goes negative. An OUT that would drive it below
  zero raises ConflictError and writes nothing.
- ADJUST sets the absolute count (a stocktake result); the movement row
  stores the counted quantity and the note explains the difference.
- Manual movements never touch cogs_current. Only purchase receipts move
  the weighted average.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ProductVariant, StockMovement
from ..models.inventory import MOVEMENT_ADJUST, MOVEMENT_IN, MOVEMENT_OUT, REF_MANUAL
from ..schemas import StockMovementCommand
from ..validation import ConflictError, NotFoundError
from .concurrency import lock_for_update, run_with_retry


def record_movement(command: StockMovementCommand) -> StockMovement:
    def _op():
        variant = lock_for_update(
            db.session.query(ProductVariant).filter_by(id=command.variant_id)
        ).first()
        if variant is None:
            raise NotFoundError("variant not found")

        before = variant.stock_on_hand
        if command.type == MOVEMENT_IN:
            after = before + command.quantity
        elif command.type == MOVEMENT_OUT:
            after = before - command.quantity
            if after < 0:
                raise ConflictError(
                    "Insufficient stock",
                    details={"variant_id": variant.id, "on_hand": before, "requested_quantity": command.quantity},
                )
        else:
            after = command.quantity

        movement = StockMovement(
            product_variant_id=variant.id,
            type=command.type,
            quantity=command.quantity,
            unit_cost_applied=command.unit_cost_applied,
            ref_table=REF_MANUAL,
            ref_id=None,
            note=command.note,
        )
        db.session.add(movement)
        variant.stock_on_hand = after
        db.session.commit()

        if command.type == MOVEMENT_ADJUST:
            current_app.logger.info("Stock of %s adjusted %d -> %d", variant.sku, before, after)
        return movement

    return run_with_retry(_op)


def list_movements(
    *,
    variant_id: int | None = None,
    ref_table: str | None = None,
    ref_id: int | None = None,
    limit: int = 200,
) -> list[StockMovement]:
    query = db.session.query(StockMovement)
    if variant_id is not None:
        query = query.filter(StockMovement.product_variant_id == variant_id)
    if ref_table:
        query = query.filter(StockMovement.ref_table == ref_table)
    if ref_id is not None:
        query = query.filter(StockMovement.ref_id == ref_id)
    return query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()


def stock_summary(variant_id: int) -> dict:
    """On-hand count plus the movement totals that explain it."""
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise NotFoundError("variant not found")

    totals = {MOVEMENT_IN: 0, MOVEMENT_OUT: 0}
    rows = (
        db.session.query(StockMovement.type, db.func.coalesce(db.func.sum(StockMovement.quantity), 0))
        .filter(StockMovement.product_variant_id == variant.id)
        .filter(StockMovement.type.in_((MOVEMENT_IN, MOVEMENT_OUT)))
        .group_by(StockMovement.type)
        .all()
    )
    for movement_type, qty in rows:
        totals[movement_type] = int(qty)

    return {
        "variant_id": variant.id,
        "sku": variant.sku,
        "stock_on_hand": variant.stock_on_hand,
        "cogs_current": str(variant.cogs_current),
        "total_in": totals[MOVEMENT_IN],
        "total_out": totals[MOVEMENT_OUT],
    }


def low_stock(threshold: int) -> list[ProductVariant]:
    return (
        db.session.query(ProductVariant)
        .filter(ProductVariant.stock_on_hand <= threshold)
        .order_by(ProductVariant.stock_on_hand.asc(), ProductVariant.id.asc())
        .all()
    )
