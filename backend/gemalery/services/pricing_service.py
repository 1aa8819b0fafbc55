# Overview: Cart pricing and the flat-rate shipping estimate; read-only.

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import ProductVariant
from ..schemas import LineItem
from ..validation import NotFoundError
from .concurrency import lock_for_update


# Flat JNE REG table (IDR): first kilogram at the base rate, each further
# started kilogram at the per-kg rate.
SHIPPING_BASE_COST = 10000
SHIPPING_PER_KG_COST = 6000
SHIPPING_CURRENCY = "IDR"


@dataclass(frozen=True)
class ShippingQuote:
    code: str
    name: str
    cost: Decimal
    etd: str

    def to_dict(self) -> dict:
        return {"code": self.code, "name": self.name, "cost": str(self.cost), "etd": self.etd}


@dataclass(frozen=True)
class PricedLine:
    variant: ProductVariant
    qty: int
    price: Decimal
    line_total: Decimal
    weight_total: int

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant.id,
            "sku": self.variant.sku,
            "qty": self.qty,
            "price": str(self.price),
            "line_total": str(self.line_total),
            "weight_total": self.weight_total,
        }


@dataclass(frozen=True)
class Quote:
    lines: tuple[PricedLine, ...]
    subtotal: Decimal
    total_weight: int
    shipping_quote: ShippingQuote

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": str(self.subtotal),
            "total_weight": self.total_weight,
            "shipping_quote": self.shipping_quote.to_dict(),
        }


def estimate_shipping(weight_gram: int) -> ShippingQuote:
    """
    base + max(0, ceil(kg) - 1) * per_kg. 500g and 1000g both cost the base
    rate, 1500g is two started kilograms.
    """
    kg = math.ceil(weight_gram / 1000)
    total = SHIPPING_BASE_COST + max(0, kg - 1) * SHIPPING_PER_KG_COST
    return ShippingQuote(code="REG", name="JNE REG", cost=Decimal(total), etd="2-3")


def load_variants(variant_ids: Iterable[int], *, lock: bool = False) -> dict[int, ProductVariant]:
    """
    Fetch variants by id, keyed by id.

    Raises NotFoundError when the number of rows found differs from the
    number of distinct ids requested.
    """
    wanted = set(variant_ids)
    query = db.session.query(ProductVariant).filter(ProductVariant.id.in_(wanted))
    if lock:
        query = lock_for_update(query)
    variants = {v.id: v for v in query.all()}
    if len(variants) != len(wanted):
        missing = sorted(wanted - set(variants))
        raise NotFoundError(f"some variants not found: {missing}")
    return variants


def price_lines(items: Iterable[LineItem], variants: dict[int, ProductVariant]) -> tuple[PricedLine, ...]:
    lines = []
    for item in items:
        variant = variants[item.variant_id]
        price = Decimal(variant.price)
        lines.append(PricedLine(
            variant=variant,
            qty=item.qty,
            price=price,
            line_total=price * item.qty,
            weight_total=variant.weight_gram * item.qty,
        ))
    return tuple(lines)


def build_quote(lines: tuple[PricedLine, ...]) -> Quote:
    subtotal = sum((line.line_total for line in lines), Decimal("0"))
    total_weight = sum(line.weight_total for line in lines)
    return Quote(
        lines=lines,
        subtotal=subtotal,
        total_weight=total_weight,
        shipping_quote=estimate_shipping(total_weight),
    )


def quote_items(items: tuple[LineItem, ...]) -> Quote:
    """Price a cart without persisting anything."""
    variants = load_variants(item.variant_id for item in items)
    return build_quote(price_lines(items, variants))
