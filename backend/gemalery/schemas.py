"""
Request decoding.

Each decoder turns a raw JSON body into a frozen command object once, at the
route boundary. Services only ever see these typed commands, never request
dicts. Decoders raise ValidationError with the offending field named.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .validation import ValidationError, to_decimal, to_int
from .models.inventory import MOVEMENT_ADJUST, MOVEMENT_TYPES
from .models.sales import IMPORTABLE_ORDER_STATUSES, MARKETPLACE_CHANNELS, ORDER_STATUS_PAID, ORDER_STATUSES


DEFAULT_SHIPPING_SERVICE = "JNE REG"


def _require_dict(value: Any, name: str = "payload") -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{name} must be an object")
    return value


def _text(payload: dict, key: str, *, required: bool = False, min_len: int = 0,
          max_len: int | None = None, prefix: str = "") -> str | None:
    name = f"{prefix}{key}"
    raw = payload.get(key)
    if raw is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{name} must be a string")
    value = raw.strip()
    if required and not value:
        raise ValidationError(f"{name} is required")
    if value and len(value) < min_len:
        raise ValidationError(f"{name} must be at least {min_len} characters")
    if max_len is not None and len(value) > max_len:
        raise ValidationError(f"{name} exceeds max length {max_len}")
    return value or None


def _int(payload: dict, key: str, *, required: bool = False, minimum: int | None = None,
         prefix: str = "") -> int | None:
    name = f"{prefix}{key}"
    raw = payload.get(key)
    if raw is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    value = to_int(raw, name)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return value


def _amount(payload: dict, key: str, *, default: Decimal | None = None, positive: bool = False,
            prefix: str = "") -> Decimal | None:
    name = f"{prefix}{key}"
    raw = payload.get(key)
    if raw is None:
        if default is None:
            raise ValidationError(f"{name} is required")
        return default
    value = to_decimal(raw, name)
    if positive and value <= 0:
        raise ValidationError(f"{name} must be > 0")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value


def _float(payload: dict, key: str, prefix: str = "") -> float | None:
    raw = payload.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(f"{prefix}{key} must be a number")
    return float(raw)


# =============================================================================
# LINE ITEMS AND ADDRESSES
# =============================================================================

@dataclass(frozen=True)
class LineItem:
    variant_id: int
    qty: int


def parse_line_items(raw: Any) -> tuple[LineItem, ...]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")
    items = []
    for idx, entry in enumerate(raw):
        prefix = f"items[{idx}]."
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        items.append(LineItem(
            variant_id=_int(entry, "variant_id", required=True, prefix=prefix),
            qty=_int(entry, "qty", required=True, minimum=1, prefix=prefix),
        ))
    return tuple(items)


@dataclass(frozen=True)
class AddressInput:
    recipient_name: str
    recipient_phone: str
    address_line: str
    label: str | None = None
    province: str | None = None
    city: str | None = None
    subdistrict: str | None = None
    postal_code: str | None = None
    lat: float | None = None
    lng: float | None = None
    google_place_id: str | None = None

    def as_snapshot(self) -> dict:
        return {
            "address_id": None,
            "label": self.label,
            "recipient_name": self.recipient_name,
            "recipient_phone": self.recipient_phone,
            "address_line": self.address_line,
            "province": self.province,
            "city": self.city,
            "subdistrict": self.subdistrict,
            "postal_code": self.postal_code,
            "lat": self.lat,
            "lng": self.lng,
            "google_place_id": self.google_place_id,
        }


def parse_address(raw: Any, prefix: str = "address.") -> AddressInput:
    data = _require_dict(raw, prefix.rstrip("."))
    return AddressInput(
        recipient_name=_text(data, "recipient_name", required=True, min_len=1, max_len=255, prefix=prefix),
        recipient_phone=_text(data, "recipient_phone", required=True, min_len=5, max_len=64, prefix=prefix),
        address_line=_text(data, "address_line", required=True, min_len=5, prefix=prefix),
        label=_text(data, "label", max_len=64, prefix=prefix),
        province=_text(data, "province", max_len=120, prefix=prefix),
        city=_text(data, "city", max_len=120, prefix=prefix),
        subdistrict=_text(data, "subdistrict", max_len=120, prefix=prefix),
        postal_code=_text(data, "postal_code", max_len=16, prefix=prefix),
        lat=_float(data, "lat", prefix),
        lng=_float(data, "lng", prefix),
        google_place_id=_text(data, "google_place_id", max_len=255, prefix=prefix),
    )


# =============================================================================
# ORDER COMMANDS
# =============================================================================

@dataclass(frozen=True)
class QuoteCommand:
    items: tuple[LineItem, ...]


def parse_quote(payload: Any) -> QuoteCommand:
    data = _require_dict(payload)
    return QuoteCommand(items=parse_line_items(data.get("items")))


@dataclass(frozen=True)
class ShippingQuoteCommand:
    origin_postal_code: str
    destination_postal_code: str
    weight_gram: int


def parse_shipping_quote(payload: Any) -> ShippingQuoteCommand:
    data = _require_dict(payload)
    origin = _require_dict(data.get("origin"), "origin")
    destination = _require_dict(data.get("destination"), "destination")
    return ShippingQuoteCommand(
        origin_postal_code=_text(origin, "postal_code", required=True, min_len=3, prefix="origin."),
        destination_postal_code=_text(destination, "postal_code", required=True, min_len=3, prefix="destination."),
        weight_gram=_int(data, "weight_gram", required=True, minimum=1),
    )


@dataclass(frozen=True)
class GuestInput:
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class CheckoutCommand:
    """
    Exactly one of address_id / address is set; the decoder rejects a
    checkout that has neither.
    """
    items: tuple[LineItem, ...]
    address_id: int | None = None
    address: AddressInput | None = None
    service: str = DEFAULT_SHIPPING_SERVICE
    customer_id: int | None = None
    guest: GuestInput | None = None


def parse_checkout(payload: Any) -> CheckoutCommand:
    data = _require_dict(payload)
    items = parse_line_items(data.get("items"))

    guest = None
    if data.get("guest") is not None:
        raw_guest = _require_dict(data.get("guest"), "guest")
        email = _text(raw_guest, "email", max_len=255, prefix="guest.")
        if email and "@" not in email:
            raise ValidationError("guest.email must be an email address")
        guest = GuestInput(
            name=_text(raw_guest, "name", required=True, max_len=255, prefix="guest."),
            email=email,
            phone=_text(raw_guest, "phone", max_len=64, prefix="guest."),
        )

    shipping = _require_dict(data.get("shipping"), "shipping")
    address_id = _int(shipping, "address_id", prefix="shipping.")
    address = None
    if address_id is None:
        if shipping.get("address") is None:
            raise ValidationError("shipping address required")
        address = parse_address(shipping.get("address"), prefix="shipping.address.")

    return CheckoutCommand(
        items=items,
        address_id=address_id,
        address=address,
        service=_text(shipping, "service", max_len=64, prefix="shipping.") or DEFAULT_SHIPPING_SERVICE,
        customer_id=_int(data, "customer_id"),
        guest=guest,
    )


@dataclass(frozen=True)
class PosOrderCommand:
    items: tuple[LineItem, ...]
    user_id: int | None = None


def parse_pos_order(payload: Any, *, user_id: int | None = None) -> PosOrderCommand:
    data = _require_dict(payload)
    return PosOrderCommand(items=parse_line_items(data.get("items")), user_id=user_id)


@dataclass(frozen=True)
class MarketplaceOrderCommand:
    channel: str
    items: tuple[LineItem, ...]
    status: str = ORDER_STATUS_PAID
    discount_total: Decimal = Decimal("0")
    fees_total: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    external_ref: str | None = None
    awb: str | None = None
    shipping_service: str = DEFAULT_SHIPPING_SERVICE
    customer_id: int | None = None
    address: AddressInput | None = None
    user_id: int | None = None


def parse_marketplace_order(payload: Any, *, user_id: int | None = None) -> MarketplaceOrderCommand:
    data = _require_dict(payload)

    channel = _text(data, "channel", required=True)
    if channel not in MARKETPLACE_CHANNELS:
        raise ValidationError(f"channel must be one of: {', '.join(MARKETPLACE_CHANNELS)}")

    status = _text(data, "status") or ORDER_STATUS_PAID
    if status not in IMPORTABLE_ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(IMPORTABLE_ORDER_STATUSES)}")

    address = None
    if data.get("address") is not None:
        address = parse_address(data.get("address"))

    return MarketplaceOrderCommand(
        channel=channel,
        items=parse_line_items(data.get("items")),
        status=status,
        discount_total=_amount(data, "discount_total", default=Decimal("0")),
        fees_total=_amount(data, "fees_total", default=Decimal("0")),
        shipping_cost=_amount(data, "shipping_cost", default=Decimal("0")),
        external_ref=_text(data, "external_ref", max_len=128),
        awb=_text(data, "awb", min_len=5, max_len=64),
        shipping_service=_text(data, "shipping_service", max_len=64) or DEFAULT_SHIPPING_SERVICE,
        customer_id=_int(data, "customer_id"),
        address=address,
        user_id=user_id,
    )


@dataclass(frozen=True)
class FulfillCommand:
    awb: str
    service: str = DEFAULT_SHIPPING_SERVICE
    actual_cost: Decimal | None = None


def parse_fulfill(payload: Any) -> FulfillCommand:
    data = _require_dict(payload)
    actual_cost = None
    if data.get("actual_cost") is not None:
        actual_cost = _amount(data, "actual_cost")
    return FulfillCommand(
        awb=_text(data, "awb", required=True, min_len=5, max_len=64),
        service=_text(data, "service", max_len=64) or DEFAULT_SHIPPING_SERVICE,
        actual_cost=actual_cost,
    )


@dataclass(frozen=True)
class PaymentCommand:
    method: str
    amount: Decimal


def parse_payment(payload: Any) -> PaymentCommand:
    data = _require_dict(payload)
    return PaymentCommand(
        method=_text(data, "method", required=True, max_len=64),
        amount=_amount(data, "amount", positive=True),
    )


def parse_status(payload: Any) -> str:
    data = _require_dict(payload)
    status = _text(data, "status", required=True)
    if status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    return status


# =============================================================================
# PURCHASING AND INVENTORY
# =============================================================================

@dataclass(frozen=True)
class PurchaseOrderCommand:
    supplier_id: int
    notes: str | None = None


def parse_purchase_order(payload: Any) -> PurchaseOrderCommand:
    data = _require_dict(payload)
    return PurchaseOrderCommand(
        supplier_id=_int(data, "supplier_id", required=True),
        notes=_text(data, "notes"),
    )


@dataclass(frozen=True)
class PurchaseItemCommand:
    variant_id: int
    qty: int
    unit_cost: Decimal
    operational_cost_unit: Decimal = Decimal("0")

    @property
    def landed_cost_unit(self) -> Decimal:
        return self.unit_cost + self.operational_cost_unit


def parse_purchase_item(payload: Any) -> PurchaseItemCommand:
    data = _require_dict(payload)
    return PurchaseItemCommand(
        variant_id=_int(data, "variant_id", required=True),
        qty=_int(data, "qty", required=True, minimum=1),
        unit_cost=_amount(data, "unit_cost", positive=True),
        operational_cost_unit=_amount(data, "operational_cost_unit", default=Decimal("0")),
    )


@dataclass(frozen=True)
class StockMovementCommand:
    """
    quantity semantics by type:
    - IN / OUT: positive magnitude of the change
    - ADJUST: the absolute on-hand count to set (>= 0)
    """
    variant_id: int
    type: str
    quantity: int
    unit_cost_applied: Decimal | None = None
    note: str | None = None


def parse_stock_movement(payload: Any) -> StockMovementCommand:
    data = _require_dict(payload)
    movement_type = _text(data, "type", required=True)
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(MOVEMENT_TYPES)}")
    minimum = 0 if movement_type == MOVEMENT_ADJUST else 1
    unit_cost = None
    if data.get("unit_cost_applied") is not None:
        unit_cost = _amount(data, "unit_cost_applied")
    return StockMovementCommand(
        variant_id=_int(data, "variant_id", required=True),
        type=movement_type,
        quantity=_int(data, "quantity", required=True, minimum=minimum),
        unit_cost_applied=unit_cost,
        note=_text(data, "note", max_len=255),
    )


# =============================================================================
# CUSTOMERS
# =============================================================================

@dataclass(frozen=True)
class AddressCommand:
    address: AddressInput
    is_default: bool = False


def parse_address_command(payload: Any) -> AddressCommand:
    data = _require_dict(payload)
    return AddressCommand(
        address=parse_address(data, prefix=""),
        is_default=bool(data.get("is_default", False)),
    )


ADDRESS_FIELDS = (
    "label", "recipient_name", "recipient_phone", "address_line", "province",
    "city", "subdistrict", "postal_code", "lat", "lng", "google_place_id",
)


@dataclass(frozen=True)
class AddressPatch:
    changes: dict = field(default_factory=dict)
    is_default: bool | None = None


def parse_address_patch(payload: Any) -> AddressPatch:
    data = _require_dict(payload)
    unknown = sorted(set(data) - set(ADDRESS_FIELDS) - {"is_default"})
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")
    changes: dict = {}
    for key in ("label", "province", "city", "subdistrict", "postal_code", "google_place_id"):
        if key in data:
            changes[key] = _text(data, key, max_len=255)
    for key, min_len in (("recipient_name", 1), ("recipient_phone", 5), ("address_line", 5)):
        if key in data:
            changes[key] = _text(data, key, required=True, min_len=min_len)
    for key in ("lat", "lng"):
        if key in data:
            changes[key] = _float(data, key)
    is_default = None
    if "is_default" in data:
        is_default = bool(data["is_default"])
    return AddressPatch(changes=changes, is_default=is_default)
