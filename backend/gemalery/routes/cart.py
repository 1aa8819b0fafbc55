# Overview: Flask API routes for cart pricing and shipping quotes; read-only.

from flask import Blueprint, request

from ..schemas import parse_quote, parse_shipping_quote
from ..services.pricing_service import SHIPPING_CURRENCY, estimate_shipping, quote_items
from ..validation import NotFoundError, ValidationError

cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")
shipping_bp = Blueprint("shipping", __name__, url_prefix="/api/shipping")


@cart_bp.post("/price")
def price_cart_route():
    """Price a cart without persisting anything."""
    try:
        command = parse_quote(request.get_json(silent=True))
        quote = quote_items(command.items)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return quote.to_dict()


@shipping_bp.post("/quote")
def shipping_quote_route():
    """
    Body: {"origin": {"postal_code"}, "destination": {"postal_code"}, "weight_gram"}

    A single flat-rate service; the postal codes are validated but do not
    change the price.
    """
    try:
        command = parse_shipping_quote(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {
        "currency": SHIPPING_CURRENCY,
        "services": [estimate_shipping(command.weight_gram).to_dict()],
    }
