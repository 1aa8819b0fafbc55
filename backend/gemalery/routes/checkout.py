# Overview: Flask API routes for customer checkout; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from .. import get_settings
from ..schemas import parse_checkout
from ..services import order_service
from ..validation import InternalError, NotFoundError, ValidationError

checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
def checkout_route():
    """
    Place a web order (status pending, stock untouched until fulfillment).

    Returns 201 with {"order", "shipping_quote"}.
    """
    try:
        command = parse_checkout(request.get_json(silent=True))
        order, shipping_quote = order_service.checkout(
            command,
            snapshot_cogs_at_checkout=get_settings().checkout_snapshot_cogs,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InternalError as e:
        current_app.logger.exception("Checkout failed")
        return {"error": str(e)}, 500
    except Exception:
        current_app.logger.exception("Checkout failed")
        return {"error": "Internal server error"}, 500

    return {"order": order.to_dict(), "shipping_quote": shipping_quote.to_dict()}, 201
