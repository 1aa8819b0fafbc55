# Overview: Flask API routes for point-of-sale orders; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..schemas import parse_pos_order
from ..services import order_service
from ..validation import ConflictError, InternalError, ValidationError

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.post("/orders")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_pos_order_route():
    """
    Ring up a counter sale: paid at once, stock leaves immediately.

    Returns:
    - 201: order with items
    - 400: bad items or unknown variant
    - 409: insufficient stock (details list each short variant)
    """
    try:
        command = parse_pos_order(request.get_json(silent=True), user_id=g.current_user.id)
        order = order_service.create_pos_order(command)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e), "details": e.details}, 409
    except InternalError as e:
        current_app.logger.exception("POS order failed")
        return {"error": str(e)}, 500
    except Exception:
        current_app.logger.exception("POS order failed")
        return {"error": "Internal server error"}, 500

    return order.to_dict(), 201
