# Overview: Flask API routes for user administration; admin only.

"""
User administration API

- GET    /api/users            all accounts, newest first
- GET    /api/users/<id>
- POST   /api/users            create an account with any role
- PATCH  /api/users/<id>       email, name, role, password, is_active
- DELETE /api/users/<id>       delete, or deactivate when the account has history
"""

from flask import Blueprint, current_app, g, request

from .. import get_settings
from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import auth_service
from ..validation import ConflictError, NotFoundError, ValidationError

USER_WRITABLE_FIELDS = {"email", "name", "role", "password", "is_active"}

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["customer_id"] = user.customer.id if user.customer else None
    return data


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    users = auth_service.list_users()
    return {"items": [_user_payload(u) for u in users], "count": len(users)}


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    try:
        return _user_payload(auth_service.get_user(user_id))
    except NotFoundError as e:
        return {"error": str(e)}, 404


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    role = data.get("role")
    if not email or not password or not role:
        return {"error": "email, password and role required"}, 400

    try:
        user = auth_service.create_user(
            email,
            password,
            name=data.get("name"),
            role=role,
            rounds=get_settings().bcrypt_rounds,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    current_app.logger.info("User %s created by admin %s (role %s)", user.id, g.current_user.id, user.role)
    return _user_payload(user), 201


@users_bp.patch("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    unknown = sorted(set(data) - USER_WRITABLE_FIELDS)
    if unknown:
        return {"error": f"Unknown fields: {', '.join(unknown)}"}, 400

    try:
        user = auth_service.update_user(user_id, data, rounds=get_settings().bcrypt_rounds)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    return _user_payload(user)


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id, acting_user_id=g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Deleting user %s failed", user_id)
        return {"error": "Internal server error"}, 500
    return "", 204
