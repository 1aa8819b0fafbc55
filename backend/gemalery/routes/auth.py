# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/gemalery/routes/auth.py
"""
Authentication API routes

- POST /api/auth/register: self-service customer signup
- POST /api/auth/login: returns a bearer token
- POST /api/auth/logout: revokes the presented token
- GET  /api/auth/me: current user
"""

from flask import Blueprint, g, jsonify, request

from .. import get_settings
from ..decorators import require_auth
from ..services import auth_service, session_service
from ..validation import ConflictError, ValidationError

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _token_response(user, status: int = 200):
    settings = get_settings()
    session, token = session_service.create_session(user.id, ttl_hours=settings.session_ttl_hours)
    return jsonify({
        "token": token,
        "expires_at": session.expires_at.isoformat() + "Z",
        "user": user.to_dict(),
    }), status


@auth_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.register_customer(
            email,
            password,
            name=data.get("name"),
            rounds=get_settings().bcrypt_rounds,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return _token_response(user, 201)


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if user is None:
        return jsonify({"error": "Invalid credentials"}), 401

    return _token_response(user)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return jsonify({"status": "logged_out"})


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    data = user.to_dict()
    data["customer_id"] = user.customer.id if user.customer else None
    return jsonify({"user": data})
