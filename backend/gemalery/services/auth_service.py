# Overview: Service-layer operations for auth; password hashing and user accounts.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt; the cost factor comes from
  Settings.bcrypt_rounds (tests run with a low value)
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
"""

import bcrypt

from ..extensions import db
from ..models import Customer, Order, SessionToken, User
from ..models.auth import ROLE_CUSTOMER, ROLES
from ..validation import ConflictError, NotFoundError, ValidationError
from gemalery.time_utils import utcnow
from .concurrency import run_with_retry

MIN_PASSWORD_LENGTH = 8


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str, *, rounds: int = 12) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw compares in constant time."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def _normalize_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not value or "@" not in value:
        raise ValidationError("A valid email is required")
    return value


def create_user(
    email: str,
    password: str,
    *,
    name: str | None = None,
    role: str = ROLE_CUSTOMER,
    rounds: int = 12,
) -> User:
    """
    Create a login account.

    Raises:
        ValidationError: bad email, weak password, unknown role
        ConflictError: email already registered
    """
    email = _normalize_email(email)
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    if db.session.query(User.id).filter_by(email=email).first() is not None:
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def register_customer(email: str, password: str, *, name: str | None = None, rounds: int = 12) -> User:
    """Self-service signup: a customer-role user plus its Customer record."""
    user = create_user(email, password, name=name, role=ROLE_CUSTOMER, rounds=rounds)
    db.session.add(Customer(user_id=user.id, name=name or user.email, email=user.email))
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns the User if credentials are valid, None otherwise.
    Updates last_login_at on success.
    """
    if not email:
        return None
    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()
    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


# =============================================================================
# USER ADMINISTRATION
# =============================================================================

def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_user(user_id: int, changes: dict, *, rounds: int = 12) -> User:
    """
    Apply an admin edit. Accepted keys: email, name, role, password, is_active.

    Raises:
        NotFoundError: unknown user
        ValidationError: bad email, weak password, unknown role
        ConflictError: email taken by another account
    """
    def _op():
        user = get_user(user_id)

        if "email" in changes:
            email = _normalize_email(changes["email"])
            taken = db.session.query(User.id).filter(User.email == email, User.id != user.id).first()
            if taken is not None:
                raise ConflictError("Email already registered")
            user.email = email

        if "name" in changes:
            name = (changes["name"] or "").strip()
            user.name = name or None

        if "role" in changes:
            if changes["role"] not in ROLES:
                raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
            user.role = changes["role"]

        if "password" in changes:
            user.password_hash = hash_password(changes["password"], rounds=rounds)

        if "is_active" in changes:
            if not isinstance(changes["is_active"], bool):
                raise ValidationError("is_active must be a boolean")
            user.is_active = changes["is_active"]

        db.session.commit()
        return user

    return run_with_retry(_op)


def delete_user(user_id: int, *, acting_user_id: int | None = None) -> None:
    """
    Remove a login account and its sessions.

    An account with history (a linked Customer record, or orders it rang
    up) is deactivated instead, so those rows keep their owner.

    Raises:
        NotFoundError: unknown user
        ValidationError: an admin tried to delete their own account
    """
    user = get_user(user_id)
    if acting_user_id is not None and user.id == acting_user_id:
        raise ValidationError("Cannot delete your own account")

    has_history = (
        user.customer is not None
        or db.session.query(Order.id).filter_by(user_id=user.id).first() is not None
    )
    if has_history:
        user.is_active = False
        db.session.query(SessionToken).filter_by(user_id=user.id, is_revoked=False).update(
            {"is_revoked": True, "revoked_at": utcnow()}, synchronize_session=False
        )
    else:
        for session in list(user.sessions):
            db.session.delete(session)
        db.session.delete(user)
    db.session.commit()
