# backend/gemalery/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, built once at startup.

    Services never read the environment themselves; routes fetch this object
    via get_settings() and pass the values a service needs.
    """
    database_url: str = "sqlite:///gemalery.sqlite3"
    secret_key: str = "dev-secret-key-change-me"
    cors_origins: tuple[str, ...] = field(default_factory=lambda: (
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ))

    # Only consumed by `flask system init`
    default_admin_email: str = "admin@gemalery.local"
    default_admin_password: str = "Password123!"

    session_ttl_hours: int = 24 * 7
    bcrypt_rounds: int = 12

    # Web checkout historically stored cogs_snapshot = 0; opt in to real cost.
    checkout_snapshot_cogs: bool = False

    low_stock_threshold: int = 5
    testing: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.environ.get("CORS_ORIGIN")
        kwargs = {}
        if origins:
            kwargs["cors_origins"] = tuple(o.strip() for o in origins.split(",") if o.strip())
        return cls(
            database_url=os.environ.get("DATABASE_URL", cls.database_url),
            secret_key=os.environ.get("SECRET_KEY", cls.secret_key),
            default_admin_email=os.environ.get("DEFAULT_ADMIN_EMAIL", cls.default_admin_email),
            default_admin_password=os.environ.get("DEFAULT_ADMIN_PASSWORD", cls.default_admin_password),
            session_ttl_hours=_env_int("SESSION_TTL_HOURS", cls.session_ttl_hours),
            bcrypt_rounds=_env_int("BCRYPT_ROUNDS", cls.bcrypt_rounds),
            checkout_snapshot_cogs=_env_bool("CHECKOUT_SNAPSHOT_COGS", cls.checkout_snapshot_cogs),
            low_stock_threshold=_env_int("LOW_STOCK_THRESHOLD", cls.low_stock_threshold),
            testing=_env_bool("TESTING", False),
            **kwargs,
        )

    def flask_config(self) -> dict:
        return {
            "SECRET_KEY": self.secret_key,
            "SQLALCHEMY_DATABASE_URI": self.database_url,
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": self.testing,
        }
