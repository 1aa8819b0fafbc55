"""
Health checks, settings loading and CLI bootstrap.
"""

import dataclasses

import pytest

from gemalery.config import Settings
from gemalery.models import Channel, User


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_db_degraded_without_channels(self, client, db_session):
        resp = client.get("/health/db")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

    def test_db_healthy_with_channels(self, client, channels):
        resp = client.get("/health/db")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["channels"] == 5

    def test_cors_header_for_allowed_origin(self, client):
        resp = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_no_cors_header_for_unknown_origin(self, client):
        resp = client.get("/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestSettings:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/gemalery")
        monkeypatch.setenv("CORS_ORIGIN", "https://shop.example, https://admin.example")
        monkeypatch.setenv("BCRYPT_ROUNDS", "6")
        monkeypatch.setenv("CHECKOUT_SNAPSHOT_COGS", "true")
        monkeypatch.setenv("LOW_STOCK_THRESHOLD", "2")

        settings = Settings.from_env()

        assert settings.database_url == "postgresql://localhost/gemalery"
        assert settings.cors_origins == ("https://shop.example", "https://admin.example")
        assert settings.bcrypt_rounds == 6
        assert settings.checkout_snapshot_cogs is True
        assert settings.low_stock_threshold == 2

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "CORS_ORIGIN", "BCRYPT_ROUNDS", "CHECKOUT_SNAPSHOT_COGS", "TESTING"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.checkout_snapshot_cogs is False
        assert settings.testing is False
        assert "http://localhost:5173" in settings.cors_origins

    def test_settings_are_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            Settings().bcrypt_rounds = 4

    def test_flask_config(self):
        config = Settings(database_url="sqlite:///x.db", testing=True).flask_config()
        assert config["SQLALCHEMY_DATABASE_URI"] == "sqlite:///x.db"
        assert config["TESTING"] is True


class TestCli:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "5 created" in result.output

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "0 created" in result.output
        assert "Admin user exists" in result.output

        assert db_session.query(Channel).count() == 5
        assert db_session.query(User).filter_by(role="admin").count() == 1

    def test_create_user(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--email", "kasir@gemalery.test",
            "--password", "Password123!",
            "--role", "staff",
        ])
        assert result.exit_code == 0, result.output
        assert db_session.query(User).filter_by(email="kasir@gemalery.test").one().role == "staff"

    def test_create_user_weak_password(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create",
            "--email", "lemah@gemalery.test",
            "--password", "short",
            "--role", "staff",
        ])
        assert result.exit_code != 0
        assert "at least 8" in result.output
