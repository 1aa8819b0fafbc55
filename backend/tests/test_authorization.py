"""
Authentication and Role Checks

Covers token issuance, session revocation and the 401/403 split between
missing credentials and insufficient role.
"""

import pytest

from gemalery.models import Customer, SessionToken, User
from gemalery.services import auth_service, session_service
from gemalery.validation import ConflictError, NotFoundError, ValidationError

TEST_PASSWORD = "Password123!"


def auth_headers(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


# =============================================================================
# AUTH SERVICE
# =============================================================================

class TestAuthService:

    def test_password_is_hashed(self, admin_user):
        assert admin_user.password_hash != TEST_PASSWORD
        assert auth_service.verify_password(TEST_PASSWORD, admin_user.password_hash)

    def test_short_password_rejected(self, db_session):
        with pytest.raises(ValidationError):
            auth_service.create_user("short@gemalery.test", "1234567", rounds=4)

    def test_duplicate_email_conflicts(self, db_session, admin_user):
        with pytest.raises(ConflictError):
            auth_service.create_user("ADMIN@gemalery.test", TEST_PASSWORD, rounds=4)

    def test_authenticate(self, db_session, staff_user):
        assert auth_service.authenticate("staff@gemalery.test", TEST_PASSWORD).id == staff_user.id
        assert auth_service.authenticate("staff@gemalery.test", "wrong-password") is None
        assert auth_service.authenticate("nobody@gemalery.test", TEST_PASSWORD) is None

    def test_malformed_hash_does_not_verify(self):
        assert auth_service.verify_password(TEST_PASSWORD, "not-a-bcrypt-hash") is False

    def test_register_customer_links_record(self, db_session, customer_user):
        customer = db_session.query(Customer).filter_by(user_id=customer_user.id).one()
        assert customer.email == "buyer@gemalery.test"


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, admin_user):
        session, token = session_service.create_session(admin_user.id)
        assert session.token_hash != token
        assert session.token_hash == session_service.hash_token(token)

    def test_revoked_token_is_invalid(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id)
        assert session_service.validate_session(token).id == admin_user.id
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None

    def test_expired_token_is_invalid(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id, ttl_hours=-1)
        assert session_service.validate_session(token) is None

    def test_deactivated_user_is_rejected(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id)
        db_session.get(User, admin_user.id).is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None


# =============================================================================
# HTTP
# =============================================================================

class TestAuthRoutes:

    def test_register_and_me(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "email": "new@gemalery.test",
            "password": TEST_PASSWORD,
            "name": "Pembeli Baru",
        })
        assert resp.status_code == 201
        token = resp.get_json()["token"]

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["role"] == "customer"
        assert user["customer_id"] is not None

    def test_register_duplicate(self, client, customer_user):
        resp = client.post("/api/auth/register", json={"email": "buyer@gemalery.test", "password": TEST_PASSWORD})
        assert resp.status_code == 409

    def test_login_bad_credentials(self, client, staff_user):
        resp = client.post("/api/auth/login", json={"email": "staff@gemalery.test", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, staff_user):
        token = client.post("/api/auth/login", json={
            "email": "staff@gemalery.test",
            "password": TEST_PASSWORD,
        }).get_json()["token"]

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401



# =============================================================================
# USER ADMINISTRATION
# =============================================================================

class TestUserAdministration:

    def test_update_role_and_name(self, db_session, staff_user):
        user = auth_service.update_user(staff_user.id, {"role": "admin", "name": "  Kepala Toko  "}, rounds=4)
        assert user.role == "admin"
        assert user.name == "Kepala Toko"

    def test_update_password(self, db_session, staff_user):
        auth_service.update_user(staff_user.id, {"password": "NewPassword456!"}, rounds=4)
        assert auth_service.authenticate("staff@gemalery.test", "NewPassword456!").id == staff_user.id
        assert auth_service.authenticate("staff@gemalery.test", TEST_PASSWORD) is None

    def test_update_rejects_unknown_role(self, db_session, staff_user):
        with pytest.raises(ValidationError):
            auth_service.update_user(staff_user.id, {"role": "owner"})
        db_session.refresh(staff_user)
        assert staff_user.role == "staff"

    def test_update_rejects_taken_email(self, db_session, staff_user, admin_user):
        with pytest.raises(ConflictError):
            auth_service.update_user(staff_user.id, {"email": "Admin@gemalery.test"})

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            auth_service.get_user(9999)

    def test_delete_without_history_removes_user_and_sessions(self, db_session, staff_user):
        session_service.create_session(staff_user.id)
        user_id = staff_user.id

        auth_service.delete_user(user_id)

        assert db_session.get(User, user_id) is None
        assert db_session.query(SessionToken).filter_by(user_id=user_id).count() == 0

    def test_delete_customer_account_deactivates(self, db_session, customer_user):
        _, token = session_service.create_session(customer_user.id)

        auth_service.delete_user(customer_user.id)

        db_session.refresh(customer_user)
        assert customer_user.is_active is False
        assert db_session.query(Customer).filter_by(user_id=customer_user.id).count() == 1
        assert session_service.validate_session(token) is None

    def test_cannot_delete_self(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            auth_service.delete_user(admin_user.id, acting_user_id=admin_user.id)
        assert db_session.get(User, admin_user.id) is not None


class TestUserRoutes:

    def test_staff_is_forbidden(self, client, staff_headers):
        assert client.get("/api/users", headers=staff_headers).status_code == 403

    def test_admin_crud(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "kasir@gemalery.test",
            "password": TEST_PASSWORD,
            "name": "Kasir",
            "role": "staff",
        })
        assert resp.status_code == 201
        user_id = resp.get_json()["id"]

        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert {u["email"] for u in resp.get_json()["items"]} == {"admin@gemalery.test", "kasir@gemalery.test"}

        resp = client.patch(f"/api/users/{user_id}", headers=admin_headers, json={"role": "admin"})
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "admin"

        assert client.delete(f"/api/users/{user_id}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/users/{user_id}", headers=admin_headers).status_code == 404

    def test_create_validation(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={"email": "x@gemalery.test", "password": TEST_PASSWORD})
        assert resp.status_code == 400

        resp = client.post("/api/users", headers=admin_headers, json={
            "email": "admin@gemalery.test", "password": TEST_PASSWORD, "role": "staff",
        })
        assert resp.status_code == 409

    def test_patch_unknown_field(self, client, admin_headers, staff_user):
        resp = client.patch(f"/api/users/{staff_user.id}", headers=admin_headers, json={"password_hash": "x"})
        assert resp.status_code == 400

    def test_admin_cannot_delete_self(self, client, admin_user, admin_headers):
        assert client.delete(f"/api/users/{admin_user.id}", headers=admin_headers).status_code == 400


class TestRoleChecks:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/orders"),
            ("get", "/api/inventory/movements"),
            ("get", "/api/suppliers"),
            ("get", "/api/expenses"),
            ("get", "/api/reports/sales"),
            ("get", "/api/users"),
        ],
    )
    def test_missing_token_is_unauthorized(self, client, db_session, method, path):
        resp = getattr(client, method)(path)
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/api/orders"),
            ("get", "/api/inventory/movements"),
            ("get", "/api/suppliers"),
            ("get", "/api/expenses"),
            ("get", "/api/customers"),
        ],
    )
    def test_customer_role_is_forbidden(self, client, customer_headers, method, path):
        resp = getattr(client, method)(path, headers=customer_headers)
        assert resp.status_code == 403

    def test_garbage_token_is_unauthorized(self, client, db_session):
        resp = client.get("/api/orders", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"

    def test_staff_cannot_delete_expense(self, client, staff_headers, admin_headers):
        resp = client.post("/api/expenses", headers=staff_headers, json={
            "category": "Listrik",
            "amount": "250000",
            "date": "2026-03-01",
        })
        assert resp.status_code == 201
        expense_id = resp.get_json()["id"]

        assert client.delete(f"/api/expenses/{expense_id}", headers=staff_headers).status_code == 403
        assert client.delete(f"/api/expenses/{expense_id}", headers=admin_headers).status_code == 204
