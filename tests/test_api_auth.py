"""
Auth API tests — register, login, bearer middleware, profile, admin user management.
"""

import jwt
import pytest

from pmis.models import db
from pmis.models.auth import ROLE_ADMIN, ROLE_FINANCIAL, User
from pmis.services.jwt_service import decode_access_token, generate_access_token

PASSWORD = "secret123"


def _register(client, **overrides):
    payload = {
        "username": "new.user",
        "email": "new.user@pmis.gov.lk",
        "password": PASSWORD,
        "institution_id": "INST-A",
        "role": ROLE_FINANCIAL,
    }
    payload.update(overrides)
    return client.post("/api/users/register", json=payload)


# ═════════════════════════════════════════════════════════════════════════════
# Register / login
# ═════════════════════════════════════════════════════════════════════════════


class TestRegister:
    def test_register_returns_user_without_hash(self, client):
        res = _register(client)
        assert res.status_code == 201
        body = res.get_json()
        assert body["username"] == "new.user"
        assert body["role"] == ROLE_FINANCIAL
        assert "password_hash" not in body
        assert "password" not in body

    def test_password_is_hashed(self, client):
        _register(client)
        user = User.query.filter_by(username="new.user").first()
        assert user.password_hash != PASSWORD
        assert user.password_hash.startswith("$2")

    def test_missing_fields(self, client):
        res = client.post("/api/users/register", json={"username": "x"})
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert {"email", "password", "institution_id", "role"} <= set(details)

    def test_short_password(self, client):
        res = _register(client, password="12345")
        assert res.status_code == 400
        assert "password" in res.get_json()["details"]

    def test_invalid_role(self, client):
        res = _register(client, role="superuser")
        assert res.status_code == 400

    def test_invalid_email(self, client):
        res = _register(client, email="not-an-email")
        assert res.status_code == 400

    def test_duplicate_email_conflicts(self, client, physical):
        res = _register(client, email="physical@pmis.gov.lk")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_duplicate_username_conflicts(self, client, physical):
        res = _register(client, username="physical")
        assert res.status_code == 409

    def test_email_differing_only_in_case_conflicts(self, client):
        first = _register(client, username="alice", email="Alice@pmis.gov.lk")
        assert first.status_code == 201
        assert first.get_json()["email"] == "alice@pmis.gov.lk"

        second = _register(client, username="alice2", email="alice@PMIS.gov.lk")
        assert second.status_code == 409
        assert second.get_json()["details"] == {"field": "email"}

        login = client.post("/api/users/login", json={"email": "ALICE@pmis.gov.lk", "password": PASSWORD})
        assert login.status_code == 200
        assert login.get_json()["username"] == "alice"


class TestLogin:
    def test_login_returns_token(self, client, physical):
        res = client.post("/api/users/login", json={"email": "physical@pmis.gov.lk", "password": PASSWORD})
        assert res.status_code == 200
        body = res.get_json()
        assert body["id"] == physical.id
        assert body["token_type"] == "Bearer"
        payload = decode_access_token(body["token"])
        assert payload["sub"] == physical.id
        assert payload["role"] == physical.role
        assert payload["institution_id"] == "INST-A"

    def test_email_is_case_insensitive(self, client, physical):
        res = client.post("/api/users/login", json={"email": "PHYSICAL@pmis.gov.lk", "password": PASSWORD})
        assert res.status_code == 200

    def test_wrong_password(self, client, physical):
        res = client.post("/api/users/login", json={"email": "physical@pmis.gov.lk", "password": "nope123"})
        assert res.status_code == 401

    def test_unknown_email(self, client):
        res = client.post("/api/users/login", json={"email": "ghost@pmis.gov.lk", "password": PASSWORD})
        assert res.status_code == 401

    def test_missing_credentials(self, client):
        res = client.post("/api/users/login", json={})
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Bearer middleware
# ═════════════════════════════════════════════════════════════════════════════


class TestBearer:
    def test_no_token(self, client):
        res = client.get("/api/users/profile")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token(self, client):
        res = client.get("/api/users/profile", headers={"Authorization": "Bearer not.a.jwt"})
        assert res.status_code == 401

    def test_token_signed_with_other_key(self, client, physical):
        forged = jwt.encode({"sub": physical.id, "type": "access"}, "other-key", algorithm="HS256")
        res = client.get("/api/users/profile", headers={"Authorization": f"Bearer {forged}"})
        assert res.status_code == 401

    def test_expired_token(self, client, app, physical):
        app.config["JWT_ACCESS_EXPIRES"] = -10
        try:
            token = generate_access_token(physical)
        finally:
            app.config["JWT_ACCESS_EXPIRES"] = 30 * 24 * 3600
        res = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_token_for_deleted_user(self, client, physical, headers_for):
        headers = headers_for(physical)
        db.session.delete(physical)
        db.session.commit()
        res = client.get("/api/users/profile", headers=headers)
        assert res.status_code == 401


# ═════════════════════════════════════════════════════════════════════════════
# Profile
# ═════════════════════════════════════════════════════════════════════════════


class TestProfile:
    def test_get_profile(self, client, physical, headers_for):
        res = client.get("/api/users/profile", headers=headers_for(physical))
        assert res.status_code == 200
        assert res.get_json()["username"] == "physical"

    def test_update_profile_cannot_change_role(self, client, physical, headers_for):
        res = client.put(
            "/api/users/profile",
            json={"username": "renamed", "role": ROLE_ADMIN},
            headers=headers_for(physical),
        )
        assert res.status_code == 200
        body = res.get_json()
        assert body["username"] == "renamed"
        assert body["role"] == physical.role

    def test_update_profile_duplicate_username(self, client, physical, financial, headers_for):
        res = client.put("/api/users/profile", json={"username": "financial"}, headers=headers_for(physical))
        assert res.status_code == 409


# ═════════════════════════════════════════════════════════════════════════════
# Admin user management
# ═════════════════════════════════════════════════════════════════════════════


class TestAdminUsers:
    def test_admin_lists_users(self, client, admin, physical, headers_for):
        res = client.get("/api/users", headers=headers_for(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert {u["username"] for u in body["items"]} == {"admin", "physical"}

    def test_non_admin_forbidden(self, client, physical, headers_for):
        res = client.get("/api/users", headers=headers_for(physical))
        assert res.status_code == 403

    def test_admin_changes_role(self, client, admin, physical, headers_for):
        res = client.put(f"/api/users/{physical.id}", json={"role": ROLE_FINANCIAL}, headers=headers_for(admin))
        assert res.status_code == 200
        assert res.get_json()["role"] == ROLE_FINANCIAL

    def test_admin_invalid_role(self, client, admin, physical, headers_for):
        res = client.put(f"/api/users/{physical.id}", json={"role": "boss"}, headers=headers_for(admin))
        assert res.status_code == 400

    def test_cannot_delete_last_admin(self, client, admin, headers_for):
        res = client.delete(f"/api/users/{admin.id}", headers=headers_for(admin))
        assert res.status_code == 409
        assert db.session.get(User, admin.id) is not None

    def test_cannot_demote_last_admin(self, client, admin, headers_for):
        res = client.put(f"/api/users/{admin.id}", json={"role": ROLE_FINANCIAL}, headers=headers_for(admin))
        assert res.status_code == 409

    def test_delete_admin_when_another_exists(self, client, admin, user_factory, headers_for):
        second = user_factory("second.admin", ROLE_ADMIN)
        res = client.delete(f"/api/users/{second.id}", headers=headers_for(admin))
        assert res.status_code == 200
        assert db.session.get(User, second.id) is None

    def test_delete_unknown_user(self, client, admin, headers_for):
        res = client.delete("/api/users/00000000-0000-4000-8000-000000000000", headers=headers_for(admin))
        assert res.status_code == 404

    @pytest.mark.parametrize("method", ["put", "delete"])
    def test_staff_cannot_manage_users(self, client, physical, financial, headers_for, method):
        res = getattr(client, method)(f"/api/users/{financial.id}", json={}, headers=headers_for(physical))
        assert res.status_code == 403
