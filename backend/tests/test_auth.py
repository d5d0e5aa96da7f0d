"""Tests for back-office authentication and role checks."""

import pytest
from datetime import timedelta

from app.core.rbac import UserRole
from app.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    hmac_sha256_hex,
    verify_hmac_signature,
    verify_password,
)
from app.models.admin import Admin


# ============== Password hashing ==============

class TestPasswordHashing:
    def test_hash_and_verify(self):
        h = get_password_hash("secret123")
        assert verify_password("secret123", h)

    def test_wrong_password_rejected(self):
        h = get_password_hash("secret123")
        assert not verify_password("wrong", h)

    def test_hash_is_unique(self):
        assert get_password_hash("same") != get_password_hash("same")

    def test_invalid_hash_returns_false(self):
        assert not verify_password("test", "not-a-hash")


# ============== Tokens ==============

class TestTokens:
    def test_round_trip_claims(self):
        token = create_access_token(data={"sub": "7", "email": "a@b.co", "role": "admin"})
        payload = decode_access_token(token)
        assert payload["sub"] == "7"
        assert payload["role"] == "admin"

    def test_expired_token_rejected(self):
        token = create_access_token(data={"sub": "1"}, expires_delta=timedelta(seconds=-5))
        assert decode_access_token(token) is None

    def test_garbage_token_rejected(self):
        assert decode_access_token("not.a.token") is None


# ============== HMAC signatures ==============

class TestSignatures:
    def test_matching_signature(self):
        sig = hmac_sha256_hex("order_1|pay_1", "secret")
        assert verify_hmac_signature("order_1|pay_1", "secret", sig)

    def test_bytes_and_str_agree(self):
        assert hmac_sha256_hex(b"payload", "k") == hmac_sha256_hex("payload", "k")

    @pytest.mark.parametrize("signature", [None, "", "deadbeef"])
    def test_missing_or_wrong_signature(self, signature):
        assert not verify_hmac_signature("order_1|pay_1", "secret", signature)

    def test_different_secret(self):
        sig = hmac_sha256_hex("order_1|pay_1", "secret")
        assert not verify_hmac_signature("order_1|pay_1", "other", sig)


# ============== Login API ==============

class TestLogin:
    def test_login_success(self, client, test_admin):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "Admin@Example.com", "password": "testpass123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert decode_access_token(data["access_token"])["email"] == "admin@example.com"

    def test_wrong_password(self, client, test_admin):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "admin@example.com", "password": "nope"},
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    def test_unknown_email_same_error(self, client):
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "ghost@example.com", "password": "whatever"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_inactive_account(self, client, db_session):
        db_session.add(Admin(
            email="former@example.com",
            password_hash=get_password_hash("pass12345"),
            role=UserRole.ADMIN,
            is_active=False,
        ))
        db_session.commit()
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "former@example.com", "password": "pass12345"},
        )
        assert response.status_code == 401

    def test_me(self, client, auth_headers):
        response = client.get("/api/v1/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_me_requires_token(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "Not authenticated"
