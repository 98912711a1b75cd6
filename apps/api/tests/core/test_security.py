"""
Tests for password hashing and token handling.
"""

from datetime import timedelta

import jwt

from app.core.config import settings
from app.core.logging import mask_code
from app.core.security import (
    create_access_token,
    create_status_token,
    decode_token,
    dummy_password_hash,
    hash_password,
    verify_password,
)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("Str0ng!Pass")

        assert hashed != "Str0ng!Pass"
        assert verify_password("Str0ng!Pass", hashed)
        assert not verify_password("Wr0ng!Pass", hashed)

    def test_dummy_hash_is_stable_and_rejects_guesses(self):
        assert dummy_password_hash() == dummy_password_hash()
        assert not verify_password("Str0ng!Pass", dummy_password_hash())


class TestTokens:
    def test_access_token_claims(self):
        token = create_access_token("abc", additional_claims={"role": "super_admin"})

        claims = decode_token(token)

        assert claims["sub"] == "abc"
        assert claims["type"] == "access"
        assert claims["role"] == "super_admin"

    def test_status_token_is_limited(self):
        token = create_status_token("abc", admin_status="rejected", expires_delta=timedelta(days=7))

        claims = decode_token(token)

        assert claims["type"] == "status"
        assert claims["status"] == "rejected"
        assert claims["limited"] is True

    def test_expired_token(self):
        token = create_access_token("abc", expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": "abc", "type": "access"},
            "another-secret-key-that-is-long-enough-0123456789",
            algorithm=settings.jwt_algorithm,
        )

        assert decode_token(token) is None


class TestMaskCode:
    def test_keeps_last_four(self):
        assert mask_code("A1B2C3D4E5F60718") == "************0718"

    def test_empty(self):
        assert mask_code(None) == ""
