"""Unit tests for password hashing and access tokens."""

from datetime import timedelta

import jwt

from transfer_intake.core.config import settings
from transfer_intake.core.security import (
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswords:
    """Tests for password hashing."""

    def test_hash_round_trip(self):
        hashed = hash_password("correct horse battery")
        assert hashed.startswith("$argon2")
        assert verify_password("correct horse battery", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_malformed_hash_is_rejected(self):
        assert verify_password("anything", "not-a-hash") is False


class TestAccessTokens:
    """Tests for JWT creation and decoding."""

    def test_token_carries_subject_and_type(self):
        payload = decode_token(create_access_token("admin-1", {"email": "a@example.com"}))

        assert payload["sub"] == "admin-1"
        assert payload["type"] == "access"
        assert payload["email"] == "a@example.com"

    def test_expired_token_decodes_to_none(self):
        token = create_access_token("admin-1", expires_delta=timedelta(seconds=-1))
        assert decode_token(token) is None

    def test_wrong_signature_decodes_to_none(self):
        token = jwt.encode({"sub": "admin-1"}, "other-secret", algorithm=settings.jwt_algorithm)
        assert decode_token(token) is None
