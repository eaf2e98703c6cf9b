"""
Unit tests for security utilities.

Tests password hashing and session token helpers.
"""

import pytest
from app.utils.security import (
    hash_password,
    verify_password,
    generate_session_token,
    hash_token,
)


@pytest.mark.unit
@pytest.mark.security
class TestPasswordHashing:
    """Test password hashing functions."""

    def test_hash_password(self):
        """Test password hashing produces a bcrypt hash."""
        hashed = hash_password("test_password123")

        assert hashed != "test_password123"
        assert hashed.startswith("$2b$")

    def test_verify_password(self):
        hashed = hash_password("test_password123")

        assert verify_password("test_password123", hashed) is True
        assert verify_password("wrong_password", hashed) is False

    def test_same_password_different_hash(self):
        """Bcrypt salts every hash."""
        assert hash_password("test_password123") != hash_password("test_password123")

    @pytest.mark.parametrize("stored", [None, ""])
    def test_missing_hash_never_verifies(self, stored):
        assert verify_password("anything", stored) is False


@pytest.mark.unit
@pytest.mark.security
class TestSessionTokens:
    """Test session token generation and hashing."""

    def test_tokens_are_unique(self):
        tokens = {generate_session_token() for _ in range(100)}
        assert len(tokens) == 100

    def test_token_is_url_safe(self):
        token = generate_session_token()
        assert len(token) >= 43
        assert all(c.isalnum() or c in "-_" for c in token)

    def test_hash_token_is_stable_sha256(self):
        assert hash_token("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        assert len(hash_token(generate_session_token())) == 64
