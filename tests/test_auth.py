"""Tests for password hashing and API key generation."""

import re

import pytest

from mainwebdb.auth import generate_api_key, get_key_prefix, hash_password, verify_password
from mainwebdb.config import settings


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(settings, "password_hash_rounds", 4)


class TestPasswordHashing:
    """Tests for hash_password / verify_password."""

    def test_hash_is_not_plaintext(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert hashed.startswith("$2b$")

    def test_verify_correct_password(self):
        assert verify_password("s3cret", hash_password("s3cret")) is True

    def test_verify_wrong_password(self):
        assert verify_password("wrong", hash_password("s3cret")) is False

    def test_same_password_hashes_differently(self):
        """Each credential gets its own salt."""
        assert hash_password("s3cret") != hash_password("s3cret")

    @pytest.mark.parametrize(
        "password",
        ["", "pässwörd-ünïcödé", "密码🔑", "x" * 500],
    )
    def test_edge_case_passwords(self, password):
        """Empty, unicode and over-long passwords all round-trip."""
        hashed = hash_password(password)
        assert verify_password(password, hashed) is True
        assert verify_password(password + "!", hashed) is False

    def test_long_passwords_differ_after_72_bytes(self):
        """Prehashing keeps bytes beyond bcrypt's input limit significant."""
        base = "a" * 100
        assert verify_password(base + "b", hash_password(base + "c")) is False

    @pytest.mark.parametrize("stored", ["", "plaintext", "$2b$12$short"])
    def test_malformed_credential_never_verifies(self, stored):
        assert verify_password("anything", stored) is False


class TestApiKeyGeneration:
    """Tests for API key format."""

    def test_key_format(self):
        key = generate_api_key()
        assert re.fullmatch(r"gfx_[0-9a-f]{48}", key)

    def test_keys_are_unique(self):
        keys = {generate_api_key() for _ in range(50)}
        assert len(keys) == 50

    def test_key_prefix_hides_secret(self):
        key = generate_api_key()
        prefix = get_key_prefix(key)
        assert prefix == key[:8] + "..."
        assert key[8:] not in prefix

    def test_key_prefix_of_short_value(self):
        assert get_key_prefix("abc") == "abc..."
