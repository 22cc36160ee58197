"""
Tests for the phone vault (encryption + lookup hash).
"""

import pytest

from app.core.config import ConfigurationError
from app.core.encryption import DecryptionFormatError, PhoneVault, normalize_phone


class TestNormalizePhone:
    def test_strips_provider_prefix_and_separators(self):
        """Provider prefix, spaces, dashes and parentheses are removed."""
        assert normalize_phone("whatsapp:+33 6 12-34-56-78") == "+33612345678"
        assert normalize_phone("(+33) 612 345 678") == "+33612345678"

    def test_adds_leading_plus(self):
        """A bare number gets a leading +."""
        assert normalize_phone("33612345678") == "+33612345678"


class TestEncryption:
    def test_round_trip_returns_normalized_number(self, vault):
        """decrypt(encrypt(n)) gives back the normalized number."""
        encrypted = vault.encrypt_phone("whatsapp:+33 6 12 34 56 78")
        assert vault.decrypt(encrypted) == "+33612345678"

    def test_ciphertext_differs_per_call(self, vault):
        """A fresh IV makes two encryptions of the same number differ."""
        first = vault.encrypt("+33612345678")
        second = vault.encrypt("+33612345678")
        assert first != second
        assert vault.decrypt(first) == vault.decrypt(second)

    def test_ciphertext_format(self, vault):
        """Ciphertext is '<32 hex iv>:<hex payload>'."""
        iv, payload = vault.encrypt("secret").split(":")
        assert len(iv) == 32
        int(iv, 16)
        int(payload, 16)

    def test_wrong_field_count_raises(self, vault):
        """Malformed ciphertext raises a format error."""
        with pytest.raises(DecryptionFormatError):
            vault.decrypt("no-separator-here")
        with pytest.raises(DecryptionFormatError):
            vault.decrypt("aa:bb:cc")

    def test_corrupted_payload_raises(self, vault):
        """Non-hex payloads or payloads off the block size never decrypt to garbage."""
        with pytest.raises(DecryptionFormatError):
            vault.decrypt("zz:yy")
        iv = vault.encrypt("x").split(":")[0]
        with pytest.raises(DecryptionFormatError):
            vault.decrypt(f"{iv}:{'00' * 10}")

    def test_other_key_cannot_decrypt(self, vault):
        """A value encrypted under another key does not decrypt cleanly."""
        other = PhoneVault("another-secret-key-that-is-long-enough-0000")
        encrypted = other.encrypt("+33612345678")
        try:
            result = vault.decrypt(encrypted)
        except DecryptionFormatError:
            return
        assert result != "+33612345678"

    def test_short_key_rejected(self):
        """ENCRYPTION_KEY must be at least 32 characters."""
        with pytest.raises(ConfigurationError):
            PhoneVault("too-short")


class TestPhoneHash:
    def test_hash_is_deterministic(self, vault):
        """Repeated hashing yields the same digest."""
        assert vault.hash_phone("+33612345678") == vault.hash_phone("+33612345678")

    def test_hash_ignores_formatting(self, vault):
        """Every written form of a number has the same digest."""
        expected = vault.hash_phone("+33612345678")
        for variant in ["33612345678", "+33 6 12 34 56 78", "whatsapp:+33612345678", "+33 (6) 12-34-56-78"]:
            assert vault.hash_phone(variant) == expected

    def test_hash_is_sha256_hex(self, vault):
        digest = vault.hash_phone("+33612345678")
        assert len(digest) == 64
        assert "33612345678" not in digest

    def test_hash_depends_on_secret(self, vault):
        """Different secrets give different digests for the same number."""
        other = PhoneVault("another-secret-key-that-is-long-enough-0000")
        assert other.hash_phone("+33612345678") != vault.hash_phone("+33612345678")

    def test_different_numbers_differ(self, vault):
        assert vault.hash_phone("+33612345678") != vault.hash_phone("+33612345679")
