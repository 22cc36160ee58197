"""
Phone number vault: reversible encryption plus a deterministic lookup hash.

Contact identifiers are never stored in plaintext. Each value is encrypted with
AES-256-CBC under a fresh random IV (stored as ``<iv hex>:<ciphertext hex>``), so
two encryptions of the same number never match. Equality lookups go through
``hash_phone`` instead, a salted SHA-256 of the normalized number.
"""

import hashlib
import logging
import os
import re
from functools import lru_cache

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from app.core.config import settings, ConfigurationError

logger = logging.getLogger(__name__)

MIN_KEY_LENGTH = 32
_KDF_SALT = b"salt"
_HASH_STRIP_RE = re.compile(r"[\s+\-()]")
_PROVIDER_PREFIX_RE = re.compile(r"^whatsapp:", re.IGNORECASE)


class DecryptionFormatError(Exception):
    """Stored ciphertext is malformed. Treat as data corruption, not a transient fault."""
    pass


def normalize_phone(phone: str) -> str:
    """
    Canonical messaging form of a number: provider prefix removed, separators
    stripped, leading ``+`` guaranteed.
    """
    digits = _HASH_STRIP_RE.sub("", _PROVIDER_PREFIX_RE.sub("", phone.strip()))
    return f"+{digits}"


class PhoneVault:
    """
    Encrypt/decrypt contact identifiers and compute their lookup hash.

    The AES key is derived from ENCRYPTION_KEY with scrypt; the hash salt is the
    first 16 characters of the same secret.
    """

    def __init__(self, secret: str):
        if not secret or len(secret) < MIN_KEY_LENGTH:
            raise ConfigurationError(
                f"ENCRYPTION_KEY must be at least {MIN_KEY_LENGTH} characters long"
            )
        kdf = Scrypt(salt=_KDF_SALT, length=32, n=2 ** 14, r=8, p=1)
        self._key = kdf.derive(secret.encode())
        self._hash_salt = secret[:16]

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string for storage.

        Args:
            plaintext: Value to protect

        Returns:
            ``<iv hex>:<ciphertext hex>``
        """
        iv = os.urandom(16)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{ciphertext.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by ``encrypt``.

        Raises:
            DecryptionFormatError: wrong field count, bad hex, bad padding or
                non-UTF-8 payload
        """
        parts = ciphertext.split(":")
        if len(parts) != 2:
            raise DecryptionFormatError(
                f"Expected 2 fields in encrypted value, got {len(parts)}"
            )

        try:
            iv = bytes.fromhex(parts[0])
            encrypted = bytes.fromhex(parts[1])
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(encrypted) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as e:
            # bytes.fromhex, CBC IV length, PKCS7 and UTF-8 errors are all ValueErrors
            logger.error(f"Corrupted encrypted value: {e}")
            raise DecryptionFormatError(f"Corrupted encrypted value: {e}") from e

    def encrypt_phone(self, phone: str) -> str:
        """Encrypt the normalized form of a phone number."""
        return self.encrypt(normalize_phone(phone))

    def hash_phone(self, phone: str) -> str:
        """
        Deterministic SHA-256 digest of a phone number, used for indexed lookups.

        Spaces, ``+``, dashes, parentheses and the provider prefix are ignored, so
        every written form of the same number yields the same digest.
        """
        normalized = _HASH_STRIP_RE.sub("", _PROVIDER_PREFIX_RE.sub("", phone.strip()))
        return hashlib.sha256((normalized + self._hash_salt).encode("utf-8")).hexdigest()


@lru_cache
def get_phone_vault() -> PhoneVault:
    """Process-wide vault built from ENCRYPTION_KEY."""
    return PhoneVault(settings.ENCRYPTION_KEY)
