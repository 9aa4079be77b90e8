"""AEAD cipher engine for photo payloads.

Blob layout (the AES-GCM "combined" representation):
- 12 bytes: random nonce, fresh for every call
- N bytes: ciphertext
- 16 bytes: GCM authentication tag

The nonce travels with the blob, so no sidecar metadata is needed to decrypt.
Decryption fails closed: any tag mismatch, truncation or wrong key raises
AuthenticationFailedError and never returns partial plaintext.
"""
import base64
import binascii
import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import AuthenticationFailedError, EncryptionFailedError
from ..core.hashing import calculate_sha256_bytes


NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


class CipherEngine:
    """Stateless AES-256-GCM encryption plus SHA-256 integrity digests."""

    def encrypt(self, plaintext: bytes, key: bytes) -> bytes:
        """
        Encrypt ``plaintext`` and return ``nonce || ciphertext || tag``.

        Identical plaintexts yield different blobs because the nonce is random.
        """
        if len(key) != KEY_SIZE:
            raise EncryptionFailedError(f"key must be {KEY_SIZE} bytes")
        try:
            aead = AESGCM(key)
            nonce = os.urandom(NONCE_SIZE)
            ct = aead.encrypt(nonce, bytes(plaintext), None)
        except (ValueError, TypeError, OverflowError) as e:
            raise EncryptionFailedError(f"encryption failed: {e}") from e
        return nonce + ct

    def decrypt(self, blob: bytes, key: bytes) -> bytes:
        """
        Verify and decrypt a blob produced by :meth:`encrypt`.

        Every failure mode surfaces as the same AuthenticationFailedError.
        """
        if len(blob) < NONCE_SIZE + TAG_SIZE or len(key) != KEY_SIZE:
            raise AuthenticationFailedError("authentication failed")
        nonce, ct = bytes(blob[:NONCE_SIZE]), bytes(blob[NONCE_SIZE:])
        try:
            return AESGCM(key).decrypt(nonce, ct, None)
        except (InvalidTag, ValueError) as e:
            raise AuthenticationFailedError("authentication failed") from e

    def digest(self, data: bytes) -> str:
        """Return the lowercase hex SHA-256 of ``data``."""
        return calculate_sha256_bytes(data)

    def verify_digest(self, data: bytes, expected_hex: str) -> bool:
        """True only when ``expected_hex`` equals the full digest of ``data``."""
        actual = self.digest(data)
        expected = expected_hex.lower()
        if len(expected) != len(actual):
            return False
        return hmac.compare_digest(actual.encode("ascii"), expected.encode("ascii", "replace"))

    # ------------------------------------------------------------------
    # Text helpers for short metadata strings
    # ------------------------------------------------------------------

    def encrypt_text(self, text: str, key: bytes) -> str:
        """Encrypt a UTF-8 string and return the blob as base64 text."""
        blob = self.encrypt(text.encode("utf-8"), key)
        return base64.b64encode(blob).decode("ascii")

    def decrypt_text(self, token: str, key: bytes) -> str:
        try:
            blob = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AuthenticationFailedError("authentication failed") from e
        raw = self.decrypt(blob, key)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AuthenticationFailedError("decrypted text is not valid UTF-8") from e
