# tokengate/crypto/symmetric.py
"""
TokenGate Crypto: Symmetric Cipher Adapter

AES-256-GCM used by the fallback path when the threshold network is
unavailable.

Blob layout:
    nonce (12B) || ciphertext || tag (16B)

The fallback key is wrapped (base64) and stored next to the ciphertext.
Anyone holding the envelope can decrypt it; the access predicate is
carried but not enforced on this path.

Usage:
    key = SymmetricCipher.generate_key()
    blob = SymmetricCipher.encrypt(b"secret", key)
    assert SymmetricCipher.decrypt(blob, key) == b"secret"

    wrapped = wrap_key(key)
    assert unwrap_key(wrapped) == key
"""

from __future__ import annotations

import base64
import binascii
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import AuthenticationError


# =============================================================================
# Constants
# =============================================================================

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes")


# =============================================================================
# Cipher
# =============================================================================

class SymmetricCipher:
    """Stateless AES-256-GCM with a fresh nonce per message."""

    @staticmethod
    def generate_key() -> bytes:
        return secrets.token_bytes(KEY_SIZE)

    @staticmethod
    def encrypt(plaintext: bytes, key: bytes, aad: Optional[bytes] = None) -> bytes:
        """
        Encrypt plaintext.

        Args:
            plaintext: Bytes to protect
            key: 32-byte key
            aad: Optional associated data

        Returns:
            nonce || ciphertext || tag
        """
        _check_key(key)
        nonce = secrets.token_bytes(NONCE_SIZE)
        return nonce + AESGCM(bytes(key)).encrypt(nonce, bytes(plaintext), aad)

    @staticmethod
    def decrypt(blob: bytes, key: bytes, aad: Optional[bytes] = None) -> bytes:
        """
        Verify and decrypt.

        Raises:
            AuthenticationError: Tag mismatch, wrong key or truncated blob
        """
        _check_key(key)
        blob = bytes(blob)
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise AuthenticationError("Ciphertext too short")

        nonce, body = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return AESGCM(bytes(key)).decrypt(nonce, body, aad)
        except InvalidTag:
            raise AuthenticationError("Authentication tag verification failed")


# =============================================================================
# Key Wrapping
# =============================================================================

def wrap_key(key: bytes) -> str:
    """Encode a raw key for storage beside the ciphertext."""
    _check_key(key)
    return base64.b64encode(bytes(key)).decode("ascii")


def unwrap_key(wrapped: str) -> bytes:
    """Recover a raw key from its stored form."""
    try:
        key = base64.b64decode(wrapped, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise AuthenticationError("Wrapped key is not valid base64")
    if len(key) != KEY_SIZE:
        raise AuthenticationError(f"Wrapped key decodes to {len(key)} bytes, expected {KEY_SIZE}")
    return key


# =============================================================================
# Test
# =============================================================================

def run_tests() -> bool:
    """Self-check for the fallback cipher."""
    print("=" * 70)
    print("TokenGate Crypto: Symmetric Cipher Test")
    print("=" * 70)

    results = {}
    key = SymmetricCipher.generate_key()

    blob = SymmetricCipher.encrypt(b"hello", key)
    results["roundtrip"] = SymmetricCipher.decrypt(blob, key) == b"hello"
    results["nonce_fresh"] = SymmetricCipher.encrypt(b"hello", key) != blob
    results["wrap"] = unwrap_key(wrap_key(key)) == key

    tampered = bytearray(blob)
    tampered[-1] ^= 0x01
    try:
        SymmetricCipher.decrypt(bytes(tampered), key)
        results["tamper"] = False
    except AuthenticationError:
        results["tamper"] = True

    for name, passed in results.items():
        print(f"  {name}: {'PASS ✓' if passed else 'FAIL ✗'}")

    all_pass = all(results.values())
    print(f"\nResult: {sum(results.values())}/{len(results)} tests passed")
    return all_pass


if __name__ == "__main__":
    run_tests()
