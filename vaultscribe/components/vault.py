"""
AES-256-GCM encryption for provider API keys, keyed by a 4-digit PIN.

The key is stretched from the PIN with PBKDF2-HMAC-SHA256 over a per-secret
random salt. The encoded secret is base64(salt[16] + nonce[12] + ciphertext + tag[16]).
Wrong PINs and corrupted data fail with the same DecryptionFailedError.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from vaultscribe.contracts.errors import (
    DecryptionFailedError,
    InvalidDataError,
    InvalidPINError,
    KeyGenerationError,
)

logger = logging.getLogger(__name__)

SALT_SIZE = 16
NONCE_SIZE = 12
KEY_SIZE = 32
TAG_SIZE = 16
PBKDF2_ITERATIONS = 100_000
MIN_ENVELOPE_SIZE = SALT_SIZE + NONCE_SIZE + TAG_SIZE

PLAIN_PREFIX = "plain:"

_PIN_RE = re.compile(r"[0-9]{4}")


def validate_pin(pin: str) -> None:
    if not isinstance(pin, str) or _PIN_RE.fullmatch(pin) is None:
        raise InvalidPINError()


def _derive_key(pin: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(pin.encode("ascii"))


def _random_bytes(size: int, what: str) -> bytes:
    try:
        return secrets.token_bytes(size)
    except (OSError, NotImplementedError) as exc:
        raise KeyGenerationError(f"failed to generate {what}: {exc}") from exc


def encrypt(plaintext: str | bytes, pin: str) -> str:
    """Encrypt plaintext under a key derived from the PIN. Returns the base64 envelope."""
    validate_pin(pin)
    data = plaintext.encode("utf-8") if isinstance(plaintext, str) else bytes(plaintext)

    salt = _random_bytes(SALT_SIZE, "salt")
    key = _derive_key(pin, salt)
    nonce = _random_bytes(NONCE_SIZE, "nonce")
    ciphertext = AESGCM(key).encrypt(nonce, data, None)

    return base64.b64encode(salt + nonce + ciphertext).decode("ascii")


def decrypt_bytes(encoded: str, pin: str) -> bytes:
    """Decrypt a base64 envelope back to the original bytes."""
    validate_pin(pin)

    try:
        combined = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise InvalidDataError() from exc

    if len(combined) < MIN_ENVELOPE_SIZE:
        raise InvalidDataError()

    salt = combined[:SALT_SIZE]
    nonce = combined[SALT_SIZE : SALT_SIZE + NONCE_SIZE]
    ciphertext = combined[SALT_SIZE + NONCE_SIZE :]

    key = _derive_key(pin, salt)
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise DecryptionFailedError() from None


def decrypt(encoded: str, pin: str) -> str:
    plaintext = decrypt_bytes(encoded, pin)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionFailedError() from None


def resolve_secret(stored: str, pin: str | None) -> str:
    """Return the usable value of a stored credential, decrypting unless it is `plain:`-prefixed."""
    if stored.startswith(PLAIN_PREFIX):
        logger.debug("credential stored as plain text, skipping decryption")
        return stored[len(PLAIN_PREFIX) :]
    if pin is None:
        raise InvalidPINError("PIN required to decrypt API key")
    return decrypt(stored, pin)


__all__ = [
    "MIN_ENVELOPE_SIZE",
    "PBKDF2_ITERATIONS",
    "PLAIN_PREFIX",
    "decrypt",
    "decrypt_bytes",
    "encrypt",
    "resolve_secret",
    "validate_pin",
]
