"""Password hashing and encryption of secrets at rest"""
import base64
import binascii
import hashlib
import os

import bcrypt
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

SECRET_FORMAT_V1 = "v1"
_NONCE_BYTES = 12
_TAG_BYTES = 16


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(password: str, rounds: int = 12) -> str:
    """Hash plain text password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Secrets at rest
# ---------------------------------------------------------------------------

class SecretBox:
    """AES-256-GCM box keyed by SHA-256 of a server-side secret.

    Stored format: ``v1:<nonce b64>:<ciphertext b64>:<tag b64>``. The version
    prefix leaves room for key rotation or a different cipher later on.
    """

    def __init__(self, key_material: str) -> None:
        if not key_material:
            raise ValueError("Missing key material for secret encryption")
        self._key = hashlib.sha256(key_material.encode("utf-8")).digest()

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(_NONCE_BYTES)
        sealed = AESGCM(self._key).encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-_TAG_BYTES], sealed[-_TAG_BYTES:]
        return ":".join(
            [
                SECRET_FORMAT_V1,
                base64.b64encode(nonce).decode("ascii"),
                base64.b64encode(ciphertext).decode("ascii"),
                base64.b64encode(tag).decode("ascii"),
            ]
        )

    def decrypt(self, payload: str) -> str:
        """Return the plaintext, or ``""`` when the payload is unusable.

        Values without a version prefix predate encryption and are returned
        as-is.
        """
        raw = payload or ""
        if not raw:
            return ""
        if not raw.startswith(f"{SECRET_FORMAT_V1}:"):
            return raw

        parts = raw.split(":")
        if len(parts) != 4 or not all(parts[1:]):
            return ""

        try:
            nonce = base64.b64decode(parts[1], validate=True)
            ciphertext = base64.b64decode(parts[2], validate=True)
            tag = base64.b64decode(parts[3], validate=True)
            plaintext = AESGCM(self._key).decrypt(nonce, ciphertext + tag, None)
        except (binascii.Error, InvalidTag, ValueError):
            return ""
        return plaintext.decode("utf-8", errors="replace")
