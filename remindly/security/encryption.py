"""AES-256-GCM encryption for the remote-store credential at rest.

The credential is sealed before the settings snapshot is written to the local
store and opened on read. Stored format: "enc:" + base64(nonce || ciphertext || tag).
Values without the prefix are plaintext (written while no key was configured).

Usage:
    from remindly.security.encryption import build_credential_cipher

    cipher = build_credential_cipher()
    stored = cipher.seal("ghp_...")
    token = cipher.open(stored)
"""

from __future__ import annotations

import base64
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from remindly.config import settings

logger = logging.getLogger(__name__)

SEALED_PREFIX = "enc:"
_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM


class FieldEncryptor:
    """AES-256-GCM encryptor for individual string fields.

    Stateless; each encrypt call generates a fresh nonce.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            msg = f"AES-256 requires a 32-byte key, got {len(key)} bytes"
            raise ValueError(msg)
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string field. Returns base64(nonce + ciphertext + tag)."""
        nonce = os.urandom(_NONCE_SIZE)
        ct = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ct).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt a base64-encoded encrypted field."""
        raw = base64.b64decode(token)
        if len(raw) < _NONCE_SIZE + 16:  # nonce + minimum GCM tag
            msg = "Invalid encrypted token: too short"
            raise ValueError(msg)
        nonce = raw[:_NONCE_SIZE]
        ct = raw[_NONCE_SIZE:]
        return self._aesgcm.decrypt(nonce, ct, None).decode("utf-8")


class CredentialCipher:
    """Seals/opens the remote credential; passthrough when no key is configured."""

    def __init__(self, encryptor: FieldEncryptor | None) -> None:
        self._encryptor = encryptor

    @property
    def enabled(self) -> bool:
        return self._encryptor is not None

    def seal(self, credential: str) -> str:
        if not credential or self._encryptor is None:
            return credential
        return SEALED_PREFIX + self._encryptor.encrypt(credential)

    def open(self, stored: str) -> str:
        """Return the plaintext credential, or "" if it cannot be decrypted."""
        if not stored.startswith(SEALED_PREFIX):
            return stored
        if self._encryptor is None:
            logger.warning("Stored credential is encrypted but ENCRYPTION_KEY is not set — treating as empty")
            return ""
        try:
            return self._encryptor.decrypt(stored[len(SEALED_PREFIX):])
        except (ValueError, InvalidTag):
            logger.warning("Stored credential could not be decrypted (key changed?) — treating as empty")
            return ""


def _load_key() -> bytes | None:
    """Load the encryption key from settings (base64-encoded)."""
    raw = settings.security.encryption_key
    if not raw:
        logger.warning("ENCRYPTION_KEY not set — remote credential will be stored unencrypted")
        return None
    try:
        key = base64.b64decode(raw)
    except ValueError:
        logger.warning("ENCRYPTION_KEY is not valid base64 — remote credential will be stored unencrypted")
        return None
    if len(key) != 32:
        logger.warning("ENCRYPTION_KEY decoded to %d bytes (expected 32) — storing credential unencrypted", len(key))
        return None
    return key


def build_credential_cipher() -> CredentialCipher:
    key = _load_key()
    return CredentialCipher(FieldEncryptor(key) if key else None)
