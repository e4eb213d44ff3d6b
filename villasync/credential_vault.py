"""
Credential Vault
Symmetric encryption for third-party API secrets stored on integrations.

Each value is encrypted with AES-256-CBC under a fresh IV and serialized as
``hex(iv):hex(ciphertext)`` so every field can be decrypted on its own.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import ENCRYPTION_KEY

logger = logging.getLogger(__name__)

IV_LENGTH = 16

# Credential fields that hold secrets and are encrypted at rest
SECRET_FIELDS = (
    "api_key",
    "api_secret",
    "access_token",
    "refresh_token",
    "client_secret",
    "password",
)

MASK = "********"


def derive_key(raw_key: str) -> bytes:
    """Pad with "0" and truncate to the 32 bytes AES-256 requires"""
    return raw_key.encode("utf-8").ljust(32, b"0")[:32]


_KEY = derive_key(ENCRYPTION_KEY)


@dataclass(frozen=True)
class Decrypted:
    value: str


@dataclass(frozen=True)
class Unchanged:
    """Decryption did not apply; ``original`` is returned as stored"""

    original: str
    reason: str = ""

    @property
    def value(self) -> str:
        return self.original


DecryptOutcome = Union[Decrypted, Unchanged]


def encrypt(plaintext: str, key: Optional[bytes] = None) -> str:
    """Encrypt a secret for storage"""
    iv = os.urandom(IV_LENGTH)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key or _KEY), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return f"{iv.hex()}:{ciphertext.hex()}"


def decrypt_outcome(ciphertext: str, key: Optional[bytes] = None) -> DecryptOutcome:
    """Decrypt a stored value, reporting whether decryption actually happened"""
    if not ciphertext or ":" not in ciphertext:
        return Unchanged(ciphertext, "not an encrypted value")

    iv_hex, _, body_hex = ciphertext.partition(":")
    try:
        iv = bytes.fromhex(iv_hex)
        body = bytes.fromhex(body_hex)
        if len(iv) != IV_LENGTH or not body:
            return Unchanged(ciphertext, "malformed ciphertext")

        decryptor = Cipher(algorithms.AES(key or _KEY), modes.CBC(iv)).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return Decrypted(plaintext.decode("utf-8"))
    except ValueError as e:
        # Bad hex, wrong key, corrupted padding or undecodable bytes
        return Unchanged(ciphertext, str(e))


def decrypt(ciphertext: str, key: Optional[bytes] = None) -> str:
    """Decrypt a stored value; anything undecryptable is returned unchanged"""
    return decrypt_outcome(ciphertext, key).value


# ============================================================================
# CREDENTIAL BUNDLES
# ============================================================================


def is_encrypted_value(value: Any) -> bool:
    """True for a value already tagged by encrypt_credentials"""
    return isinstance(value, dict) and value.get("encrypted") is True and "value" in value


def encrypt_credentials(bundle: dict) -> dict:
    """
    Encrypt the secret fields of a credential bundle for persistence.

    Values already carrying the encrypted tag are kept as-is, so saving the
    same bundle repeatedly never double-encrypts.
    """
    stored = dict(bundle)
    for field in SECRET_FIELDS:
        value = stored.get(field)
        if not value or is_encrypted_value(value):
            continue
        stored[field] = {"encrypted": True, "value": encrypt(str(value))}
    return stored


def decrypt_credentials(stored: Optional[dict]) -> dict:
    """
    Produce plaintext credentials for an adapter call.

    Only use the result inside the adapter boundary; never log or return it.
    """
    if not stored:
        return {}

    plain = dict(stored)
    for field in SECRET_FIELDS:
        value = plain.get(field)
        if not value:
            continue

        raw = value["value"] if is_encrypted_value(value) else value
        outcome = decrypt_outcome(raw)
        if isinstance(outcome, Unchanged) and is_encrypted_value(value):
            logger.warning(f"⚠️ Credential field '{field}' could not be decrypted: {outcome.reason}")
        plain[field] = outcome.value
    return plain


def mask_credentials(stored: Optional[dict]) -> dict:
    """Display-safe view of a credential bundle"""
    if not stored:
        return {}
    return {key: (MASK if key in SECRET_FIELDS and value else value) for key, value in stored.items()}
