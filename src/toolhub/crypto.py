"""Passphrase-based symmetric encryption for stored credentials.

Ciphertext layout: ``<salt>.<fernet token>``, both base64url. The Fernet
key is derived from the passphrase with PBKDF2-HMAC-SHA256 and a fresh
random salt per message, so two encryptions of the same plaintext differ.
"""

import base64
import binascii
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .exceptions import ConfigurationError

_SALT_BYTES = 16
_KDF_ITERATIONS = 100_000
_SEPARATOR = "."


def _require_passphrase(passphrase: str | None) -> str:
    if not passphrase:
        raise ConfigurationError("Encryption key is required")
    return passphrase


def _derive_fernet(passphrase: str, salt: bytes) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=_KDF_ITERATIONS,
    )
    key = base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))
    return Fernet(key)


def encrypt(plaintext: str, passphrase: str | None) -> str:
    """Encrypt ``plaintext`` with ``passphrase``.

    Raises:
        ConfigurationError: If passphrase is missing or empty.
    """
    passphrase = _require_passphrase(passphrase)
    salt = os.urandom(_SALT_BYTES)
    token = _derive_fernet(passphrase, salt).encrypt(plaintext.encode("utf-8"))
    return f"{base64.urlsafe_b64encode(salt).decode('ascii')}{_SEPARATOR}{token.decode('ascii')}"


def decrypt(ciphertext: str, passphrase: str | None) -> str:
    """Decrypt ``ciphertext`` with ``passphrase``.

    A wrong passphrase or a malformed ciphertext yields ``""`` instead of
    raising; callers treat an empty result as "credential absent".

    Raises:
        ConfigurationError: If passphrase is missing or empty.
    """
    passphrase = _require_passphrase(passphrase)
    salt_b64, sep, token = ciphertext.partition(_SEPARATOR)
    if not sep or not token:
        return ""
    try:
        salt = base64.urlsafe_b64decode(salt_b64.encode("ascii"))
        plaintext = _derive_fernet(passphrase, salt).decrypt(token.encode("ascii"))
        return plaintext.decode("utf-8")
    except (InvalidToken, binascii.Error, UnicodeError, ValueError):
        return ""


class CredentialCipher:
    """Cipher bound to one passphrase."""

    def __init__(self, passphrase: str | None):
        self.passphrase = _require_passphrase(passphrase)

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self.passphrase)

    def decrypt(self, ciphertext: str) -> str:
        return decrypt(ciphertext, self.passphrase)
