"""Encryption of transfer evidence (wallet numbers, Instagram handles) with Fernet."""
import base64
import binascii
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from .errors import DecryptionError

log = logging.getLogger("storefront.encryption")


def _fernet_key(secret: str | bytes) -> bytes:
    """
    Accepts a ready Fernet key (urlsafe base64 of 32 bytes) as is.
    Any other non-empty secret is stretched to 32 bytes with SHA-256.
    """
    raw = secret.encode("utf-8") if isinstance(secret, str) else secret
    if not raw:
        raise ValueError("Encryption key must not be empty.")
    try:
        if len(base64.urlsafe_b64decode(raw)) == 32:
            return raw
    except (binascii.Error, ValueError):
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(raw).digest())


class EncryptionService:
    """
    Symmetric, authenticated encryption for operator-sensitive strings.

    One instance per application, built from configuration in the lifespan
    (see storefront.main) and handed to callers through a dependency.
    decrypt() is for admin reconciliation only; customer responses use mask().
    """

    def __init__(self, key: str | bytes):
        self._fernet = Fernet(_fernet_key(key))

    @classmethod
    def from_settings(cls, settings) -> "EncryptionService":
        key = settings.wallet_transfer_enc
        if not key:
            if settings.environment == "production":
                raise RuntimeError("WALLET_TRANSFER_ENC must be set in production.")
            log.warning("WALLET_TRANSFER_ENC is not set; deriving the transfer key from SECRET_KEY.")
            key = "wallet-transfer:" + settings.secret_key
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        if not plaintext or not plaintext.strip():
            raise ValueError("Data to encrypt cannot be empty.")
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext or not ciphertext.strip():
            raise DecryptionError("Encrypted data cannot be empty.")
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise DecryptionError("Failed to decrypt data: invalid key or corrupted ciphertext.") from e

    @staticmethod
    def mask(plaintext: str | None, visible_tail: int = 3) -> str:
        """mask("01012345678", 3) -> "********678". Short values are fully masked."""
        if visible_tail < 0:
            raise ValueError("visible_tail must not be negative.")
        value = plaintext or ""
        if len(value) <= visible_tail or visible_tail == 0:
            return "*" * len(value)
        return "*" * (len(value) - visible_tail) + value[-visible_tail:]
