import base64
from typing import Optional, Protocol

from cryptography.fernet import Fernet

from strepsil.config import settings


class SecretCipher(Protocol):
    """At-rest transform for stored secrets."""

    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


def _fernet_key(secret: str) -> bytes:
    # Fernet needs 32 url-safe base64 encoded bytes
    key = secret.encode()
    if len(key) < 32:
        key = key.ljust(32, b"0")
    return base64.urlsafe_b64encode(key[:32])


class FernetCipher:
    """Fernet-based cipher keyed from ENCRYPTION_KEY."""

    def __init__(self, secret: str):
        self._fernet = Fernet(_fernet_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        return self._fernet.decrypt(ciphertext.encode()).decode()


def get_cipher() -> SecretCipher:
    """FastAPI dependency returning the configured cipher."""
    return FernetCipher(settings.ENCRYPTION_KEY)


def mask_secret(value: Optional[str]) -> str:
    """Mask a secret for display, keeping the last four characters."""
    if not value:
        return ""
    return "****" + value[-4:] if len(value) > 4 else "****"
