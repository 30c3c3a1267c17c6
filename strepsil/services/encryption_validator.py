"""
Encryption Key Validator

Checks that the current ENCRYPTION_KEY can decrypt the stored provider keys
and encrypted settings. A changed key otherwise only shows up later as
failed chat calls.
"""
from typing import Any, Dict

from cryptography.fernet import InvalidToken
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strepsil.models import AIProvider, Setting
from strepsil.security import SecretCipher


async def _stored_secrets(db: AsyncSession) -> list[tuple[str, str]]:
    """(label, ciphertext) for every encrypted value in the database."""
    providers = await db.execute(
        select(AIProvider).where(AIProvider.api_key_encrypted.is_not(None))
    )
    secrets = [(f"provider:{p.name}", p.api_key_encrypted) for p in providers.scalars().all()]

    encrypted_settings = await db.execute(
        select(Setting).where(Setting.encrypted.is_(True), Setting.value.is_not(None))
    )
    secrets.extend((f"setting:{s.key}", s.value) for s in encrypted_settings.scalars().all())
    return secrets


async def validate_encryption_key(db: AsyncSession, cipher: SecretCipher) -> Dict[str, Any]:
    """
    Try to decrypt every stored secret.

    Returns:
        Dict with status and details:
        - status: "ok" | "warning" | "error"
        - message: Human-readable status
        - total_secrets: Number of encrypted values in the database
        - decryptable: Number that can be decrypted
        - failed: Labels of values that cannot be decrypted
    """
    secrets = await _stored_secrets(db)
    total = len(secrets)
    if total == 0:
        return {
            "status": "ok",
            "message": "No encrypted values stored",
            "total_secrets": 0,
            "decryptable": 0,
            "failed": [],
        }

    failed = []
    for label, ciphertext in secrets:
        try:
            cipher.decrypt(ciphertext)
        except (InvalidToken, ValueError):
            failed.append(label)

    decryptable = total - len(failed)
    if not failed:
        status, message = "ok", f"All {total} encrypted values can be decrypted"
    elif decryptable > 0:
        status, message = "warning", f"{len(failed)} of {total} encrypted values cannot be decrypted"
    else:
        status, message = "error", "ENCRYPTION_KEY mismatch - cannot decrypt stored values"

    return {
        "status": status,
        "message": message,
        "total_secrets": total,
        "decryptable": decryptable,
        "failed": failed,
    }


async def get_encryption_health(db: AsyncSession, cipher: SecretCipher) -> Dict[str, Any]:
    """
    Lighter check for the health endpoint: decrypt one stored provider key.
    """
    result = await db.execute(
        select(AIProvider).where(AIProvider.api_key_encrypted.is_not(None)).limit(1)
    )
    provider = result.scalar_one_or_none()
    if provider is None:
        return {"status": "ok", "message": "No provider keys configured"}

    try:
        cipher.decrypt(provider.api_key_encrypted)
    except InvalidToken:
        return {"status": "error", "message": "ENCRYPTION_KEY mismatch - cannot decrypt provider keys"}
    return {"status": "ok", "message": "Encryption key valid"}
