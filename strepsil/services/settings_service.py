"""
Application settings service - manages the settings key/value table.
"""
import logging
from typing import Any, Optional

from cryptography.fernet import InvalidToken
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from strepsil.config import settings as app_settings
from strepsil.database import get_db
from strepsil.models import Setting
from strepsil.security import SecretCipher, get_cipher

logger = logging.getLogger(__name__)

SETUP_COMPLETED = "setup_completed"
APP_NAME = "app_name"
APP_VERSION = "app_version"

DEFAULT_SETTINGS = {
    SETUP_COMPLETED: "false",
    APP_NAME: app_settings.APP_NAME,
    APP_VERSION: app_settings.APP_VERSION,
}


def to_setting_value(value: Any) -> str:
    """Settings are stored as text; booleans use lowercase true/false."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SettingsService:
    """Service for reading and writing application settings."""

    def __init__(self, db: AsyncSession, cipher: SecretCipher):
        self.db = db
        self.cipher = cipher

    async def _get_row(self, key: str) -> Optional[Setting]:
        result = await self.db.execute(select(Setting).where(Setting.key == key))
        return result.scalar_one_or_none()

    def _plain_value(self, row: Setting) -> Optional[str]:
        if not row.encrypted or row.value is None:
            return row.value
        try:
            return self.cipher.decrypt(row.value)
        except InvalidToken:
            logger.warning("Setting cannot be decrypted", extra={"key": row.key})
            return None

    async def get(self, key: str) -> Optional[str]:
        """Return the decrypted value, or None if the key is not set or no
        longer decrypts with the current key."""
        row = await self._get_row(key)
        if row is None:
            return None
        return self._plain_value(row)

    async def set(self, key: str, value: Any, encrypted: bool = False) -> Setting:
        """Insert or replace a setting."""
        text = to_setting_value(value)
        stored = self.cipher.encrypt(text) if encrypted else text

        row = await self._get_row(key)
        if row is None:
            row = Setting(key=key)
            self.db.add(row)
        row.value = stored
        row.encrypted = encrypted
        await self.db.commit()
        logger.info("Setting updated", extra={"key": key, "encrypted": encrypted})
        return row

    async def get_all(self) -> dict[str, Optional[str]]:
        """All settings by key, encrypted ones decrypted (None when they cannot be)."""
        result = await self.db.execute(select(Setting).order_by(Setting.key))
        return {row.key: self._plain_value(row) for row in result.scalars().all()}

    async def is_setup_completed(self) -> bool:
        return await self.get(SETUP_COMPLETED) == "true"

    async def seed_defaults(self) -> list[str]:
        """Write default settings that are not present yet."""
        created = []
        for key, value in DEFAULT_SETTINGS.items():
            if await self._get_row(key) is None:
                self.db.add(Setting(key=key, value=value, encrypted=False))
                created.append(key)
        if created:
            await self.db.commit()
        return created


def get_settings_service(
    db: AsyncSession = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
) -> SettingsService:
    return SettingsService(db, cipher)
