"""
Service layer for Strepsil.

Services encapsulate business logic and database operations,
providing a clean interface for routes and other consumers.
"""
from strepsil.services.call_recorder import CallRecorder
from strepsil.services.call_store import AiCallStore
from strepsil.services.provider_service import ProviderConfigService
from strepsil.services.settings_service import SettingsService

__all__ = [
    "AiCallStore",
    "CallRecorder",
    "ProviderConfigService",
    "SettingsService",
]
