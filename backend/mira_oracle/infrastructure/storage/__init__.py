"""
Storage Package for Mira Oracle

Exports the storage interface, both backends, and the process-wide
instance selected by STORAGE_BACKEND.
"""

import logging
from typing import Optional

from mira_oracle.config.settings import settings
from mira_oracle.infrastructure.storage.base import DEFAULT_PAGE_SIZE, Storage
from mira_oracle.infrastructure.storage.memory import MemoryStorage
from mira_oracle.infrastructure.storage.sql import SQLStorage


logger = logging.getLogger(__name__)

_storage_instance: Optional[Storage] = None


def get_storage() -> Storage:
    """Get or create the configured storage singleton."""
    global _storage_instance

    if _storage_instance is None:
        if settings.storage_backend == "sql":
            _storage_instance = SQLStorage()
        else:
            _storage_instance = MemoryStorage()
        logger.info(f"Using {settings.storage_backend} storage")

    return _storage_instance


async def close_storage() -> None:
    """Release the storage singleton (called on app shutdown)."""
    global _storage_instance

    if _storage_instance is not None:
        await _storage_instance.close()
        _storage_instance = None


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "Storage",
    "MemoryStorage",
    "SQLStorage",
    "get_storage",
    "close_storage",
]
