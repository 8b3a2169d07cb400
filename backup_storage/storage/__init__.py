"""Storage abstraction layer for backup artifacts."""

from functools import lru_cache

from backup_storage.core.config import Settings, get_settings
from backup_storage.core.logging_config import setup_logging
from .local import LocalStorageBackend
from .paths import contained_path
from .protocol import BatchDeleter, RemoteStorage, StorageLogger
from .types import RemoteFile


def create_storage(settings: Settings) -> RemoteStorage:
    """Build the storage backend selected by REMOTE_STORAGE.

    The returned backend is not connected yet; call connect() first.

    Raises:
        ValueError: If unknown storage backend is configured
    """
    if settings.REMOTE_STORAGE == "local":
        return LocalStorageBackend(settings.local_config())
    raise ValueError(f"Unknown storage backend: {settings.REMOTE_STORAGE}")


@lru_cache()
def get_storage() -> RemoteStorage:
    """Process-wide backend built from environment settings.

    Logging is configured from the same settings before the backend is built.
    """
    settings = get_settings()
    setup_logging(settings)
    return create_storage(settings)


__all__ = [
    "create_storage",
    "get_storage",
    "contained_path",
    "BatchDeleter",
    "LocalStorageBackend",
    "RemoteFile",
    "RemoteStorage",
    "StorageLogger",
]
