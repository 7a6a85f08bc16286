"""Storage backends for thesis documents."""

from .fallback import FALLBACK_BACKEND, LocalFallbackStorage
from .local_storage_adapter import LocalStorageAdapter
from .router import StorageRouter, create_storage_backend
from .storage_config import StorageBackendType, StorageConfig, load_storage_config

__all__ = [
    "FALLBACK_BACKEND",
    "LocalFallbackStorage",
    "LocalStorageAdapter",
    "StorageRouter",
    "create_storage_backend",
    "StorageBackendType",
    "StorageConfig",
    "load_storage_config",
]
