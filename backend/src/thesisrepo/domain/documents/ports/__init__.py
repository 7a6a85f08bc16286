"""Domain ports."""

from .object_storage_port import StorageBackendPort, UploadAttempt, UploadPayload

__all__ = ["StorageBackendPort", "UploadAttempt", "UploadPayload"]
