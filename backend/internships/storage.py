"""Storage adapter interface for subject PDFs."""
from __future__ import annotations

from typing import Any, Dict, Protocol


class StorageAdapterProtocol(Protocol):
    """Protocol describing the object storage used for subject PDFs."""

    def upload_object(self, *, bucket: str, key: str, body: bytes, content_type: str, upsert: bool = False) -> None: ...

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> Dict[str, Any]: ...


class NullStorageAdapter:
    """Fallback adapter that signals the storage backend is not configured."""

    def upload_object(self, *, bucket: str, key: str, body: bytes, content_type: str, upsert: bool = False) -> None:  # noqa: D401
        raise RuntimeError("storage_adapter_not_configured")

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> Dict[str, Any]:  # noqa: D401
        raise RuntimeError("storage_adapter_not_configured")


__all__ = ["StorageAdapterProtocol", "NullStorageAdapter"]
