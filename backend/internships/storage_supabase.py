"""
Supabase-backed storage adapter for subject PDFs.

The adapter is duck-typed so tests can pass a fake client. The client is
expected to expose `.storage.from_(bucket)` (supabase client) or `.from_(bucket)`
(storage3 SyncStorageClient) returning an object offering:

- upload(path, file, file_options) -> Any
- create_signed_url(path, expires_in) -> { signed_url | signedURL | url, expires_at? }

Security:
- The caller must ensure the client is initialized with the Service Role key.
- Buckets are private; clients receive only short-lived signed URLs.
"""
from __future__ import annotations

from typing import Any, Dict
import os
from urllib.parse import urlparse as _urlparse, urlunparse as _urlunparse

from .storage import StorageAdapterProtocol


class SupabaseStorageAdapter(StorageAdapterProtocol):
    """Storage adapter using a supabase (or storage3) client."""

    def __init__(self, client: Any):
        self._client = client

    # --- Helpers -----------------------------------------------------------------

    def _bucket(self, bucket: str) -> Any:
        c = self._client
        storage = getattr(c, "storage", None)
        if storage is not None and hasattr(storage, "from_"):
            return storage.from_(bucket)
        if hasattr(c, "from_"):
            return c.from_(bucket)
        raise RuntimeError("invalid_supabase_client")

    @staticmethod
    def _relative_key(bucket: str, key: str) -> str:
        # storage3 prepends the bucket id itself
        norm_key = key.lstrip("/")
        prefix = f"{bucket}/"
        if norm_key.startswith(prefix):
            norm_key = norm_key[len(prefix):]
        return norm_key

    @staticmethod
    def _first_key(d: Dict[str, Any], *keys: str) -> Any:
        for k in keys:
            if k in d and d[k] is not None:
                return d[k]
        return None

    # --- Protocol methods --------------------------------------------------------

    def upload_object(self, *, bucket: str, key: str, body: bytes, content_type: str, upsert: bool = False) -> None:
        """Upload bytes; with `upsert=False` an existing object is never replaced."""
        b = self._bucket(bucket)
        # Client versions differ in option spelling; string values are expected.
        opts = {
            "content-type": content_type,
            "contentType": content_type,
            "upsert": "true" if upsert else "false",
        }
        b.upload(self._relative_key(bucket, key), body, opts)

    def presign_download(self, *, bucket: str, key: str, expires_in: int) -> Dict[str, Any]:
        b = self._bucket(bucket)
        res = b.create_signed_url(self._relative_key(bucket, key), expires_in)
        url = None
        expires_at = None
        if isinstance(res, dict):
            url = self._first_key(res, "url", "signed_url", "signedURL")
            expires_at = self._first_key(res, "expires_at", "expiresAt")
            data = res.get("data")
            if (url is None or expires_at is None) and isinstance(data, dict):
                url = url or self._first_key(data, "url", "signed_url", "signedURL")
                expires_at = expires_at or self._first_key(data, "expires_at", "expiresAt")
        elif isinstance(res, (list, tuple)) and res and isinstance(res[0], dict):
            url = self._first_key(res[0], "url", "signed_url", "signedURL")
            expires_at = self._first_key(res[0], "expires_at", "expiresAt")
        if not url:
            raise RuntimeError("failed_to_presign_download")
        return {"url": self._normalize_signed_url_host(str(url)), "expires_at": expires_at}

    # --- Local helpers ---------------------------------------------------------

    def _normalize_signed_url_host(self, url: str) -> str:
        """Rewrite a signed URL onto the SUPABASE_URL host for local stacks.

        Only active with SUPABASE_REWRITE_SIGNED_URL_HOST=true. The signature is
        path-bound, so swapping scheme/host/port keeps it valid. Paths missing
        the "/storage/v1" prefix get it inserted.
        """
        base = (os.getenv("SUPABASE_URL") or "").strip()
        if not base:
            return url
        if (os.getenv("SUPABASE_REWRITE_SIGNED_URL_HOST", "false").lower() != "true"):
            return url
        src = _urlparse(url)
        dst = _urlparse(base)
        if not src.scheme or not src.netloc or not dst.hostname:
            return url
        netloc = dst.hostname
        if dst.port and ((dst.scheme == "http" and dst.port != 80) or (dst.scheme == "https" and dst.port != 443)):
            netloc = f"{netloc}:{dst.port}"
        path = src.path or "/"
        if path.startswith("/object/"):
            path = "/storage/v1" + path
        while "//" in path:
            path = path.replace("//", "/")
        return _urlunparse((dst.scheme or src.scheme, netloc, path, src.params, src.query, src.fragment))


__all__ = ["SupabaseStorageAdapter"]
