"""
Shared helper for wiring the Supabase-backed storage adapter.

Why:
    App startup may occur before Supabase is reachable locally, leaving the
    storage adapter unset. This helper is idempotent and can be called again
    later to (re)attempt wiring when configuration is present.

Security:
    Requires SUPABASE_SERVICE_ROLE_KEY and SUPABASE_URL. Only server-side
    adapters are wired; no secrets are exposed to clients.
"""
from __future__ import annotations

import logging
import os
from urllib.parse import urlparse


logger = logging.getLogger("stagehub.web")


def _is_local(url: str) -> bool:
    return (urlparse(url).hostname or "").lower() in {"127.0.0.1", "localhost"}


def _build_client(url: str, key: str):
    """Return a supabase client, or a storage3 client for local non-JWT keys."""
    try:
        from supabase import create_client  # type: ignore

        return create_client(url, key)
    except Exception as exc:
        force = (os.getenv("SUPABASE_FALLBACK_STORAGE3", "false").lower() == "true")
        if not (force or _is_local(url)):
            logger.warning("Supabase client unavailable: %s: %s", exc.__class__.__name__, str(exc))
            return None
        logger.warning("Supabase client unavailable: %s; falling back to storage3", exc.__class__.__name__)
    from storage3._sync.client import SyncStorageClient  # type: ignore

    headers = {"Authorization": f"Bearer {key}", "apikey": key}
    return SyncStorageClient(f"{url.rstrip('/')}/storage/v1", headers)


def wire_supabase_adapter_if_configured() -> bool:
    """Attempt to wire the Supabase storage adapter into the routers.

    Behavior:
        - Returns True when wiring succeeds.
        - Returns False when not configured or any error occurs (keeps Null).
    """
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        return False
    try:
        from internships.storage_supabase import SupabaseStorageAdapter
        from routes import common as _common  # type: ignore

        client = _build_client(url, key)
        if client is None:
            return False
        _common.set_storage_adapter(SupabaseStorageAdapter(client))
        logger.info("Storage adapter wired: Supabase")
    except Exception as exc:  # pragma: no cover - defensive logging
        logger.warning("Storage wiring skipped due to error: %s: %s", exc.__class__.__name__, str(exc))
        return False

    from storage.bootstrap import ensure_buckets_from_env

    ensure_buckets_from_env()
    return True


__all__ = ["wire_supabase_adapter_if_configured"]
