"""
Supabase Storage bootstrap helpers.

Intent:
    Ensure the subject PDF bucket exists on startup (dev/stage friendly).

Security & Safety:
    - Controlled by `AUTO_CREATE_STORAGE_BUCKETS=true` env flag.
    - Requires server-side `SUPABASE_SERVICE_ROLE_KEY`.
    - Idempotent: lists buckets first, creates only missing ones (private).
"""
from __future__ import annotations

import logging
import os
from typing import Iterable

import requests

from storage.config import get_subject_pdf_bucket

_log = logging.getLogger("stagehub.storage")

_TIMEOUT = (3, 10)


def _env_flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() == "true"


def _headers(key: str) -> dict:
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def _list_bucket_names(base_url: str, key: str) -> set[str]:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    try:
        resp = requests.get(url, headers=_headers(key), timeout=_TIMEOUT)
        data = resp.json()
    except (requests.RequestException, ValueError) as exc:
        _log.warning("list buckets failed: error=%s", type(exc).__name__)
        return set()
    if not isinstance(data, list):
        return set()
    return {str(it.get("name") or it.get("id") or "") for it in data if isinstance(it, dict)}


def _create_bucket(base_url: str, key: str, name: str) -> bool:
    url = f"{base_url.rstrip('/')}/storage/v1/bucket"
    try:
        resp = requests.post(url, headers=_headers(key), json={"name": name, "public": False}, timeout=_TIMEOUT)
    except requests.RequestException as exc:
        _log.warning("create bucket '%s' failed: error=%s", name, type(exc).__name__)
        return False
    if resp.status_code >= 300:
        _log.warning("create bucket '%s' failed: status=%s", name, resp.status_code)
        return False
    _log.debug("created bucket '%s'", name)
    return True


def ensure_buckets(base_url: str, key: str, buckets: Iterable[str]) -> list[str]:
    """Create each missing bucket in `buckets`; return the names created."""
    existing = _list_bucket_names(base_url, key)
    created = []
    for name in sorted(set(buckets)):
        if not name or name in existing:
            continue
        if _create_bucket(base_url, key, name):
            created.append(name)
    return created


def ensure_buckets_from_env() -> bool:
    """Ensure the subject PDF bucket when AUTO_CREATE_STORAGE_BUCKETS=true.

    Returns False when disabled or when credentials are missing.
    """
    if not _env_flag("AUTO_CREATE_STORAGE_BUCKETS"):
        return False
    _log.warning("AUTO_CREATE_STORAGE_BUCKETS=true detected (dev/test convenience only).")
    base = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not base or not key:
        return False
    ensure_buckets(base, key, [get_subject_pdf_bucket()])
    return True


__all__ = ["ensure_buckets_from_env", "ensure_buckets"]
