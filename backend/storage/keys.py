"""
Helpers to build and check object keys for Supabase Storage.

Conventions:
    - Subject PDFs: {owner}/{epoch_ms}.{ext} inside the subject PDF bucket.
    - Locators handed to clients are "{bucket}/{key}".

Security:
    - Sanitization removes characters outside [A-Za-z0-9._-] from segments.
    - Extensions are lowercased and filtered to alphanumerics.
    - Locators containing ".." or empty segments are rejected.
"""
from __future__ import annotations

import os
import re
import unicodedata

_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_segment(value: str, *, fallback: str = "x") -> str:
    value = value or ""
    normalized = unicodedata.normalize("NFKD", value)
    ascii_value = normalized.encode("ascii", "ignore").decode("ascii")
    sanitized = _SEGMENT_RE.sub("-", ascii_value).strip("-_.")
    return sanitized or fallback


def _sanitize_ext_from_filename(filename: str | None, default_ext: str = "") -> str:
    if not filename:
        ext = default_ext
    else:
        _, ext = os.path.splitext(os.path.basename(filename))
    ext = (ext or default_ext or "").lower().lstrip(".")
    ext = "".join(ch for ch in ext if ch.isalnum())
    return ext


def make_subject_pdf_key(*, owner_id: str, filename: str | None, epoch_ms: int) -> str:
    """Build the object key for an uploaded subject PDF.

    Returns: {owner}/{epoch_ms}.{ext} (ext defaults to "pdf")
    """
    owner = _sanitize_segment(owner_id, fallback="owner")
    ext = _sanitize_ext_from_filename(filename, default_ext="pdf") or "pdf"
    return f"{owner}/{int(epoch_ms)}.{ext}"


def split_locator(locator: str) -> tuple[str, str]:
    """Split "bucket/key" into its parts; raise ValueError("invalid_path") otherwise."""
    value = (locator or "").strip().lstrip("/")
    if not value or "\\" in value:
        raise ValueError("invalid_path")
    bucket, sep, key = value.partition("/")
    if not sep or not bucket or not key:
        raise ValueError("invalid_path")
    segments = key.split("/")
    if any(seg in ("", ".", "..") for seg in segments):
        raise ValueError("invalid_path")
    return bucket, key


__all__ = ["make_subject_pdf_key", "split_locator"]
