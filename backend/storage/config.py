"""
Centralized storage configuration for subject PDFs.

Intent:
    Single source of truth for the bucket name, the upload size cap and the
    signed URL lifetimes, so the files use cases and bucket bootstrap cannot
    drift apart.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


SUBJECT_PDF_BUCKET_DEFAULT = "subject-pdfs"
SUBJECT_PDF_MAX_UPLOAD_BYTES_CONTRACT = 10 * 1024 * 1024
SIGNED_URL_DEFAULT_TTL = 300
SIGNED_URL_MAX_TTL_CONTRACT = 3600


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_subject_pdf_bucket() -> str:
    """Return the bucket for subject PDFs (env: SUBJECT_PDF_BUCKET)."""
    return (os.getenv("SUBJECT_PDF_BUCKET") or SUBJECT_PDF_BUCKET_DEFAULT).strip()


def get_subject_pdf_max_upload_bytes() -> int:
    """Maximum PDF upload size (default/clamped 10 MiB)."""
    contract_max = SUBJECT_PDF_MAX_UPLOAD_BYTES_CONTRACT
    return _parse_int_env("SUBJECT_PDF_MAX_UPLOAD_BYTES", contract_max, contract_max=contract_max)


def get_signed_url_max_ttl() -> int:
    return _parse_int_env("SIGNED_URL_MAX_TTL", SIGNED_URL_MAX_TTL_CONTRACT, contract_max=SIGNED_URL_MAX_TTL_CONTRACT)


def get_signed_url_default_ttl() -> int:
    return _parse_int_env("SIGNED_URL_DEFAULT_TTL", SIGNED_URL_DEFAULT_TTL, contract_max=get_signed_url_max_ttl())


__all__ = [
    "SUBJECT_PDF_BUCKET_DEFAULT",
    "get_subject_pdf_bucket",
    "get_subject_pdf_max_upload_bytes",
    "get_signed_url_default_ttl",
    "get_signed_url_max_ttl",
]
