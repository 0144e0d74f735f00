"""Subject PDF upload and signed download URLs.

Why:
    Buckets are private. Supervisors upload a PDF through the API, the
    subject keeps the returned `bucket/key` locator, and readers exchange the
    locator for a short-lived signed URL.

Behavior:
    - Uploads never overwrite: each key embeds the owner and a millisecond
      timestamp, and the adapter is called with `upsert=False`.
    - The body must start with the `%PDF-` header whatever the declared type.
    - Storage failures surface as RuntimeError (mapped to 500 by the web
      adapter); validation failures as DomainValidationError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import time
from typing import Callable, Optional

from identity_access.domain import AuthContext, Role
from identity_access.resolver import require_role
from internships.errors import DomainValidationError, Forbidden
from internships.storage import NullStorageAdapter, StorageAdapterProtocol
from storage.config import (
    get_signed_url_default_ttl,
    get_signed_url_max_ttl,
    get_subject_pdf_bucket,
    get_subject_pdf_max_upload_bytes,
)
from storage.keys import make_subject_pdf_key, split_locator


PDF_CONTENT_TYPES = frozenset({"application/pdf", "application/x-pdf"})
PDF_MAGIC = b"%PDF-"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_pdf(filename: Optional[str], content_type: Optional[str]) -> bool:
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype in PDF_CONTENT_TYPES:
        return True
    return (filename or "").strip().lower().endswith(".pdf")


@dataclass
class FilesService:
    storage: StorageAdapterProtocol = field(default_factory=NullStorageAdapter)
    clock_ms: Callable[[], int] = _now_ms

    def upload_subject_pdf(
        self,
        ctx: AuthContext,
        *,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> dict:
        require_role(ctx, {Role.SUPERVISOR, Role.ADMIN})
        if not _is_pdf(filename, content_type):
            raise DomainValidationError("invalid_file_type", "Only PDF files are accepted")
        if not data:
            raise DomainValidationError("empty_file", "The uploaded file is empty")
        max_bytes = get_subject_pdf_max_upload_bytes()
        if len(data) > max_bytes:
            raise DomainValidationError("file_too_large", f"File exceeds {max_bytes} bytes")
        if not data.startswith(PDF_MAGIC):
            raise DomainValidationError("invalid_file_type", "The file is not a PDF document")

        bucket = get_subject_pdf_bucket()
        key = make_subject_pdf_key(owner_id=ctx.user_id, filename=filename, epoch_ms=self.clock_ms())
        self.storage.upload_object(bucket=bucket, key=key, body=data, content_type="application/pdf", upsert=False)
        return {"path": f"{bucket}/{key}", "bucket": bucket, "key": key, "size_bytes": len(data)}

    def signed_url(self, ctx: AuthContext, *, path: str, expires_in: object = None) -> dict:
        try:
            bucket, key = split_locator(path)
        except ValueError as exc:
            raise DomainValidationError("invalid_path", "Path must look like bucket/object") from exc
        if bucket != get_subject_pdf_bucket():
            raise Forbidden("bucket_not_allowed", "Access to this bucket is not allowed")
        ttl = self._clamp_ttl(expires_in)
        res = self.storage.presign_download(bucket=bucket, key=key, expires_in=ttl)
        expires_at = res.get("expires_at")
        if not expires_at:
            expires_at = (datetime.now(timezone.utc) + timedelta(seconds=ttl)).isoformat(timespec="seconds")
        return {"url": res["url"], "expires_at": expires_at, "expires_in": ttl}

    @staticmethod
    def _clamp_ttl(value: object) -> int:
        if value is None or value == "":
            return get_signed_url_default_ttl()
        if isinstance(value, bool):
            raise DomainValidationError("invalid_expires_in")
        try:
            ttl = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise DomainValidationError("invalid_expires_in", "expiresIn must be an integer") from exc
        return max(1, min(get_signed_url_max_ttl(), ttl))


__all__ = ["FilesService", "PDF_CONTENT_TYPES"]
