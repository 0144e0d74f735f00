"""
File API routes: subject PDF upload and signed download URLs.

Security:
    - Buckets stay private; clients only ever receive short-lived URLs.
    - Uploads are capped before the body is fully buffered.
    - Storage failures are logged server-side and answered with a generic 500.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, File, Query, Request, UploadFile

from internships.errors import DomainError, DomainValidationError
from storage.config import get_subject_pdf_max_upload_bytes

from .common import auth_context, domain_error, files_service, internal_error, json_private
from .security import csrf_guard


files_router = APIRouter(tags=["Files"])
logger = logging.getLogger("stagehub.storage")


@files_router.post("/api/files/subject-pdf")
async def upload_subject_pdf(request: Request, file: UploadFile = File(...)):
    """Upload a subject PDF (supervisor or admin) and return its `bucket/key` path.

    Behavior:
        - 201 with `{path, bucket, key, size_bytes}`
        - 400 for non-PDF, empty or oversized files
        - 500 when storage is not configured or rejects the upload
    """
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    max_bytes = get_subject_pdf_max_upload_bytes()
    data = await file.read(max_bytes + 1)
    try:
        if len(data) > max_bytes:
            raise DomainValidationError("file_too_large", f"File exceeds {max_bytes} bytes")
        result = files_service().upload_subject_pdf(
            ctx, filename=file.filename, content_type=file.content_type, data=data
        )
    except DomainError as exc:
        return domain_error(exc)
    except RuntimeError as exc:
        logger.exception("Subject PDF upload failed: %s", exc)
        return internal_error("Upload failed")
    return json_private(result, status_code=201)


@files_router.get("/api/files/signed-url")
async def signed_url(
    request: Request,
    path: str = Query(..., max_length=500),
    expires_in: Optional[str] = Query(default=None, alias="expiresIn"),
):
    """Exchange a `bucket/key` locator for a signed URL (any profile)."""
    ctx, err = auth_context(request)
    if err:
        return err
    try:
        result = files_service().signed_url(ctx, path=path, expires_in=expires_in)
    except DomainError as exc:
        return domain_error(exc)
    except RuntimeError as exc:
        logger.exception("Signed URL creation failed: %s", exc)
        return internal_error("Could not create a signed URL")
    return json_private(result)
