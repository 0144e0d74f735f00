"""
Subject API routes (Subject Lifecycle Manager adapter).

Why:
    Supervisors submit and edit subjects, administrators review them,
    students and observers browse. The router only parses input and maps
    domain errors; status rules live in `SubjectsService`.

Notes:
    - `GET /api/subjects` is role-dependent: students see validated
      subjects, supervisors their own, admins/observers everything
      (optionally filtered with `?status=`).
    - A supervisor edit returns the subject to `pending`; the response shows
      the new status.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field

from internships.errors import DomainError

from .common import auth_context, domain_error, is_uuid_like, json_private, not_found, subjects_service
from .security import csrf_guard


subjects_router = APIRouter(tags=["Subjects"])


class SubjectFields(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=20000)
    team_info: Optional[str] = Field(default=None, max_length=20000)
    main_supervisor_name: Optional[str] = Field(default=None, max_length=500)
    main_supervisor_email: Optional[str] = Field(default=None, max_length=320)
    co_supervisors_names: Optional[str] = Field(default=None, max_length=500)
    co_supervisors_emails: Optional[str] = Field(default=None, max_length=500)
    pdf_path: Optional[str] = Field(default=None, max_length=500)


class SubjectReview(BaseModel):
    status: str = Field(..., max_length=32)
    comment: Optional[str] = Field(default=None, max_length=20000)


@subjects_router.get("/api/subjects")
async def list_subjects(request: Request, status: Optional[str] = None):
    ctx, err = auth_context(request)
    if err:
        return err
    try:
        items = subjects_service().list_subjects(ctx, status)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(items)


@subjects_router.post("/api/subjects")
async def create_subject(request: Request, payload: SubjectFields):
    """Create a subject (supervisor or admin).

    Behavior:
        - 201 with the subject (`status=pending`)
        - 400 when a required field is missing or the e-mail is malformed
        - 403 for other roles
    """
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    try:
        subject = subjects_service().create_subject(ctx, **payload.model_dump(exclude_unset=True))
    except DomainError as exc:
        return domain_error(exc)
    return json_private(subject, status_code=201)


@subjects_router.get("/api/subjects/{subject_id}")
async def get_subject(request: Request, subject_id: str):
    ctx, err = auth_context(request)
    if err:
        return err
    if not is_uuid_like(subject_id):
        return not_found("subject_not_found")
    try:
        subject = subjects_service().get_subject(ctx, subject_id)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(subject)


@subjects_router.patch("/api/subjects/{subject_id}")
async def update_subject(request: Request, subject_id: str, payload: SubjectFields):
    """Edit a subject (owner or admin); only the provided fields change."""
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(subject_id):
        return not_found("subject_not_found")
    try:
        subject = subjects_service().update_subject(ctx, subject_id, **payload.model_dump(exclude_unset=True))
    except DomainError as exc:
        return domain_error(exc)
    return json_private(subject)


@subjects_router.post("/api/subjects/{subject_id}/review")
async def review_subject(request: Request, subject_id: str, payload: SubjectReview):
    """Set a review decision (admin). A comment is required for needs_modification/refused.

    The supervisor is notified for validated/needs_modification/refused;
    delivery problems never change the response.
    """
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(subject_id):
        return not_found("subject_not_found")
    try:
        subject = subjects_service().review_subject(ctx, subject_id, status=payload.status, comment=payload.comment)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(subject)
