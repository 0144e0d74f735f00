"""
Assignment API routes (Assignment Allocator adapter).

Security:
    Only administrators create, delete or notify; observers may list.
    E-mails are sent only through the explicit `/notify` endpoint.
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from internships.errors import DomainError

from .common import assignments_service, auth_context, domain_error, is_uuid_like, json_private, not_found
from .security import csrf_guard


assignments_router = APIRouter(tags=["Assignments"])


class AssignmentCreate(BaseModel):
    student_id: str = Field(..., min_length=1, max_length=64)
    subject_id: str = Field(..., min_length=1, max_length=64)


@assignments_router.get("/api/assignments")
async def list_assignments(request: Request):
    ctx, err = auth_context(request)
    if err:
        return err
    try:
        items = assignments_service().list_assignments(ctx)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(items)


@assignments_router.post("/api/assignments")
async def create_assignment(request: Request, payload: AssignmentCreate):
    """Pair a student with a validated subject (admin).

    Behavior:
        - 201 with the assignment (joined summaries)
        - 400 "Student already has an assignment" / "Subject is already assigned to another student"
        - 409 when a concurrent request won the race
    """
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(payload.student_id):
        return not_found("student_not_found")
    if not is_uuid_like(payload.subject_id):
        return not_found("subject_not_found")
    try:
        assignment = assignments_service().create_assignment(
            ctx, student_id=payload.student_id, subject_id=payload.subject_id
        )
    except DomainError as exc:
        return domain_error(exc)
    return json_private(assignment, status_code=201)


@assignments_router.delete("/api/assignments/{assignment_id}")
async def delete_assignment(request: Request, assignment_id: str):
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(assignment_id):
        return not_found("assignment_not_found")
    try:
        assignments_service().delete_assignment(ctx, assignment_id)
    except DomainError as exc:
        return domain_error(exc)
    return json_private({"deleted": True, "id": assignment_id})


@assignments_router.post("/api/assignments/{assignment_id}/notify")
async def notify_assignment(request: Request, assignment_id: str):
    """Send (or resend) the confirmation e-mail; returns `{sent, message}`."""
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(assignment_id):
        return not_found("assignment_not_found")
    try:
        result = assignments_service().notify_assignment(ctx, assignment_id)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(result)
