"""
Student choice API routes (Choice Ranking Manager adapter).

Students keep up to three ranked choices among validated subjects. Removing
a choice renumbers the remaining ones; the response carries the new list.
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from internships.errors import DomainError

from .common import auth_context, choices_service, domain_error, is_uuid_like, json_private, not_found
from .security import csrf_guard


choices_router = APIRouter(tags=["Choices"])


class ChoiceCreate(BaseModel):
    subject_id: str = Field(..., min_length=1, max_length=64)


@choices_router.get("/api/choices")
async def list_choices(request: Request):
    ctx, err = auth_context(request)
    if err:
        return err
    try:
        items = choices_service().list_choices(ctx)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(items)


@choices_router.post("/api/choices")
async def add_choice(request: Request, payload: ChoiceCreate):
    """Append a choice at the next rank.

    Behavior:
        - 201 with the new choice
        - 400 `subject_not_available` / `duplicate_choice` / `choice_limit_exceeded`
        - 404 unknown subject, 409 on a concurrent add
    """
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(payload.subject_id):
        return not_found("subject_not_found")
    try:
        choice = choices_service().add_choice(ctx, payload.subject_id)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(choice, status_code=201)


@choices_router.delete("/api/choices/{subject_id}")
async def remove_choice(request: Request, subject_id: str):
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(subject_id):
        return not_found("choice_not_found")
    try:
        remaining = choices_service().remove_choice(ctx, subject_id)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(remaining)


@choices_router.get("/api/admin/choices")
async def list_all_choices(request: Request):
    ctx, err = auth_context(request)
    if err:
        return err
    try:
        items = choices_service().list_all_choices(ctx)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(items)
