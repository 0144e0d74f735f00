"""
Profile API routes: who am I, profile setup, name changes, admin moderation.

Security:
    - `/api/profile/setup` only needs a session; every other route needs a
      resolved profile.
    - Roles can only be self-selected as student/supervisor, and only once.
    - Admin routes never cascade deletes into subjects, choices or assignments.
"""
from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from internships.errors import DomainError

from .common import auth_context, domain_error, is_uuid_like, json_private, not_found, profiles_service, require_session
from .security import csrf_guard


profiles_router = APIRouter(tags=["Profiles"])


class ProfileSetup(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    role: str = Field(..., max_length=32)


class ProfileNames(BaseModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)


class RoleChange(BaseModel):
    role: str = Field(..., max_length=32)


@profiles_router.get("/api/me")
async def get_me(request: Request):
    """Return the caller's profile and the dashboard for their role.

    Behavior:
        - 200 with profile + `dashboard`
        - 401 without session, 404 `profile_missing` before setup
    """
    ctx, err = auth_context(request)
    if err:
        return err
    return json_private(profiles_service().get_me(ctx))


@profiles_router.post("/api/profile/setup")
async def setup_profile(request: Request, payload: ProfileSetup):
    """Create or complete the caller's profile (student or supervisor)."""
    user, err = require_session(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    try:
        profile = profiles_service().setup_profile(
            user_id=str(user["sub"]),
            email=str(user.get("email") or ""),
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
        )
    except DomainError as exc:
        return domain_error(exc)
    return json_private(profile.to_dict(), status_code=201)


@profiles_router.patch("/api/profile")
async def update_profile(request: Request, payload: ProfileNames):
    """Update first/last name. The role is not part of this contract."""
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    try:
        profile = profiles_service().update_names(ctx, first_name=payload.first_name, last_name=payload.last_name)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(profile.to_dict())


@profiles_router.get("/api/admin/users")
async def list_users(request: Request):
    ctx, err = auth_context(request)
    if err:
        return err
    try:
        users = profiles_service().list_users(ctx)
    except DomainError as exc:
        return domain_error(exc)
    return json_private([u.to_dict() for u in users])


@profiles_router.patch("/api/admin/users/{user_id}/role")
async def set_user_role(request: Request, user_id: str, payload: RoleChange):
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(user_id):
        return not_found("user_not_found")
    try:
        profile = profiles_service().set_user_role(ctx, user_id, payload.role)
    except DomainError as exc:
        return domain_error(exc)
    return json_private(profile.to_dict())


@profiles_router.delete("/api/admin/users/{user_id}")
async def delete_user(request: Request, user_id: str):
    """Delete a user's profile (admin). 409 while the user is still referenced."""
    ctx, err = auth_context(request)
    if err:
        return err
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    if not is_uuid_like(user_id):
        return not_found("user_not_found")
    try:
        profiles_service().delete_user(ctx, user_id)
    except DomainError as exc:
        return domain_error(exc)
    return json_private({"deleted": True, "id": user_id})
