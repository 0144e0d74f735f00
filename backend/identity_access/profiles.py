"""Profile use cases: setup, name maintenance and admin moderation.

Why:
    Profiles carry the role every other use case depends on. Keeping all
    writes to that row in one service makes the escalation rule checkable in
    one place: a user can never grant themselves `admin` or `observer`, and
    cannot change their role after their profile is complete.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Protocol

from identity_access.domain import DASHBOARDS, SELF_SERVICE_ROLES, AuthContext, Profile, Role
from identity_access.resolver import require_role
from internships.errors import DomainValidationError, Forbidden, NotFound


logger = logging.getLogger("stagehub.identity_access")

NAME_MAX_LEN = 100


class ProfilesRepoProtocol(Protocol):
    def get_profile(self, user_id: str) -> Optional[dict]:
        ...

    def insert_profile(self, *, user_id: str, email: str, first_name: str, last_name: str, role: str) -> dict:
        ...

    def update_profile(self, user_id: str, changes: dict) -> Optional[dict]:
        ...

    def list_profiles(self) -> List[dict]:
        ...

    def delete_profile(self, user_id: str) -> bool:
        ...


def _normalize_name(value: object, code: str) -> str:
    if value is None or not isinstance(value, str):
        raise DomainValidationError(code, "First and last name are required")
    trimmed = value.strip()
    if not trimmed or len(trimmed) > NAME_MAX_LEN:
        raise DomainValidationError(code, "First and last name are required")
    return trimmed


def _parse_role(value: object) -> Role:
    try:
        return Role.parse(value)
    except ValueError as exc:
        raise DomainValidationError("invalid_role", "Unknown role") from exc


@dataclass
class ProfilesService:
    repo: ProfilesRepoProtocol

    def setup_profile(
        self,
        *,
        user_id: str,
        email: str,
        first_name: object,
        last_name: object,
        role: object,
    ) -> Profile:
        """Create the caller's profile or complete a pre-created row.

        Only `student` and `supervisor` can be self-selected. A row that
        already has names keeps its role; asking for a different one is
        Forbidden.
        """
        first = _normalize_name(first_name, "invalid_first_name")
        last = _normalize_name(last_name, "invalid_last_name")
        requested = _parse_role(role)
        if requested not in SELF_SERVICE_ROLES:
            raise Forbidden("role_not_self_service", "This role cannot be self-selected")

        existing = self.repo.get_profile(user_id)
        if existing is None:
            row = self.repo.insert_profile(
                user_id=user_id, email=email, first_name=first, last_name=last, role=requested.value
            )
            logger.info("Profile created user=%s role=%s", user_id, requested.value)
            return Profile.from_row(row)

        current = Profile.from_row(existing)
        changes: dict = {"first_name": first, "last_name": last}
        if current.setup_complete:
            if current.role != requested:
                raise Forbidden("role_change_forbidden", "Your role can no longer be changed")
        elif current.role in SELF_SERVICE_ROLES:
            changes["role"] = requested.value
        # Rows pre-provisioned as admin/observer keep that role.
        row = self.repo.update_profile(user_id, changes)
        if row is None:
            raise NotFound("profile_not_found")
        return Profile.from_row(row)

    def update_names(self, ctx: AuthContext, *, first_name: object, last_name: object) -> Profile:
        first = _normalize_name(first_name, "invalid_first_name")
        last = _normalize_name(last_name, "invalid_last_name")
        row = self.repo.update_profile(ctx.user_id, {"first_name": first, "last_name": last})
        if row is None:
            raise NotFound("profile_not_found")
        return Profile.from_row(row)

    def get_me(self, ctx: AuthContext) -> dict:
        data = ctx.profile.to_dict()
        data["display_name"] = ctx.profile.display_name
        data["dashboard"] = DASHBOARDS[ctx.role]
        return data

    # --- Admin moderation -------------------------------------------------

    def list_users(self, ctx: AuthContext) -> List[Profile]:
        require_role(ctx, {Role.ADMIN})
        return [Profile.from_row(r) for r in self.repo.list_profiles()]

    def set_user_role(self, ctx: AuthContext, user_id: str, role: object) -> Profile:
        require_role(ctx, {Role.ADMIN})
        new_role = _parse_role(role)
        if user_id == ctx.user_id and new_role != Role.ADMIN:
            raise Forbidden("cannot_demote_self", "Administrators cannot change their own role")
        row = self.repo.update_profile(user_id, {"role": new_role.value})
        if row is None:
            raise NotFound("user_not_found")
        logger.info("Role changed user=%s role=%s by=%s", user_id, new_role.value, ctx.user_id)
        return Profile.from_row(row)

    def delete_user(self, ctx: AuthContext, user_id: str) -> None:
        """Remove a profile row. Subjects, choices and assignments are not cascaded."""
        require_role(ctx, {Role.ADMIN})
        if user_id == ctx.user_id:
            raise Forbidden("cannot_delete_self", "Administrators cannot delete their own account")
        if not self.repo.delete_profile(user_id):
            raise NotFound("user_not_found")
        logger.info("Profile deleted user=%s by=%s", user_id, ctx.user_id)


__all__ = ["ProfilesService", "ProfilesRepoProtocol"]
