"""
Identity domain: roles, profiles and the per-request caller context.

Why:
- Centralize the closed set of roles so routes check capabilities instead of
  comparing free-form strings.
- Keep terms aligned with the glossary (Profile, AuthContext) and used
  consistently across modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class Role(str, Enum):
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    OBSERVER = "observer"

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Return the Role for `value` or raise ValueError("invalid_role")."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError("invalid_role")


# Roles a user may pick for themselves during profile setup.
SELF_SERVICE_ROLES = frozenset({Role.STUDENT, Role.SUPERVISOR})

# Dashboard shown by the UI for each role.
DASHBOARDS = {
    Role.STUDENT: "student_subject_browser",
    Role.SUPERVISOR: "supervisor_dashboard",
    Role.ADMIN: "admin_dashboard",
    Role.OBSERVER: "observer_dashboard",
}


@dataclass(frozen=True)
class Profile:
    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: Role
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        return cls(
            id=str(row["id"]),
            email=str(row.get("email") or ""),
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            role=Role.parse(row.get("role")),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @property
    def display_name(self) -> str:
        parts = [p.strip() for p in (self.first_name or "", self.last_name or "") if p and p.strip()]
        if parts:
            return " ".join(parts)
        return self.email

    @property
    def setup_complete(self) -> bool:
        return bool((self.first_name or "").strip() and (self.last_name or "").strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class AuthContext:
    """Caller identity resolved once per request and passed to every use case."""

    user_id: str
    email: str
    profile: Profile

    @property
    def role(self) -> Role:
        return self.profile.role

    def has_role(self, *roles: Role) -> bool:
        return self.profile.role in roles


__all__ = [
    "Role",
    "SELF_SERVICE_ROLES",
    "DASHBOARDS",
    "Profile",
    "AuthContext",
]
