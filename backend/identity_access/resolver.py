"""
Identity & Profile Resolver.

Why:
    Every API call needs the same two answers: who is calling, and which role
    do they hold. Resolving both once per request into an `AuthContext` keeps
    role checks in one place (`require_role`) instead of scattered string
    comparisons in route handlers.

Behavior:
    - `resolve_caller` turns the session user (set by the auth middleware)
      into an `AuthContext`; raises Unauthenticated without a session and
      ProfileMissing when the identity has no profile row yet, or only the
      nameless row created at sign-up.
    - `require_role` raises Forbidden when the caller's role is not allowed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol

from identity_access.domain import AuthContext, Profile, Role
from internships.errors import Forbidden, ProfileMissing, Unauthenticated


class ProfileLookupProtocol(Protocol):
    def get_profile(self, user_id: str) -> Optional[dict]:
        ...


@dataclass
class ProfileResolver:
    repo: ProfileLookupProtocol

    def resolve_caller(self, session_user: Optional[Mapping[str, object]]) -> AuthContext:
        if not session_user:
            raise Unauthenticated()
        user_id = str(session_user.get("sub") or "").strip()
        if not user_id:
            raise Unauthenticated()
        email = str(session_user.get("email") or "")
        row = self.repo.get_profile(user_id)
        if not row:
            raise ProfileMissing()
        profile = Profile.from_row(row)
        # Rows created at sign-up carry no names until setup has run.
        if not profile.setup_complete:
            raise ProfileMissing()
        return AuthContext(user_id=user_id, email=email or profile.email, profile=profile)


def require_role(ctx_or_profile: AuthContext | Profile, allowed: Iterable[Role]) -> None:
    """Raise Forbidden unless the caller's role is one of `allowed`."""
    profile = ctx_or_profile.profile if isinstance(ctx_or_profile, AuthContext) else ctx_or_profile
    if profile.role not in frozenset(allowed):
        raise Forbidden("role_not_allowed", "Your role does not allow this action")


__all__ = ["ProfileResolver", "ProfileLookupProtocol", "require_role"]
