"""Choice Ranking Manager.

Why:
    Students rank up to three validated subjects. Ranks stay a contiguous
    1..k sequence: adding appends at k+1, removing renumbers the rest while
    keeping their relative order.

Concurrency:
    The checks here are a fast path with friendly errors. The repository
    repeats them while holding a per-student lock (`insert_choice_next_rank`)
    and the store has a unique `(student_id, choice_rank)` constraint, so
    concurrent adds for one student never both get the same rank.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

from identity_access.domain import AuthContext, Role
from identity_access.resolver import require_role
from internships.domain import MAX_CHOICES, SubjectStatus
from internships.errors import ChoiceLimitExceeded, DuplicateChoice, NotFound, SubjectNotAvailable


class ChoicesRepoProtocol(Protocol):
    def get_subject(self, subject_id: str) -> Optional[dict]:
        ...

    def list_choices_for_student(self, student_id: str) -> List[dict]:
        ...

    def insert_choice_next_rank(self, student_id: str, subject_id: str, *, max_choices: int) -> dict:
        ...

    def delete_choice_and_resequence(self, student_id: str, subject_id: str) -> Optional[List[dict]]:
        ...

    def list_all_choices(self) -> List[dict]:
        ...


@dataclass
class ChoicesService:
    repo: ChoicesRepoProtocol
    max_choices: int = MAX_CHOICES

    def add_choice(self, ctx: AuthContext, subject_id: str) -> dict:
        require_role(ctx, {Role.STUDENT})
        subject = self.repo.get_subject(subject_id)
        if subject is None:
            raise NotFound("subject_not_found", "Subject not found")
        if subject.get("status") != SubjectStatus.VALIDATED.value:
            raise SubjectNotAvailable()
        existing = self.repo.list_choices_for_student(ctx.user_id)
        if any(c.get("subject_id") == subject_id for c in existing):
            raise DuplicateChoice()
        if len(existing) >= self.max_choices:
            raise ChoiceLimitExceeded()
        return self.repo.insert_choice_next_rank(ctx.user_id, subject_id, max_choices=self.max_choices)

    def remove_choice(self, ctx: AuthContext, subject_id: str) -> List[dict]:
        """Delete one choice and return the renumbered remainder."""
        require_role(ctx, {Role.STUDENT})
        remaining = self.repo.delete_choice_and_resequence(ctx.user_id, subject_id)
        if remaining is None:
            raise NotFound("choice_not_found", "Choice not found")
        return remaining

    def list_choices(self, ctx: AuthContext) -> List[dict]:
        require_role(ctx, {Role.STUDENT})
        return self.repo.list_choices_for_student(ctx.user_id)

    def list_all_choices(self, ctx: AuthContext) -> List[dict]:
        require_role(ctx, {Role.ADMIN})
        return self.repo.list_all_choices()


__all__ = ["ChoicesService", "ChoicesRepoProtocol"]
