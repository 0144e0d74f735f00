"""Assignment Allocator.

Why:
    An administrator pairs one student with one subject. Both sides are
    unique: a student holds at most one assignment and a subject is given to
    at most one student. The existence checks below produce the messages the
    admin dashboard shows; the unique indexes in the store remain the source
    of truth and a lost race surfaces as `Conflict`.

Notifications are never automatic: `notify_assignment` is a separate,
explicitly triggered action.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Protocol

from identity_access.domain import AuthContext, Role
from identity_access.resolver import require_role
from internships.domain import SubjectStatus
from internships.errors import (
    DomainValidationError,
    NotFound,
    StudentAlreadyAssigned,
    SubjectAlreadyAssigned,
)
from internships.notifications import NotificationDispatcher, NotificationKind, app_public_url


logger = logging.getLogger("stagehub.web")


class AssignmentsRepoProtocol(Protocol):
    def get_profile(self, user_id: str) -> Optional[dict]:
        ...

    def get_subject(self, subject_id: str) -> Optional[dict]:
        ...

    def get_assignment(self, assignment_id: str) -> Optional[dict]:
        ...

    def get_assignment_for_student(self, student_id: str) -> Optional[dict]:
        ...

    def get_assignment_for_subject(self, subject_id: str) -> Optional[dict]:
        ...

    def insert_assignment(self, *, student_id: str, subject_id: str, assigned_by: str) -> dict:
        ...

    def delete_assignment(self, assignment_id: str) -> bool:
        ...

    def list_assignments(self) -> List[dict]:
        ...


def _full_name(person: Optional[dict]) -> str:
    if not person:
        return ""
    parts = [str(person.get(k) or "").strip() for k in ("first_name", "last_name")]
    name = " ".join(p for p in parts if p)
    return name or str(person.get("email") or "")


@dataclass
class AssignmentsService:
    repo: AssignmentsRepoProtocol
    notifier: Optional[NotificationDispatcher] = None

    def create_assignment(self, ctx: AuthContext, *, student_id: str, subject_id: str) -> dict:
        require_role(ctx, {Role.ADMIN})
        student = self.repo.get_profile(student_id)
        if student is None:
            raise NotFound("student_not_found", "Student not found")
        if student.get("role") != Role.STUDENT.value:
            raise DomainValidationError("not_a_student", "Assignments can only be made to students")
        subject = self.repo.get_subject(subject_id)
        if subject is None:
            raise NotFound("subject_not_found", "Subject not found")

        if self.repo.get_assignment_for_student(student_id) is not None:
            raise StudentAlreadyAssigned()
        if self.repo.get_assignment_for_subject(subject_id) is not None:
            raise SubjectAlreadyAssigned()
        if subject.get("status") != SubjectStatus.VALIDATED.value:
            raise DomainValidationError("subject_not_validated", "Only validated subjects can be assigned")
        row = self.repo.insert_assignment(student_id=student_id, subject_id=subject_id, assigned_by=ctx.user_id)
        logger.info("Assignment created id=%s subject=%s by=%s", row.get("id"), subject_id, ctx.user_id)
        return self.repo.get_assignment(row["id"]) or row

    def delete_assignment(self, ctx: AuthContext, assignment_id: str) -> None:
        """Remove an assignment. Student choices are left untouched."""
        require_role(ctx, {Role.ADMIN})
        if not self.repo.delete_assignment(assignment_id):
            raise NotFound("assignment_not_found", "Assignment not found")
        logger.info("Assignment deleted id=%s by=%s", assignment_id, ctx.user_id)

    def list_assignments(self, ctx: AuthContext) -> List[dict]:
        require_role(ctx, {Role.ADMIN, Role.OBSERVER})
        return self.repo.list_assignments()

    def notify_assignment(self, ctx: AuthContext, assignment_id: str) -> dict:
        """Send the confirmation e-mail to the assigned student.

        Delivery problems are reported as `sent=False`; they are not errors.
        """
        require_role(ctx, {Role.ADMIN})
        assignment = self.repo.get_assignment(assignment_id)
        if assignment is None:
            raise NotFound("assignment_not_found", "Assignment not found")
        student = assignment.get("student") or {}
        subject = assignment.get("subject") or {}
        recipient = str(student.get("email") or "").strip()
        if not recipient:
            return {"sent": False, "message": "Student has no e-mail address"}
        if self.notifier is None:
            return {"sent": False, "message": "Notifications are not configured"}
        data = {
            "student_name": _full_name(student),
            "subject_title": subject.get("title"),
            "supervisor_name": subject.get("main_supervisor_name"),
            "app_url": app_public_url(),
        }
        try:
            result = self.notifier.send(NotificationKind.ASSIGNMENT_CONFIRMATION, recipient, data)
        except Exception:
            logger.exception("Assignment notification failed id=%s", assignment_id)
            return {"sent": False, "message": "Notification failed"}
        return {"sent": bool(result.ok), "message": result.message}


__all__ = ["AssignmentsService", "AssignmentsRepoProtocol"]
