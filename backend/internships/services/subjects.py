"""Subject Lifecycle Manager (framework-independent use cases).

Why:
    Supervisors submit internship subjects, administrators review them and
    students browse the validated ones. The status rules live here rather
    than in the web adapter:

    - new subjects start `pending`;
    - only administrators set a status directly (`review_subject`);
    - an edit by a non-admin owner always sends the subject back to
      `pending`, even when it was already validated.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Protocol

from identity_access.domain import AuthContext, Role
from identity_access.resolver import require_role
from internships.domain import (
    COMMENT_REQUIRED_STATUSES,
    SubjectStatus,
    can_edit,
    looks_like_email,
    split_multi,
)
from internships.errors import DomainValidationError, Forbidden, NotFound
from internships.notifications import NotificationDispatcher, NotificationKind, app_public_url


logger = logging.getLogger("stagehub.web.subjects")


class SubjectsRepoProtocol(Protocol):
    def insert_subject(self, *, supervisor_id: str, fields: Dict[str, Any]) -> dict:
        ...

    def get_subject(self, subject_id: str) -> Optional[dict]:
        ...

    def update_subject(self, subject_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        ...

    def list_subjects(self, *, status: Optional[str] = None, supervisor_id: Optional[str] = None) -> List[dict]:
        ...


_UNSET = object()

TITLE_MAX_LEN = 200
TEXT_MAX_LEN = 20000
SHORT_MAX_LEN = 500

_REQUIRED_FIELDS = ("title", "description", "team_info", "main_supervisor_name", "main_supervisor_email")

_REVIEW_KINDS = {
    SubjectStatus.VALIDATED: NotificationKind.SUBJECT_VALIDATED,
    SubjectStatus.NEEDS_MODIFICATION: NotificationKind.SUBJECT_NEEDS_MODIFICATION,
    SubjectStatus.REFUSED: NotificationKind.SUBJECT_REFUSED,
}


def _normalize_required(value: object, field: str, *, max_len: int) -> str:
    if value is None or not isinstance(value, str):
        raise DomainValidationError(f"invalid_{field}", f"{field} is required")
    trimmed = value.strip()
    if not trimmed:
        raise DomainValidationError(f"invalid_{field}", f"{field} is required")
    if len(trimmed) > max_len:
        raise DomainValidationError(f"invalid_{field}", f"{field} is too long")
    return trimmed


def _normalize_optional(value: object, field: str, *, max_len: int = SHORT_MAX_LEN) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DomainValidationError(f"invalid_{field}")
    trimmed = value.strip()
    if len(trimmed) > max_len:
        raise DomainValidationError(f"invalid_{field}", f"{field} is too long")
    return trimmed or None


def _normalize_email(value: object) -> str:
    email = _normalize_required(value, "main_supervisor_email", max_len=320)
    if not looks_like_email(email):
        raise DomainValidationError("invalid_main_supervisor_email", "main_supervisor_email must be an e-mail address")
    return email


_NORMALIZERS = {
    "title": lambda v: _normalize_required(v, "title", max_len=TITLE_MAX_LEN),
    "description": lambda v: _normalize_required(v, "description", max_len=TEXT_MAX_LEN),
    "team_info": lambda v: _normalize_required(v, "team_info", max_len=TEXT_MAX_LEN),
    "main_supervisor_name": lambda v: _normalize_required(v, "main_supervisor_name", max_len=SHORT_MAX_LEN),
    "main_supervisor_email": _normalize_email,
    "co_supervisors_names": lambda v: _normalize_optional(v, "co_supervisors_names"),
    "co_supervisors_emails": lambda v: _normalize_optional(v, "co_supervisors_emails"),
    "pdf_path": lambda v: _normalize_optional(v, "pdf_path"),
}


def present_subject(row: dict) -> dict:
    """Add derived fields the dashboards rely on."""
    out = dict(row)
    names = split_multi(row.get("co_supervisors_names"))
    emails = split_multi(row.get("co_supervisors_emails"))
    out["co_supervisors"] = [
        {"name": names[i] if i < len(names) else None, "email": emails[i] if i < len(emails) else None}
        for i in range(max(len(names), len(emails)))
    ]
    out["can_edit"] = can_edit(row.get("status"))
    return out


@dataclass
class SubjectsService:
    """Use cases for internship subjects."""

    repo: SubjectsRepoProtocol
    notifier: Optional[NotificationDispatcher] = None

    # --- Commands ---------------------------------------------------------

    def create_subject(self, ctx: AuthContext, **fields: Any) -> dict:
        require_role(ctx, {Role.SUPERVISOR, Role.ADMIN})
        unknown = set(fields) - set(_NORMALIZERS)
        if unknown:
            raise DomainValidationError("unknown_fields", ", ".join(sorted(unknown)))
        for name in _REQUIRED_FIELDS:
            fields.setdefault(name, None)
        values = {name: _NORMALIZERS[name](value) for name, value in fields.items()}
        values["status"] = SubjectStatus.PENDING.value
        values["admin_comment"] = None
        row = self.repo.insert_subject(supervisor_id=ctx.user_id, fields=values)
        logger.info("Subject created id=%s by=%s", row.get("id"), ctx.user_id)
        return present_subject(row)

    def update_subject(
        self,
        ctx: AuthContext,
        subject_id: str,
        *,
        title: Any = _UNSET,
        description: Any = _UNSET,
        team_info: Any = _UNSET,
        main_supervisor_name: Any = _UNSET,
        main_supervisor_email: Any = _UNSET,
        co_supervisors_names: Any = _UNSET,
        co_supervisors_emails: Any = _UNSET,
        pdf_path: Any = _UNSET,
    ) -> dict:
        """Apply a content edit; a non-admin edit resets the review to pending."""
        current = self.repo.get_subject(subject_id)
        if current is None:
            raise NotFound("subject_not_found", "Subject not found")
        is_admin = ctx.has_role(Role.ADMIN)
        if not is_admin and current.get("supervisor_id") != ctx.user_id:
            raise Forbidden("not_subject_owner", "Only the owning supervisor or an administrator can edit this subject")

        raw = {
            "title": title,
            "description": description,
            "team_info": team_info,
            "main_supervisor_name": main_supervisor_name,
            "main_supervisor_email": main_supervisor_email,
            "co_supervisors_names": co_supervisors_names,
            "co_supervisors_emails": co_supervisors_emails,
            "pdf_path": pdf_path,
        }
        changes = {name: _NORMALIZERS[name](value) for name, value in raw.items() if value is not _UNSET}
        if not is_admin:
            # Owner resubmission: prior review no longer applies.
            changes["status"] = SubjectStatus.PENDING.value
            changes["admin_comment"] = None
        if not changes:
            return present_subject(current)
        row = self.repo.update_subject(subject_id, changes)
        if row is None:
            raise NotFound("subject_not_found", "Subject not found")
        if not is_admin and current.get("status") != SubjectStatus.PENDING.value:
            logger.info("Subject resubmitted id=%s previous_status=%s", subject_id, current.get("status"))
        return present_subject(row)

    def review_subject(self, ctx: AuthContext, subject_id: str, *, status: object, comment: object = None) -> dict:
        require_role(ctx, {Role.ADMIN})
        try:
            new_status = SubjectStatus.parse(status)
        except ValueError as exc:
            raise DomainValidationError("invalid_status", "Unknown subject status") from exc
        if comment is not None and not isinstance(comment, str):
            raise DomainValidationError("invalid_comment")
        text = (comment or "").strip()
        if new_status in COMMENT_REQUIRED_STATUSES and not text:
            raise DomainValidationError("comment_required", "A comment is required for this decision")
        if len(text) > TEXT_MAX_LEN:
            raise DomainValidationError("invalid_comment", "Comment is too long")

        if self.repo.get_subject(subject_id) is None:
            raise NotFound("subject_not_found", "Subject not found")
        row = self.repo.update_subject(subject_id, {"status": new_status.value, "admin_comment": text or None})
        if row is None:
            raise NotFound("subject_not_found", "Subject not found")
        logger.info("Subject reviewed id=%s status=%s by=%s", subject_id, new_status.value, ctx.user_id)
        self._notify_review(row, new_status, text)
        return present_subject(row)

    def _notify_review(self, subject: dict, status: SubjectStatus, comment: str) -> None:
        kind = _REVIEW_KINDS.get(status)
        if kind is None or self.notifier is None:
            return
        recipient = subject.get("main_supervisor_email")
        if not recipient:
            logger.warning("Review notification skipped: subject %s has no supervisor e-mail", subject.get("id"))
            return
        data = {
            "subject_title": subject.get("title"),
            "supervisor_name": subject.get("main_supervisor_name"),
            "comment": comment,
            "app_url": app_public_url(),
        }
        try:
            result = self.notifier.send(kind, recipient, data)
        except Exception:
            logger.exception("Review notification failed for subject %s", subject.get("id"))
            return
        if not result.ok:
            logger.warning("Review notification not delivered for subject %s: %s", subject.get("id"), result.message)

    # --- Queries ----------------------------------------------------------

    def list_validated_subjects(self, ctx: AuthContext) -> List[dict]:
        return [present_subject(r) for r in self.repo.list_subjects(status=SubjectStatus.VALIDATED.value)]

    def list_subjects_for_supervisor(self, ctx: AuthContext) -> List[dict]:
        require_role(ctx, {Role.SUPERVISOR, Role.ADMIN})
        return [present_subject(r) for r in self.repo.list_subjects(supervisor_id=ctx.user_id)]

    def list_all_subjects(self, ctx: AuthContext, status: Optional[str] = None) -> List[dict]:
        require_role(ctx, {Role.ADMIN, Role.OBSERVER})
        status_value = None
        if status:
            try:
                status_value = SubjectStatus.parse(status).value
            except ValueError as exc:
                raise DomainValidationError("invalid_status", "Unknown subject status") from exc
        return [present_subject(r) for r in self.repo.list_subjects(status=status_value)]

    def list_subjects(self, ctx: AuthContext, status: Optional[str] = None) -> List[dict]:
        """Role-dependent listing used by `GET /api/subjects`."""
        if ctx.has_role(Role.ADMIN, Role.OBSERVER):
            return self.list_all_subjects(ctx, status)
        if ctx.has_role(Role.SUPERVISOR):
            return self.list_subjects_for_supervisor(ctx)
        return self.list_validated_subjects(ctx)

    def get_subject(self, ctx: AuthContext, subject_id: str) -> dict:
        row = self.repo.get_subject(subject_id)
        if row is None:
            raise NotFound("subject_not_found", "Subject not found")
        if ctx.has_role(Role.ADMIN, Role.OBSERVER) or row.get("supervisor_id") == ctx.user_id:
            return present_subject(row)
        if row.get("status") == SubjectStatus.VALIDATED.value:
            return present_subject(row)
        # Hide unpublished subjects from everyone else.
        raise NotFound("subject_not_found", "Subject not found")


__all__ = ["SubjectsService", "SubjectsRepoProtocol", "present_subject"]
