"""
In-memory repository for profiles, subjects, choices and assignments.

Why:
    Local development and tests run without Postgres. The contract matches
    `DBInternshipsRepo`, including the uniqueness rules the store enforces:
    one choice per (student, subject), contiguous ranks capped per student,
    and one assignment per student and per subject. A single re-entrant lock
    stands in for the database's row locks and unique indexes.
"""
from __future__ import annotations

from datetime import datetime, timezone
import itertools
import threading
import uuid
from typing import Any, Dict, List, Optional

from internships.errors import ChoiceLimitExceeded, Conflict, DuplicateChoice


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _person(p: Optional[dict]) -> Optional[dict]:
    if not p:
        return None
    return {"id": p["id"], "first_name": p.get("first_name"), "last_name": p.get("last_name"), "email": p.get("email")}


def _subject_summary(s: Optional[dict]) -> Optional[dict]:
    if not s:
        return None
    return {
        "id": s["id"],
        "title": s.get("title"),
        "main_supervisor_name": s.get("main_supervisor_name"),
        "main_supervisor_email": s.get("main_supervisor_email"),
        "status": s.get("status"),
        "description": s.get("description"),
        "co_supervisors_names": s.get("co_supervisors_names"),
        "co_supervisors_emails": s.get("co_supervisors_emails"),
    }


class MemoryInternshipsRepo:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._seq = itertools.count(1)
        self.profiles: Dict[str, dict] = {}
        self.subjects: Dict[str, dict] = {}
        self.choices: Dict[str, dict] = {}
        self.assignments: Dict[str, dict] = {}

    def _stamp(self) -> Dict[str, Any]:
        return {"_seq": next(self._seq)}

    @staticmethod
    def _public(row: dict) -> dict:
        return {k: v for k, v in row.items() if not k.startswith("_")}

    @staticmethod
    def _newest_first(rows: List[dict]) -> List[dict]:
        return sorted(rows, key=lambda r: r["_seq"], reverse=True)

    # --- Profiles -----------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[dict]:
        with self._lock:
            row = self.profiles.get(user_id)
            return self._public(row) if row else None

    def insert_profile(self, *, user_id: str, email: str, first_name: str | None, last_name: str | None, role: str) -> dict:
        with self._lock:
            if user_id in self.profiles:
                raise Conflict("profile_exists")
            now = _now_iso()
            row = {
                "id": user_id,
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "role": role,
                "created_at": now,
                "updated_at": now,
                **self._stamp(),
            }
            self.profiles[user_id] = row
            return self._public(row)

    def update_profile(self, user_id: str, changes: dict) -> Optional[dict]:
        with self._lock:
            row = self.profiles.get(user_id)
            if row is None:
                return None
            row.update(changes)
            row["updated_at"] = _now_iso()
            return self._public(row)

    def list_profiles(self) -> List[dict]:
        with self._lock:
            return [self._public(r) for r in self._newest_first(list(self.profiles.values()))]

    def delete_profile(self, user_id: str) -> bool:
        with self._lock:
            if user_id not in self.profiles:
                return False
            referenced = (
                any(s["supervisor_id"] == user_id for s in self.subjects.values())
                or any(c["student_id"] == user_id for c in self.choices.values())
                or any(user_id in (a["student_id"], a["assigned_by"]) for a in self.assignments.values())
            )
            if referenced:
                raise Conflict("profile_referenced", "The user still owns subjects, choices or assignments")
            del self.profiles[user_id]
            return True

    # --- Subjects -----------------------------------------------------------

    def insert_subject(self, *, supervisor_id: str, fields: Dict[str, Any]) -> dict:
        with self._lock:
            now = _now_iso()
            row = {
                "id": str(uuid.uuid4()),
                "title": None,
                "description": None,
                "pdf_path": None,
                "team_info": None,
                "main_supervisor_name": None,
                "main_supervisor_email": None,
                "co_supervisors_names": None,
                "co_supervisors_emails": None,
                "status": "pending",
                "admin_comment": None,
                **fields,
                "supervisor_id": supervisor_id,
                "created_at": now,
                "updated_at": now,
                **self._stamp(),
            }
            self.subjects[row["id"]] = row
            return self._public(row)

    def get_subject(self, subject_id: str) -> Optional[dict]:
        with self._lock:
            row = self.subjects.get(subject_id)
            return self._public(row) if row else None

    def update_subject(self, subject_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        with self._lock:
            row = self.subjects.get(subject_id)
            if row is None:
                return None
            row.update(changes)
            row["updated_at"] = _now_iso()
            return self._public(row)

    def list_subjects(self, *, status: Optional[str] = None, supervisor_id: Optional[str] = None) -> List[dict]:
        with self._lock:
            rows = [
                r
                for r in self.subjects.values()
                if (status is None or r["status"] == status)
                and (supervisor_id is None or r["supervisor_id"] == supervisor_id)
            ]
            return [self._public(r) for r in self._newest_first(rows)]

    # --- Choices ------------------------------------------------------------

    def _student_choices(self, student_id: str) -> List[dict]:
        return sorted(
            (c for c in self.choices.values() if c["student_id"] == student_id),
            key=lambda c: c["choice_rank"],
        )

    def _choice_out(self, c: dict) -> dict:
        out = self._public(c)
        out["subject"] = _subject_summary(self.subjects.get(c["subject_id"]))
        return out

    def list_choices_for_student(self, student_id: str) -> List[dict]:
        with self._lock:
            return [self._choice_out(c) for c in self._student_choices(student_id)]

    def insert_choice_next_rank(self, student_id: str, subject_id: str, *, max_choices: int) -> dict:
        with self._lock:
            current = self._student_choices(student_id)
            if any(c["subject_id"] == subject_id for c in current):
                raise DuplicateChoice()
            if len(current) >= max_choices:
                raise ChoiceLimitExceeded()
            row = {
                "id": str(uuid.uuid4()),
                "student_id": student_id,
                "subject_id": subject_id,
                "choice_rank": len(current) + 1,
                "created_at": _now_iso(),
                **self._stamp(),
            }
            self.choices[row["id"]] = row
            return self._choice_out(row)

    def delete_choice_and_resequence(self, student_id: str, subject_id: str) -> Optional[List[dict]]:
        with self._lock:
            target = next(
                (c for c in self.choices.values() if c["student_id"] == student_id and c["subject_id"] == subject_id),
                None,
            )
            if target is None:
                return None
            del self.choices[target["id"]]
            remaining = self._student_choices(student_id)
            for rank, c in enumerate(remaining, start=1):
                c["choice_rank"] = rank
            return [self._choice_out(c) for c in remaining]

    def list_all_choices(self) -> List[dict]:
        with self._lock:
            out = []
            for c in self._newest_first(list(self.choices.values())):
                row = self._choice_out(c)
                row["student"] = _person(self.profiles.get(c["student_id"]))
                out.append(row)
            return out

    # --- Assignments --------------------------------------------------------

    def _assignment_out(self, a: dict) -> dict:
        out = self._public(a)
        out["student"] = _person(self.profiles.get(a["student_id"]))
        out["subject"] = _subject_summary(self.subjects.get(a["subject_id"]))
        out["assigned_by_profile"] = _person(self.profiles.get(a["assigned_by"]))
        return out

    def get_assignment(self, assignment_id: str) -> Optional[dict]:
        with self._lock:
            row = self.assignments.get(assignment_id)
            return self._assignment_out(row) if row else None

    def get_assignment_for_student(self, student_id: str) -> Optional[dict]:
        with self._lock:
            row = next((a for a in self.assignments.values() if a["student_id"] == student_id), None)
            return self._public(row) if row else None

    def get_assignment_for_subject(self, subject_id: str) -> Optional[dict]:
        with self._lock:
            row = next((a for a in self.assignments.values() if a["subject_id"] == subject_id), None)
            return self._public(row) if row else None

    def insert_assignment(self, *, student_id: str, subject_id: str, assigned_by: str) -> dict:
        with self._lock:
            for a in self.assignments.values():
                if a["student_id"] == student_id or a["subject_id"] == subject_id:
                    raise Conflict("assignment_conflict", "The student or subject was assigned concurrently")
            row = {
                "id": str(uuid.uuid4()),
                "student_id": student_id,
                "subject_id": subject_id,
                "assigned_by": assigned_by,
                "created_at": _now_iso(),
                **self._stamp(),
            }
            self.assignments[row["id"]] = row
            return self._public(row)

    def delete_assignment(self, assignment_id: str) -> bool:
        with self._lock:
            return self.assignments.pop(assignment_id, None) is not None

    def list_assignments(self) -> List[dict]:
        with self._lock:
            return [self._assignment_out(a) for a in self._newest_first(list(self.assignments.values()))]


__all__ = ["MemoryInternshipsRepo"]
