"""
Postgres-backed repository for profiles, subjects, choices and assignments.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection and
  commits explicitly. Rows come back as plain dicts (`dict_row`) so the
  services stay independent of the driver.
- Uniqueness is owned by the schema (see supabase/migrations): one choice per
  (student, subject), one rank per (student, rank), one assignment per
  student and per subject. Races surface as `Conflict`.
- Choice inserts serialize per student by locking the student's profile row.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

try:
    import psycopg
    from psycopg import sql
    from psycopg.rows import dict_row
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    sql = None  # type: ignore
    dict_row = None  # type: ignore
    HAVE_PSYCOPG = False

from internships.errors import ChoiceLimitExceeded, Conflict, DuplicateChoice


logger = logging.getLogger("stagehub.repo")


def _dsn() -> Optional[str]:
    """Resolve the DSN from env; None means no database is configured."""
    for name in ("INTERNSHIPS_DATABASE_URL", "DATABASE_URL", "SUPABASE_DB_URL"):
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def _sqlstate(exc: BaseException) -> Optional[str]:
    return getattr(exc, "sqlstate", None) or getattr(exc, "pgcode", None)


def _is_unique_violation(exc: BaseException) -> bool:
    return _sqlstate(exc) == "23505"


def _is_fk_violation(exc: BaseException) -> bool:
    return _sqlstate(exc) == "23503"


def _ts(column: str) -> str:
    return f"""to_char({column} at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')"""


_PROFILE_COLUMNS_SQL = f"""
    p.id::text as id, p.email, p.first_name, p.last_name, p.role,
    {_ts('p.created_at')} as created_at, {_ts('p.updated_at')} as updated_at
"""

_SUBJECT_COLUMNS_SQL = f"""
    s.id::text as id, s.title, s.description, s.pdf_path, s.team_info,
    s.main_supervisor_name, s.main_supervisor_email,
    s.co_supervisors_names, s.co_supervisors_emails,
    s.status, s.admin_comment, s.supervisor_id::text as supervisor_id,
    {_ts('s.created_at')} as created_at, {_ts('s.updated_at')} as updated_at
"""

_CHOICE_COLUMNS_SQL = f"""
    c.id::text as id, c.student_id::text as student_id, c.subject_id::text as subject_id,
    c.choice_rank, {_ts('c.created_at')} as created_at,
    s.title as subject_title, s.main_supervisor_name as subject_supervisor_name,
    s.main_supervisor_email as subject_supervisor_email, s.status as subject_status,
    s.description as subject_description, s.co_supervisors_names as subject_co_supervisors_names,
    s.co_supervisors_emails as subject_co_supervisors_emails
"""

_ASSIGNMENT_SELECT_SQL = f"""
    select a.id::text as id, a.student_id::text as student_id, a.subject_id::text as subject_id,
           a.assigned_by::text as assigned_by, {_ts('a.created_at')} as created_at,
           st.first_name as student_first_name, st.last_name as student_last_name, st.email as student_email,
           s.title as subject_title, s.main_supervisor_name as subject_supervisor_name,
           s.main_supervisor_email as subject_supervisor_email, s.status as subject_status,
           s.description as subject_description, s.co_supervisors_names as subject_co_supervisors_names,
           s.co_supervisors_emails as subject_co_supervisors_emails,
           ab.first_name as assigned_by_first_name, ab.last_name as assigned_by_last_name,
           ab.email as assigned_by_email
    from public.assignments a
    left join public.profiles st on st.id = a.student_id
    left join public.subjects s on s.id = a.subject_id
    left join public.profiles ab on ab.id = a.assigned_by
"""

_SUBJECT_WRITABLE = (
    "title",
    "description",
    "pdf_path",
    "team_info",
    "main_supervisor_name",
    "main_supervisor_email",
    "co_supervisors_names",
    "co_supervisors_emails",
    "status",
    "admin_comment",
)

_PROFILE_WRITABLE = ("email", "first_name", "last_name", "role")


def _subject_summary(row: Dict[str, Any], prefix: str = "subject_") -> Optional[dict]:
    if row.get("subject_id") is None:
        return None
    return {
        "id": row["subject_id"],
        "title": row.get(f"{prefix}title"),
        "main_supervisor_name": row.get(f"{prefix}supervisor_name"),
        "main_supervisor_email": row.get(f"{prefix}supervisor_email"),
        "status": row.get(f"{prefix}status"),
        "description": row.get(f"{prefix}description"),
        "co_supervisors_names": row.get(f"{prefix}co_supervisors_names"),
        "co_supervisors_emails": row.get(f"{prefix}co_supervisors_emails"),
    }


def _choice_row_to_dict(row: Dict[str, Any]) -> dict:
    out = {
        "id": row["id"],
        "student_id": row["student_id"],
        "subject_id": row["subject_id"],
        "choice_rank": int(row["choice_rank"]),
        "created_at": row["created_at"],
        "subject": _subject_summary(row),
    }
    if "student_email" in row:
        out["student"] = {
            "id": row["student_id"],
            "first_name": row.get("student_first_name"),
            "last_name": row.get("student_last_name"),
            "email": row.get("student_email"),
        }
    return out


def _assignment_row_to_dict(row: Dict[str, Any]) -> dict:
    return {
        "id": row["id"],
        "student_id": row["student_id"],
        "subject_id": row["subject_id"],
        "assigned_by": row["assigned_by"],
        "created_at": row["created_at"],
        "student": {
            "id": row["student_id"],
            "first_name": row.get("student_first_name"),
            "last_name": row.get("student_last_name"),
            "email": row.get("student_email"),
        },
        "subject": _subject_summary(row),
        "assigned_by_profile": {
            "id": row["assigned_by"],
            "first_name": row.get("assigned_by_first_name"),
            "last_name": row.get("assigned_by_last_name"),
            "email": row.get("assigned_by_email"),
        },
    }


class DBInternshipsRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Create a repository bound to `dsn` (or the env DSN).

        Does not open a connection eagerly; connections are per call.
        """
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBInternshipsRepo")
        resolved = dsn or _dsn()
        if not resolved:
            raise RuntimeError("Database DSN unavailable for DBInternshipsRepo")
        self._dsn = resolved

    def _connect(self):
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def ping(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select 1 from public.profiles limit 1")

    # --- Profiles -----------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_PROFILE_COLUMNS_SQL} from public.profiles p where p.id = %s", (user_id,))
                return cur.fetchone()

    def insert_profile(self, *, user_id: str, email: str, first_name: str | None, last_name: str | None, role: str) -> dict:
        with self._connect() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        f"""
                        with p as (
                          insert into public.profiles (id, email, first_name, last_name, role)
                          values (%s, %s, %s, %s, %s)
                          returning *
                        )
                        select {_PROFILE_COLUMNS_SQL} from p
                        """,
                        (user_id, email, first_name, last_name, role),
                    )
                except Exception as exc:
                    if _is_unique_violation(exc):
                        raise Conflict("profile_exists") from exc
                    raise
                row = cur.fetchone()
                conn.commit()
        return row

    def update_profile(self, user_id: str, changes: dict) -> Optional[dict]:
        sets = [(k, v) for k, v in changes.items() if k in _PROFILE_WRITABLE]
        if not sets:
            return self.get_profile(user_id)
        assign = sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(col)) for col, _ in sets)
        stmt = sql.SQL(
            "with p as (update public.profiles set {assign} where id = %s returning *) select "
            + _PROFILE_COLUMNS_SQL
            + " from p"
        ).format(assign=assign)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, [v for _, v in sets] + [user_id])
                row = cur.fetchone()
                if not row:
                    return None
                conn.commit()
        return row

    def list_profiles(self) -> List[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_PROFILE_COLUMNS_SQL} from public.profiles p order by p.created_at desc, p.id")
                return list(cur.fetchall())

    def delete_profile(self, user_id: str) -> bool:
        """Delete the profile row only; referenced rows make this fail with Conflict."""
        with self._connect() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute("delete from public.profiles where id = %s", (user_id,))
                except Exception as exc:
                    if _is_fk_violation(exc):
                        raise Conflict(
                            "profile_referenced", "The user still owns subjects, choices or assignments"
                        ) from exc
                    raise
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    # --- Subjects -----------------------------------------------------------

    def insert_subject(self, *, supervisor_id: str, fields: Dict[str, Any]) -> dict:
        cols = [c for c in _SUBJECT_WRITABLE if c in fields]
        stmt = sql.SQL(
            "with s as (insert into public.subjects ({cols}, supervisor_id) values ({vals}, %s) returning *) select "
            + _SUBJECT_COLUMNS_SQL
            + " from s"
        ).format(
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in cols),
        )
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, [fields[c] for c in cols] + [supervisor_id])
                row = cur.fetchone()
                conn.commit()
        return row

    def get_subject(self, subject_id: str) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_SUBJECT_COLUMNS_SQL} from public.subjects s where s.id = %s", (subject_id,))
                return cur.fetchone()

    def update_subject(self, subject_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        sets = [(k, v) for k, v in changes.items() if k in _SUBJECT_WRITABLE]
        if not sets:
            return self.get_subject(subject_id)
        assign = sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(col)) for col, _ in sets)
        stmt = sql.SQL(
            "with s as (update public.subjects set {assign} where id = %s returning *) select "
            + _SUBJECT_COLUMNS_SQL
            + " from s"
        ).format(assign=assign)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, [v for _, v in sets] + [subject_id])
                row = cur.fetchone()
                if not row:
                    return None
                conn.commit()
        return row

    def list_subjects(self, *, status: Optional[str] = None, supervisor_id: Optional[str] = None) -> List[dict]:
        where = []
        params: list = []
        if status is not None:
            where.append("s.status = %s")
            params.append(status)
        if supervisor_id is not None:
            where.append("s.supervisor_id = %s")
            params.append(supervisor_id)
        clause = ("where " + " and ".join(where)) if where else ""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_SUBJECT_COLUMNS_SQL} from public.subjects s {clause} order by s.created_at desc, s.id",
                    params,
                )
                return list(cur.fetchall())

    # --- Choices ------------------------------------------------------------

    def list_choices_for_student(self, student_id: str) -> List[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_CHOICE_COLUMNS_SQL}
                    from public.student_choices c
                    left join public.subjects s on s.id = c.subject_id
                    where c.student_id = %s
                    order by c.choice_rank asc
                    """,
                    (student_id,),
                )
                return [_choice_row_to_dict(r) for r in cur.fetchall()]

    def _try_insert_choice(self, student_id: str, subject_id: str, max_choices: int) -> dict:
        with self._connect() as conn:
            with conn.cursor() as cur:
                # Serialize concurrent adds for this student.
                cur.execute("select id from public.profiles where id = %s for update", (student_id,))
                cur.execute(
                    "select subject_id::text as subject_id from public.student_choices where student_id = %s",
                    (student_id,),
                )
                current = [r["subject_id"] for r in cur.fetchall()]
                if subject_id in current:
                    raise DuplicateChoice()
                if len(current) >= max_choices:
                    raise ChoiceLimitExceeded()
                cur.execute(
                    """
                    insert into public.student_choices (student_id, subject_id, choice_rank)
                    values (%s, %s, %s)
                    returning id::text
                    """,
                    (student_id, subject_id, len(current) + 1),
                )
                new_id = cur.fetchone()["id"]
                cur.execute(
                    f"""
                    select {_CHOICE_COLUMNS_SQL}
                    from public.student_choices c
                    left join public.subjects s on s.id = c.subject_id
                    where c.id = %s
                    """,
                    (new_id,),
                )
                row = cur.fetchone()
                conn.commit()
        return _choice_row_to_dict(row)

    def insert_choice_next_rank(self, student_id: str, subject_id: str, *, max_choices: int) -> dict:
        """Append a choice at rank count+1, re-checking duplicate and limit under lock.

        A unique violation (rare race without a profile row to lock) is retried
        once with a fresh count; a second violation raises Conflict.
        """
        try:
            return self._try_insert_choice(student_id, subject_id, max_choices)
        except Exception as exc:
            if not _is_unique_violation(exc):
                raise
            logger.info("Choice insert raced for student=%s; retrying", student_id)
        try:
            return self._try_insert_choice(student_id, subject_id, max_choices)
        except Exception as exc:
            if _is_unique_violation(exc):
                raise Conflict("choice_conflict", "Your choices changed concurrently; retry") from exc
            raise

    def delete_choice_and_resequence(self, student_id: str, subject_id: str) -> Optional[List[dict]]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("select id from public.profiles where id = %s for update", (student_id,))
                cur.execute(
                    "delete from public.student_choices where student_id = %s and subject_id = %s",
                    (student_id, subject_id),
                )
                if cur.rowcount == 0:
                    conn.rollback()
                    return None
                cur.execute("set constraints student_choices_student_id_choice_rank_key deferred")
                cur.execute(
                    """
                    with ordered as (
                      select id, row_number() over (order by choice_rank asc, created_at asc, id) as rn
                      from public.student_choices
                      where student_id = %s
                    )
                    update public.student_choices c
                    set choice_rank = o.rn
                    from ordered o
                    where c.id = o.id and c.choice_rank <> o.rn
                    """,
                    (student_id,),
                )
                conn.commit()
        return self.list_choices_for_student(student_id)

    def list_all_choices(self) -> List[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_CHOICE_COLUMNS_SQL},
                           st.first_name as student_first_name, st.last_name as student_last_name,
                           st.email as student_email
                    from public.student_choices c
                    left join public.subjects s on s.id = c.subject_id
                    left join public.profiles st on st.id = c.student_id
                    order by c.created_at desc, c.id
                    """
                )
                return [_choice_row_to_dict(r) for r in cur.fetchall()]

    # --- Assignments --------------------------------------------------------

    def get_assignment(self, assignment_id: str) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(_ASSIGNMENT_SELECT_SQL + " where a.id = %s", (assignment_id,))
                row = cur.fetchone()
        return _assignment_row_to_dict(row) if row else None

    def _get_assignment_by(self, column: str, value: str) -> Optional[dict]:
        stmt = sql.SQL(
            "select id::text as id, student_id::text as student_id, subject_id::text as subject_id, "
            "assigned_by::text as assigned_by from public.assignments where {col} = %s"
        ).format(col=sql.Identifier(column))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(stmt, (value,))
                return cur.fetchone()

    def get_assignment_for_student(self, student_id: str) -> Optional[dict]:
        return self._get_assignment_by("student_id", student_id)

    def get_assignment_for_subject(self, subject_id: str) -> Optional[dict]:
        return self._get_assignment_by("subject_id", subject_id)

    def insert_assignment(self, *, student_id: str, subject_id: str, assigned_by: str) -> dict:
        with self._connect() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        f"""
                        insert into public.assignments (student_id, subject_id, assigned_by)
                        values (%s, %s, %s)
                        returning id::text as id, student_id::text as student_id,
                                  subject_id::text as subject_id, assigned_by::text as assigned_by,
                                  {_ts('created_at')} as created_at
                        """,
                        (student_id, subject_id, assigned_by),
                    )
                except Exception as exc:
                    if _is_unique_violation(exc):
                        raise Conflict(
                            "assignment_conflict", "The student or subject was assigned concurrently"
                        ) from exc
                    raise
                row = cur.fetchone()
                conn.commit()
        return row

    def delete_assignment(self, assignment_id: str) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("delete from public.assignments where id = %s", (assignment_id,))
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    def list_assignments(self) -> List[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(_ASSIGNMENT_SELECT_SQL + " order by a.created_at desc, a.id")
                return [_assignment_row_to_dict(r) for r in cur.fetchall()]


__all__ = ["DBInternshipsRepo", "HAVE_PSYCOPG"]
