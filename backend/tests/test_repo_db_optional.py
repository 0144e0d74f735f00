"""
DBInternshipsRepo against a live Postgres (opt-in).

Skips unless a database with `supabase/migrations` applied is reachable
(`INTERNSHIPS_TEST_DSN` or the local Supabase port). Each test creates its
own profiles with fresh UUIDs and deletes what it inserted.
"""
from __future__ import annotations

import pytest

from internships.errors import ChoiceLimitExceeded, Conflict, DuplicateChoice

from utils.builders import new_id, subject_fields
from utils.db import require_db_or_skip


@pytest.fixture
def db_repo():
    dsn = require_db_or_skip()
    from internships.repo_db import DBInternshipsRepo

    repo = DBInternshipsRepo(dsn=dsn)
    created = {"profiles": [], "subjects": [], "assignments": []}
    yield repo, created
    for aid in created["assignments"]:
        repo.delete_assignment(aid)
    import psycopg

    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            for uid in created["profiles"]:
                cur.execute("delete from public.student_choices where student_id = %s", (uid,))
            for sid in created["subjects"]:
                cur.execute("delete from public.subjects where id = %s", (sid,))
            for uid in created["profiles"]:
                cur.execute("delete from public.profiles where id = %s", (uid,))
        conn.commit()


def _profile(repo, created, role: str) -> str:
    uid = new_id()
    repo.insert_profile(user_id=uid, email=f"{uid[:8]}@univ.test", first_name="Ada", last_name="Lovelace", role=role)
    created["profiles"].append(uid)
    return uid


def _subject(repo, created, supervisor_id: str, title: str) -> str:
    fields = subject_fields(title=title)
    fields.update(status="validated", admin_comment=None)
    row = repo.insert_subject(supervisor_id=supervisor_id, fields=fields)
    created["subjects"].append(row["id"])
    return row["id"]


def test_choice_ranks_stay_contiguous(db_repo):
    repo, created = db_repo
    sup = _profile(repo, created, "supervisor")
    student = _profile(repo, created, "student")
    a, b, c, d = (_subject(repo, created, sup, f"S{i}") for i in range(4))

    for sid in (a, b, c):
        repo.insert_choice_next_rank(student, sid, max_choices=3)
    with pytest.raises(ChoiceLimitExceeded):
        repo.insert_choice_next_rank(student, d, max_choices=3)
    with pytest.raises(DuplicateChoice):
        repo.insert_choice_next_rank(student, a, max_choices=3)

    remaining = repo.delete_choice_and_resequence(student, b)
    assert [(r["subject_id"], r["choice_rank"]) for r in remaining] == [(a, 1), (c, 2)]
    added = repo.insert_choice_next_rank(student, d, max_choices=3)
    assert added["choice_rank"] == 3
    assert added["subject"]["title"] == "S3"
    assert repo.delete_choice_and_resequence(student, b) is None


def test_assignment_uniqueness_is_enforced_by_the_store(db_repo):
    repo, created = db_repo
    admin = _profile(repo, created, "admin")
    sup = _profile(repo, created, "supervisor")
    s1 = _profile(repo, created, "student")
    s2 = _profile(repo, created, "student")
    x = _subject(repo, created, sup, "X")

    row = repo.insert_assignment(student_id=s1, subject_id=x, assigned_by=admin)
    created["assignments"].append(row["id"])
    with pytest.raises(Conflict):
        repo.insert_assignment(student_id=s2, subject_id=x, assigned_by=admin)

    joined = repo.get_assignment(row["id"])
    assert joined["student"]["id"] == s1
    assert joined["subject"]["title"] == "X"
    assert repo.get_assignment_for_subject(x)["student_id"] == s1


def test_profile_delete_is_restricted_while_referenced(db_repo):
    repo, created = db_repo
    sup = _profile(repo, created, "supervisor")
    _subject(repo, created, sup, "Owned")

    with pytest.raises(Conflict):
        repo.delete_profile(sup)
    assert repo.get_profile(sup)["role"] == "supervisor"
