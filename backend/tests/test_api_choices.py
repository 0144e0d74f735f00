"""
Choices API: ranked choices per student, renumbering on removal.
"""
from __future__ import annotations

import asyncio

import pytest

from utils.api import client, error_detail, repo, sign_in
from utils.builders import make_subject, new_id


pytestmark = pytest.mark.anyio("asyncio")


def _validated(n: int) -> list[dict]:
    sup_id, _ = sign_in("supervisor")
    return [make_subject(repo(), sup_id, status="validated", title=f"Subject {i}") for i in range(n)]


@pytest.mark.anyio
async def test_add_list_remove_keeps_ranks_contiguous():
    a, b, c_, d = _validated(4)
    _, student = sign_in("student")
    async with client() as c:
        for s in (a, b, c_):
            r = await c.post("/api/choices", json={"subject_id": s["id"]}, headers=student)
            assert r.status_code == 201
        removed = await c.delete(f"/api/choices/{b['id']}", headers=student)
        added = await c.post("/api/choices", json={"subject_id": d["id"]}, headers=student)
        listed = await c.get("/api/choices", headers=student)
    assert [(x["subject_id"], x["choice_rank"]) for x in removed.json()] == [(a["id"], 1), (c_["id"], 2)]
    assert added.json()["choice_rank"] == 3
    assert [(x["subject_id"], x["choice_rank"]) for x in listed.json()] == [(a["id"], 1), (c_["id"], 2), (d["id"], 3)]


@pytest.mark.anyio
async def test_limit_duplicate_and_availability_errors():
    subjects = _validated(4)
    sup_id, _ = sign_in("supervisor")
    pending = make_subject(repo(), sup_id, status="pending")
    _, student = sign_in("student")
    async with client() as c:
        for s in subjects[:3]:
            await c.post("/api/choices", json={"subject_id": s["id"]}, headers=student)
        fourth = await c.post("/api/choices", json={"subject_id": subjects[3]["id"]}, headers=student)
        dup = await c.post("/api/choices", json={"subject_id": subjects[0]["id"]}, headers=student)
        await c.delete(f"/api/choices/{subjects[2]['id']}", headers=student)
        unavailable = await c.post("/api/choices", json={"subject_id": pending["id"]}, headers=student)
        unknown = await c.post("/api/choices", json={"subject_id": new_id()}, headers=student)
    assert fourth.status_code == 400
    assert error_detail(fourth) == "choice_limit_exceeded"
    assert fourth.json()["message"] == "You can only select up to 3 subjects"
    assert error_detail(dup) == "duplicate_choice"
    assert error_detail(unavailable) == "subject_not_available"
    assert unknown.status_code == 404


@pytest.mark.anyio
async def test_remove_missing_choice_is_404():
    _, student = sign_in("student")
    async with client() as c:
        r = await c.delete(f"/api/choices/{new_id()}", headers=student)
    assert r.status_code == 404
    assert error_detail(r) == "choice_not_found"


@pytest.mark.anyio
async def test_concurrent_adds_never_share_a_rank():
    subjects = _validated(5)
    student_id, student = sign_in("student")
    async with client() as c:
        results = await asyncio.gather(
            *(c.post("/api/choices", json={"subject_id": s["id"]}, headers=student) for s in subjects)
        )
    assert sorted(r.status_code for r in results) == [201, 201, 201, 400, 400]
    ranks = [ch["choice_rank"] for ch in repo().list_choices_for_student(student_id)]
    assert ranks == [1, 2, 3]


@pytest.mark.anyio
async def test_role_gates():
    (subject,) = _validated(1)
    _, sup = sign_in("supervisor")
    _, admin = sign_in("admin")
    _, student = sign_in("student")
    async with client() as c:
        sup_add = await c.post("/api/choices", json={"subject_id": subject["id"]}, headers=sup)
        await c.post("/api/choices", json={"subject_id": subject["id"]}, headers=student)
        overview = await c.get("/api/admin/choices", headers=admin)
        student_overview = await c.get("/api/admin/choices", headers=student)
    assert sup_add.status_code == 403
    assert overview.status_code == 200
    assert overview.json()[0]["student"]["first_name"] == "Ada"
    assert student_overview.status_code == 403
