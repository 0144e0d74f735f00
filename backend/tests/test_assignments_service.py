"""
Assignment Allocator: one subject per student, one student per subject.
"""
from __future__ import annotations

import pytest

from internships.errors import (
    Conflict,
    DomainValidationError,
    Forbidden,
    NotFound,
    StudentAlreadyAssigned,
    SubjectAlreadyAssigned,
)
from internships.notifications import DispatchResult, NotificationKind
from internships.repo_memory import MemoryInternshipsRepo
from internships.services.assignments import AssignmentsService
from internships.services.choices import ChoicesService

from utils.builders import make_subject, make_user, new_id
from utils.fakes import RecordingDispatcher


@pytest.fixture
def repo():
    return MemoryInternshipsRepo()


@pytest.fixture
def notifier():
    return RecordingDispatcher()


@pytest.fixture
def svc(repo, notifier):
    return AssignmentsService(repo, notifier=notifier)


@pytest.fixture
def world(repo):
    admin = make_user(repo, "admin", first_name="Ad", last_name="Min")
    sup = make_user(repo, "supervisor")
    return {
        "admin": admin,
        "s1": make_user(repo, "student", first_name="Alan", last_name="Turing", email="alan@univ.test"),
        "s2": make_user(repo, "student", first_name="Barbara", last_name="Liskov"),
        "x": make_subject(repo, sup.user_id, status="validated", title="X"),
        "y": make_subject(repo, sup.user_id, status="validated", title="Y"),
    }


def test_create_assignment_returns_joined_summaries(svc, world):
    a = svc.create_assignment(world["admin"], student_id=world["s1"].user_id, subject_id=world["x"]["id"])

    assert a["student_id"] == world["s1"].user_id
    assert a["assigned_by"] == world["admin"].user_id
    assert a["student"]["email"] == "alan@univ.test"
    assert a["subject"]["title"] == "X"
    assert a["assigned_by_profile"]["first_name"] == "Ad"


def test_student_and_subject_sides_are_unique(svc, world):
    admin = world["admin"]
    svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=world["x"]["id"])

    with pytest.raises(StudentAlreadyAssigned) as e1:
        svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=world["y"]["id"])
    assert e1.value.message == "Student already has an assignment"

    with pytest.raises(SubjectAlreadyAssigned) as e2:
        svc.create_assignment(admin, student_id=world["s2"].user_id, subject_id=world["x"]["id"])
    assert e2.value.message == "Subject is already assigned to another student"


def test_student_check_comes_first(svc, world):
    admin = world["admin"]
    svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    svc.create_assignment(admin, student_id=world["s2"].user_id, subject_id=world["y"]["id"])
    with pytest.raises(StudentAlreadyAssigned):
        svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=world["y"]["id"])


def test_taken_subject_reports_assignment_even_after_owner_edit(svc, repo, world):
    admin = world["admin"]
    svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    repo.update_subject(world["x"]["id"], {"status": "pending"})

    with pytest.raises(SubjectAlreadyAssigned):
        svc.create_assignment(admin, student_id=world["s2"].user_id, subject_id=world["x"]["id"])


def test_assignment_summary_carries_subject_details(svc, repo, world):
    sup = make_user(repo, "supervisor")
    subject = make_subject(
        repo,
        sup.user_id,
        title="Z",
        co_supervisors_names="Edsger Dijkstra",
        co_supervisors_emails="edsger@univ.test",
    )
    a = svc.create_assignment(world["admin"], student_id=world["s1"].user_id, subject_id=subject["id"])

    assert a["subject"]["description"] == "Study model checking for Solidity."
    assert a["subject"]["co_supervisors_names"] == "Edsger Dijkstra"
    assert a["subject"]["co_supervisors_emails"] == "edsger@univ.test"


def test_reassignment_is_delete_then_create(svc, world):
    admin = world["admin"]
    first = svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    svc.delete_assignment(admin, first["id"])
    again = svc.create_assignment(admin, student_id=world["s2"].user_id, subject_id=world["x"]["id"])
    assert again["student_id"] == world["s2"].user_id


def test_delete_keeps_choices(svc, repo, world):
    admin, s1 = world["admin"], world["s1"]
    ChoicesService(repo).add_choice(s1, world["x"]["id"])
    a = svc.create_assignment(admin, student_id=s1.user_id, subject_id=world["x"]["id"])
    svc.delete_assignment(admin, a["id"])

    assert len(repo.list_choices_for_student(s1.user_id)) == 1
    with pytest.raises(NotFound):
        svc.delete_assignment(admin, a["id"])


def test_candidates_must_be_student_and_validated_subject(svc, repo, world):
    admin = world["admin"]
    sup = make_user(repo, "supervisor")
    pending = make_subject(repo, sup.user_id, status="pending")

    with pytest.raises(DomainValidationError) as e1:
        svc.create_assignment(admin, student_id=sup.user_id, subject_id=world["x"]["id"])
    assert e1.value.code == "not_a_student"
    with pytest.raises(DomainValidationError) as e2:
        svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=pending["id"])
    assert e2.value.code == "subject_not_validated"
    with pytest.raises(NotFound):
        svc.create_assignment(admin, student_id=new_id(), subject_id=world["x"]["id"])
    with pytest.raises(NotFound):
        svc.create_assignment(admin, student_id=world["s1"].user_id, subject_id=new_id())


def test_only_admin_mutates_observer_lists(svc, world, repo):
    observer = make_user(repo, "observer")
    with pytest.raises(Forbidden):
        svc.create_assignment(observer, student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    svc.create_assignment(world["admin"], student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    assert len(svc.list_assignments(observer)) == 1
    with pytest.raises(Forbidden):
        svc.list_assignments(world["s1"])


def test_store_race_surfaces_as_conflict(repo, world):
    """The store rejects a duplicate even when the fast-path checks were skipped."""
    repo.insert_assignment(student_id=world["s1"].user_id, subject_id=world["x"]["id"], assigned_by=world["admin"].user_id)
    with pytest.raises(Conflict):
        repo.insert_assignment(
            student_id=world["s2"].user_id, subject_id=world["x"]["id"], assigned_by=world["admin"].user_id
        )


def test_creating_assignment_sends_no_email(svc, notifier, world):
    svc.create_assignment(world["admin"], student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    assert notifier.sent == []


def test_notify_assignment_sends_confirmation(svc, notifier, world):
    a = svc.create_assignment(world["admin"], student_id=world["s1"].user_id, subject_id=world["x"]["id"])

    result = svc.notify_assignment(world["admin"], a["id"])

    assert result == {"sent": True, "message": "Email sent"}
    kind, recipient, data = notifier.sent[0]
    assert kind is NotificationKind.ASSIGNMENT_CONFIRMATION
    assert recipient == "alan@univ.test"
    assert data["student_name"] == "Alan Turing"
    assert data["subject_title"] == "X"
    assert data["supervisor_name"] == "Grace Hopper"


def test_notify_reports_provider_failure_without_raising(repo, world):
    failing = AssignmentsService(repo, notifier=RecordingDispatcher(result=DispatchResult(ok=False, message="Email provider returned 500")))
    a = failing.create_assignment(world["admin"], student_id=world["s1"].user_id, subject_id=world["x"]["id"])
    assert failing.notify_assignment(world["admin"], a["id"]) == {"sent": False, "message": "Email provider returned 500"}

    raising = AssignmentsService(repo, notifier=RecordingDispatcher(error=RuntimeError("boom")))
    assert raising.notify_assignment(world["admin"], a["id"]) == {"sent": False, "message": "Notification failed"}

    silent = AssignmentsService(repo)
    assert silent.notify_assignment(world["admin"], a["id"])["sent"] is False


def test_notify_unknown_assignment(svc, world):
    with pytest.raises(NotFound):
        svc.notify_assignment(world["admin"], new_id())
