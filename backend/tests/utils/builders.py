"""
Seed helpers shared by service and API tests.

They write straight into a repository so each test states only the rows it
cares about.
"""
from __future__ import annotations

import uuid
from typing import Optional

from identity_access.domain import AuthContext, Profile


def new_id() -> str:
    return str(uuid.uuid4())


def make_user(
    repo,
    role: str,
    *,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    first_name: Optional[str] = "Ada",
    last_name: Optional[str] = "Lovelace",
) -> AuthContext:
    """Insert a profile and return the AuthContext the resolver would build."""
    uid = user_id or new_id()
    mail = email or f"{role}-{uid[:8]}@univ.test"
    row = repo.insert_profile(user_id=uid, email=mail, first_name=first_name, last_name=last_name, role=role)
    return AuthContext(user_id=uid, email=mail, profile=Profile.from_row(row))


def subject_fields(**overrides) -> dict:
    fields = {
        "title": "Formal verification of smart contracts",
        "description": "Study model checking for Solidity.",
        "team_info": "Team Celtique, IRISA",
        "main_supervisor_name": "Grace Hopper",
        "main_supervisor_email": "grace@univ.test",
    }
    fields.update(overrides)
    return fields


def make_subject(repo, supervisor_id: str, *, status: str = "validated", **overrides) -> dict:
    fields = subject_fields(**overrides)
    fields["status"] = status
    fields.setdefault("admin_comment", None)
    return repo.insert_subject(supervisor_id=supervisor_id, fields=fields)
