"""
Internship domain terms: subject status, choice limits and small helpers.
"""

from __future__ import annotations

from enum import Enum
import re
from typing import List, Optional


class SubjectStatus(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    NEEDS_MODIFICATION = "needs_modification"
    REFUSED = "refused"

    @classmethod
    def parse(cls, value: object) -> "SubjectStatus":
        if isinstance(value, SubjectStatus):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError("invalid_status")


# A review into these states must carry an explanation for the supervisor.
COMMENT_REQUIRED_STATUSES = frozenset({SubjectStatus.NEEDS_MODIFICATION, SubjectStatus.REFUSED})

# States in which the supervisor dashboard offers editing.
EDITABLE_STATUSES = frozenset({SubjectStatus.PENDING, SubjectStatus.NEEDS_MODIFICATION})

MAX_CHOICES = 3

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MULTI_SPLIT_RE = re.compile(r"[;,]")


def looks_like_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))


def split_multi(value: Optional[str]) -> List[str]:
    """Split a free-text `a, b; c` field into trimmed, non-empty parts."""
    if not value:
        return []
    return [p.strip() for p in _MULTI_SPLIT_RE.split(value) if p.strip()]


def can_edit(status: object) -> bool:
    try:
        return SubjectStatus.parse(status) in EDITABLE_STATUSES
    except ValueError:
        return False


__all__ = [
    "SubjectStatus",
    "COMMENT_REQUIRED_STATUSES",
    "EDITABLE_STATUSES",
    "MAX_CHOICES",
    "looks_like_email",
    "split_multi",
    "can_edit",
]
