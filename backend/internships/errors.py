"""
Domain error taxonomy shared by the internship services and the web adapter.

Why:
    Services stay framework-free and signal failures by raising; the web
    adapter maps each error to one response shape
    `{"error": kind, "detail": code, "message": text}` and a status code.

Design:
    Lookup and validation errors also subclass LookupError / ValueError so
    callers that only know the builtins keep working. `code` is a stable
    machine identifier, `message` is for humans.
"""
from __future__ import annotations


class DomainError(Exception):
    """Base class for all errors raised by the domain layer."""

    kind = "internal"
    status_code = 500
    default_code = "internal_error"
    default_message = "Internal error"

    def __init__(self, code: str | None = None, message: str | None = None):
        self.code = code or self.default_code
        self.message = message or self.default_message
        super().__init__(self.code)

    def to_payload(self) -> dict:
        return {"error": self.kind, "detail": self.code, "message": self.message}


class Unauthenticated(DomainError):
    kind = "unauthenticated"
    status_code = 401
    default_code = "unauthenticated"
    default_message = "Sign-in required"


class ProfileMissing(DomainError, LookupError):
    kind = "profile_missing"
    status_code = 404
    default_code = "profile_missing"
    default_message = "Profile setup required"


class Forbidden(DomainError):
    kind = "forbidden"
    status_code = 403
    default_code = "forbidden"
    default_message = "Forbidden"


class NotFound(DomainError, LookupError):
    kind = "not_found"
    status_code = 404
    default_code = "not_found"
    default_message = "Not found"


class DomainValidationError(DomainError, ValueError):
    kind = "validation_error"
    status_code = 400
    default_code = "invalid_input"
    default_message = "Invalid input"


class SubjectNotAvailable(DomainValidationError):
    default_code = "subject_not_available"
    default_message = "Subject is not available for selection"


class DuplicateChoice(DomainValidationError):
    default_code = "duplicate_choice"
    default_message = "This subject is already in your choices"


class ChoiceLimitExceeded(DomainValidationError):
    default_code = "choice_limit_exceeded"
    default_message = "You can only select up to 3 subjects"


class StudentAlreadyAssigned(DomainValidationError):
    default_code = "student_already_assigned"
    default_message = "Student already has an assignment"


class SubjectAlreadyAssigned(DomainValidationError):
    default_code = "subject_already_assigned"
    default_message = "Subject is already assigned to another student"


class Conflict(DomainError):
    """A store-level uniqueness violation raced with another request (retryable)."""

    kind = "conflict"
    status_code = 409
    default_code = "conflict"
    default_message = "The request conflicted with a concurrent change; retry"


__all__ = [
    "DomainError",
    "Unauthenticated",
    "ProfileMissing",
    "Forbidden",
    "NotFound",
    "DomainValidationError",
    "SubjectNotAvailable",
    "DuplicateChoice",
    "ChoiceLimitExceeded",
    "StudentAlreadyAssigned",
    "SubjectAlreadyAssigned",
    "Conflict",
]
