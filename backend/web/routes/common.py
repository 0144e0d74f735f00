"""
Shared wiring for the internship API routers.

Why:
    All routers use the same repository, notification dispatcher and storage
    adapter, resolve the caller the same way and answer errors in the same
    shape. Tests swap collaborators through `set_repo`, `set_notifier` and
    `set_storage_adapter`.

Persistence:
    Prefers the Postgres-backed repo when psycopg and a DSN are available;
    falls back to the in-memory repo for local offline work and tests.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Tuple
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse

from identity_access.domain import AuthContext
from identity_access.profiles import ProfilesService
from identity_access.resolver import ProfileResolver
from internships.errors import DomainError, Unauthenticated
from internships.notifications import NotificationDispatcher, build_dispatcher_from_env
from internships.repo_memory import MemoryInternshipsRepo
from internships.services.assignments import AssignmentsService
from internships.services.choices import ChoicesService
from internships.services.files import FilesService
from internships.services.subjects import SubjectsService
from internships.storage import NullStorageAdapter, StorageAdapterProtocol


logger = logging.getLogger("stagehub.web")

try:  # late import keeps psycopg optional for unit tests
    from internships.repo_db import DBInternshipsRepo, _dsn as _db_dsn  # type: ignore
except Exception as exc:  # pragma: no cover - import failures in dev/test envs
    DBInternshipsRepo = None  # type: ignore
    _db_dsn = None  # type: ignore
    _DB_REPO_IMPORT_ERROR: Optional[Exception] = exc
else:
    _DB_REPO_IMPORT_ERROR = None


def _build_default_repo():
    """Prefer the DB-backed repo; fall back to in-memory if unavailable."""
    if DBInternshipsRepo is None:
        if _DB_REPO_IMPORT_ERROR:
            logger.warning("Internships repo import failed: %s", _DB_REPO_IMPORT_ERROR)
        return MemoryInternshipsRepo()
    if not _db_dsn():
        logger.warning("No DATABASE_URL configured; using in-memory repository")
        return MemoryInternshipsRepo()
    try:
        return DBInternshipsRepo()
    except Exception as exc:  # pragma: no cover - exercised when psycopg is missing
        logger.warning("Internships repo unavailable (%s); using in-memory fallback", exc)
        return MemoryInternshipsRepo()


_REPO = None
_NOTIFIER: Optional[NotificationDispatcher] = None
STORAGE_ADAPTER: StorageAdapterProtocol = NullStorageAdapter()


def _get_repo():
    global _REPO
    if _REPO is None:
        _REPO = _build_default_repo()
    return _REPO


def set_repo(repo) -> None:
    """Allow tests to swap the repository implementation."""
    global _REPO
    _REPO = repo


def _get_notifier() -> NotificationDispatcher:
    global _NOTIFIER
    if _NOTIFIER is None:
        _NOTIFIER = build_dispatcher_from_env()
    return _NOTIFIER


def set_notifier(notifier: Optional[NotificationDispatcher]) -> None:
    """Install the dispatcher selected at startup (None re-reads env lazily)."""
    global _NOTIFIER
    _NOTIFIER = notifier


def set_storage_adapter(adapter: StorageAdapterProtocol) -> None:
    global STORAGE_ADAPTER
    STORAGE_ADAPTER = adapter


# --- Service factories ----------------------------------------------------------

def profiles_service() -> ProfilesService:
    return ProfilesService(_get_repo())


def subjects_service() -> SubjectsService:
    return SubjectsService(_get_repo(), notifier=_get_notifier())


def choices_service() -> ChoicesService:
    return ChoicesService(_get_repo())


def assignments_service() -> AssignmentsService:
    return AssignmentsService(_get_repo(), notifier=_get_notifier())


def files_service() -> FilesService:
    return FilesService(storage=STORAGE_ADAPTER)


# --- Responses -------------------------------------------------------------------

def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """JSON with `private, no-store`: every payload here is user- or role-scoped."""
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def domain_error(exc: DomainError) -> JSONResponse:
    return json_private(exc.to_payload(), status_code=exc.status_code)


def internal_error(message: str = "Internal error") -> JSONResponse:
    return json_private({"error": "internal", "detail": "internal_error", "message": message}, status_code=500)


def not_found(detail: str = "not_found") -> JSONResponse:
    return json_private({"error": "not_found", "detail": detail, "message": "Not found"}, status_code=404)


def is_uuid_like(value: str) -> bool:
    """Best-effort UUID format check without coercing FastAPI to return 422."""
    try:
        UUID(str(value))
    except (ValueError, TypeError):
        return False
    return True


# --- Caller resolution -----------------------------------------------------------

def session_user(request: Request) -> Optional[dict]:
    return getattr(request.state, "user", None)


def auth_context(request: Request) -> Tuple[Optional[AuthContext], Optional[JSONResponse]]:
    """Resolve the caller once per request; returns (ctx, None) or (None, error response)."""
    cached = getattr(request.state, "auth_context", None)
    if isinstance(cached, AuthContext):
        return cached, None
    try:
        ctx = ProfileResolver(_get_repo()).resolve_caller(session_user(request))
    except DomainError as exc:
        return None, domain_error(exc)
    request.state.auth_context = ctx
    return ctx, None


def require_session(request: Request) -> Tuple[Optional[dict], Optional[JSONResponse]]:
    """Session only (no profile yet), used by profile setup."""
    user = session_user(request)
    if not user or not user.get("sub"):
        return None, domain_error(Unauthenticated())
    return user, None


__all__ = [
    "set_repo",
    "set_notifier",
    "set_storage_adapter",
    "json_private",
    "domain_error",
    "internal_error",
    "not_found",
    "is_uuid_like",
    "auth_context",
    "require_session",
]
