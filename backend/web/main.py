"StageHub: internship subject management API"
from __future__ import annotations

import logging
import os
import sys as _sys
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity_access.stores import SessionStore, SupabaseTokenSessionStore

try:
    from .auth_utils import SESSION_COOKIE_NAME, session_credential
except ImportError:
    from auth_utils import SESSION_COOKIE_NAME, session_credential

# Ensure imports consistently reference the same module instance.
if __name__ == "main":
    _sys.modules.setdefault("backend.web.main", _sys.modules[__name__])
elif __name__ == "backend.web.main":
    _sys.modules["main"] = _sys.modules[__name__]


def _under_pytest() -> bool:
    return "pytest" in _sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via STAGEHUB_ENABLE_DOTENV (default true).
    """
    if _under_pytest():
        return False
    flag = (os.getenv("STAGEHUB_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Fail fast on insecure production config. Support "flat" (container) and package layouts.
try:
    import config as _cfg  # type: ignore
except ImportError:  # pragma: no cover
    from backend.web import config as _cfg  # type: ignore
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return os.getenv("STAGEHUB_ENV", "dev").lower()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("stagehub.identity_access")
SETTINGS = AuthSettings()

app = FastAPI(
    title="StageHub",
    description="Internship subject submission, review, student choices and assignments",
    version="0.1.0",
)

from routes.assignments import assignments_router
from routes.choices import choices_router
from routes.common import set_notifier
from routes.files import files_router
from routes.profiles import profiles_router
from routes.subjects import subjects_router

from internships.notifications import build_dispatcher_from_env

# One dispatcher for the whole process, chosen by NOTIFICATIONS_BACKEND.
set_notifier(build_dispatcher_from_env())

# --- Optional Storage Adapter Wiring (Supabase) -------------------------------
try:
    from backend.web.storage_wiring import wire_supabase_adapter_if_configured as _wire_storage  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - container fallback when package path is flattened
    from storage_wiring import wire_supabase_adapter_if_configured as _wire_storage  # type: ignore

_wire_storage()

# --- Sessions -------------------------------------------------------------------


def _build_session_store():
    backend = (os.getenv("SESSIONS_BACKEND", "memory") or "").strip().lower()
    if _under_pytest() or backend != "supabase":
        return SessionStore()
    return SupabaseTokenSessionStore(jwt_secret=(os.getenv("SUPABASE_JWT_SECRET") or "").strip())


SESSION_STORE = _build_session_store()

# --- Auth & Security Middleware -------------------------------------------------

_PUBLIC_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json", "/docs/oauth2-redirect"})


def _unauthenticated() -> JSONResponse:
    headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
    return JSONResponse(
        {"error": "unauthenticated", "detail": "unauthenticated", "message": "Sign-in required"},
        status_code=401,
        headers=headers,
    )


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    if request.url.path in _PUBLIC_PATHS:
        return await call_next(request)

    credential = session_credential(request)
    rec = None
    if credential:
        try:
            rec = SESSION_STORE.get(credential)
        except Exception as exc:
            logger.warning("Session store get failed: %s", exc.__class__.__name__)
    if not rec or not rec.sub:
        return _unauthenticated()

    # Minimal, read-only identity; the profile is resolved per route.
    request.state.user = {"sub": rec.sub, "email": rec.email}
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    # JSON API only: nothing should render or frame these responses.
    connect_src = "'self'"
    pub = (os.getenv("SUPABASE_PUBLIC_URL") or os.getenv("SUPABASE_URL") or "").strip()
    if pub:
        p = urlparse(pub)
        if p.scheme and p.netloc:
            connect_src += f" {p.scheme}://{p.netloc}"
    if request.url.path in ("/docs", "/redoc"):
        csp = "default-src 'self'; script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; img-src 'self' data: https://fastapi.tiangolo.com"
    else:
        csp = f"default-src 'none'; frame-ancestors 'none'; connect-src {connect_src}"
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if SETTINGS.environment == "prod":
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.exception_handler(RequestValidationError)
async def _request_validation_error(request: Request, exc: RequestValidationError):
    """Answer malformed bodies with the shared 400 error shape instead of 422."""
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    message = "Invalid input" + (f": {', '.join(f for f in fields if f)}" if any(fields) else "")
    return JSONResponse(
        {"error": "validation_error", "detail": "invalid_input", "message": message},
        status_code=400,
        headers={"Cache-Control": "private, no-store"},
    )


# --- Routes ---------------------------------------------------------------------

app.include_router(profiles_router)
app.include_router(subjects_router)
app.include_router(choices_router)
app.include_router(assignments_router)
app.include_router(files_router)


@app.get("/health")
async def health_check():
    # Include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})


__all__ = ["app", "SESSION_STORE", "SESSION_COOKIE_NAME", "SETTINGS"]
