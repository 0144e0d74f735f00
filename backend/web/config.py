"""
Configuration and startup security checks for StageHub.

Why: Prevent accidental insecure deployments. A single guard enforces
minimal production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _flag(name: str) -> bool:
    return (os.getenv(name, "false") or "").strip().lower() == "true"


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - SUPABASE_SERVICE_ROLE_KEY is set and not a dummy placeholder.
    - No database DSN disables TLS (sslmode=disable).
    - Sessions use the Supabase backend, with SUPABASE_JWT_SECRET set.
    - Notifications use a real provider unless ALLOW_LOG_NOTIFICATIONS=true.
    - The dev bucket bootstrap is off.
    """
    env = os.getenv("STAGEHUB_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY", "") or "").strip()
    if not srole or srole.upper() == "DUMMY_DO_NOT_USE":
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    for key in ("DATABASE_URL", "INTERNSHIPS_DATABASE_URL", "SUPABASE_DB_URL"):
        if "sslmode=disable" in (os.getenv(key, "") or ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    backend = (os.getenv("SESSIONS_BACKEND", "memory") or "").strip().lower()
    if backend != "supabase":
        raise SystemExit("Refusing to start: SESSIONS_BACKEND must be 'supabase' in production/staging.")
    if not (os.getenv("SUPABASE_JWT_SECRET", "") or "").strip():
        raise SystemExit("Refusing to start: SUPABASE_JWT_SECRET is required in production/staging.")

    notifications = (os.getenv("NOTIFICATIONS_BACKEND", "log") or "").strip().lower()
    if notifications == "log" and not _flag("ALLOW_LOG_NOTIFICATIONS"):
        raise SystemExit(
            "Refusing to start: NOTIFICATIONS_BACKEND=log in production. Configure 'resend' or set ALLOW_LOG_NOTIFICATIONS=true."
        )

    if _flag("AUTO_CREATE_STORAGE_BUCKETS"):
        raise SystemExit("Refusing to start: AUTO_CREATE_STORAGE_BUCKETS must be false in production/staging.")
