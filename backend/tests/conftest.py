"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, make `backend/` and
`backend/web/` importable, and reset the process-wide singletons (repo,
notifier, storage adapter, session store) so tests never leak state.
"""
import importlib
import os
import sys
from pathlib import Path

import pytest


# Ensure modules in backend/ and backend/web are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
WEB_DIR = BACKEND_DIR / "web"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(REPO_ROOT), str(BACKEND_DIR), str(WEB_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Unit and API tests run against the in-memory repo; live-DB tests opt in via
# INTERNSHIPS_TEST_DSN (see utils/db.py).
for _var in ("DATABASE_URL", "INTERNSHIPS_DATABASE_URL", "SUPABASE_DB_URL", "SUPABASE_URL"):
    os.environ.pop(_var, None)
os.environ["SESSIONS_BACKEND"] = "memory"
os.environ["NOTIFICATIONS_BACKEND"] = "log"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_internships_wiring():
    """Give every test a fresh in-memory repo, a recording notifier and no storage.

    Behavior:
        - `routes.common` gets a new `MemoryInternshipsRepo`.
        - The notifier is a `RecordingDispatcher` tests can inspect via
          `routes.common._get_notifier()`.
        - The storage adapter is reset to `NullStorageAdapter`.
    """
    try:
        # Import the app first: its startup wiring installs the env notifier.
        importlib.import_module("main")
        common = importlib.import_module("routes.common")
        from internships.repo_memory import MemoryInternshipsRepo
        from internships.storage import NullStorageAdapter
        from utils.fakes import RecordingDispatcher
    except Exception:
        yield
        return
    common.set_repo(MemoryInternshipsRepo())
    common.set_notifier(RecordingDispatcher())
    common.set_storage_adapter(NullStorageAdapter())
    yield


@pytest.fixture(autouse=True)
def _clear_feature_flags(monkeypatch: pytest.MonkeyPatch):
    """Clear env toggles that change CSRF, config-guard or storage behavior.

    Tests that need prod semantics opt in explicitly with monkeypatch.
    """
    if not os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "TEST_ONLY_NOT_USED")
    for var in (
        "STAGEHUB_ENV",
        "STAGEHUB_TRUST_PROXY",
        "STRICT_CSRF",
        "AUTO_CREATE_STORAGE_BUCKETS",
        "SUBJECT_PDF_BUCKET",
        "SUBJECT_PDF_MAX_UPLOAD_BYTES",
        "SIGNED_URL_DEFAULT_TTL",
        "SIGNED_URL_MAX_TTL",
        "APP_PUBLIC_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_session_store(monkeypatch: pytest.MonkeyPatch):
    """Reset SESSION_STORE on both `main` aliases to one fresh in-memory store."""
    try:
        import main  # type: ignore
        from identity_access.stores import SessionStore  # type: ignore
    except Exception:
        yield
        return

    shared_session = SessionStore()
    monkeypatch.setattr(main, "SESSION_STORE", shared_session, raising=False)
    alias = sys.modules.get("backend.web.main")
    if alias is not None and alias is not main:
        monkeypatch.setattr(alias, "SESSION_STORE", shared_session, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_settings_environment_override():
    """Reset main.SETTINGS.override_environment between tests."""
    mod = sys.modules.get("main")
    if mod is not None and hasattr(mod, "SETTINGS"):
        mod.SETTINGS.override_environment(None)
    yield
