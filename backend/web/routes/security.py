"""
Shared web security helpers for the API routers.

Contains the same-origin CSRF check used by every write endpoint. Keeping a
single implementation avoids drift between routers.
"""
from __future__ import annotations

import os
from typing import Optional, Tuple
from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import JSONResponse


Origin = Tuple[str, str, int]


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> Origin:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    port = p.port if p.port is not None else _default_port(scheme)
    return scheme, p.hostname.lower(), int(port)


def _server_origin(request: Request) -> Origin:
    """Origin the server is reached at; X-Forwarded-* only with STAGEHUB_TRUST_PROXY=true."""
    trust_proxy = (os.getenv("STAGEHUB_TRUST_PROXY", "false") or "").lower() == "true"
    if trust_proxy:
        proto = (request.headers.get("x-forwarded-proto") or request.url.scheme or "http").split(",")[0].strip()
        scheme = (proto or "http").lower()
        host_raw = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
        host, _, port_str = host_raw.rpartition(":") if ":" in host_raw else (host_raw, "", "")
        try:
            port = int(port_str) if port_str else _default_port(scheme)
        except ValueError:
            port = _default_port(scheme)
        xf_port = (request.headers.get("x-forwarded-port") or "").split(",")[0].strip()
        if xf_port:
            try:
                port = int(xf_port)
            except ValueError:
                port = _default_port(scheme)
        return scheme, (host or request.url.hostname or "").lower(), port

    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin, else Referer.

    Requests carrying neither header are allowed (non-browser clients);
    `csrf_guard` tightens this in strict mode.
    """
    candidate = request.headers.get("origin") or request.headers.get("referer")
    if not candidate:
        return True
    try:
        return _parse_origin(candidate) == _server_origin(request)
    except ValueError:
        return False


def _strict_csrf() -> bool:
    prod_env = (os.getenv("STAGEHUB_ENV", "dev") or "").lower() == "prod"
    strict_toggle = (os.getenv("STRICT_CSRF", "false") or "").lower() == "true"
    return prod_env or strict_toggle


def csrf_guard(request: Request) -> Optional[JSONResponse]:
    """Return a 403 response when a write request fails the same-origin check.

    In production or with STRICT_CSRF=true an Origin or Referer header is
    mandatory; otherwise a missing header is tolerated.
    """
    if _strict_csrf():
        present = request.headers.get("origin") or request.headers.get("referer")
        ok = bool(present) and _is_same_origin(request)
    else:
        ok = _is_same_origin(request)
    if ok:
        return None
    return JSONResponse(
        {"error": "forbidden", "detail": "csrf_violation", "message": "Cross-origin request rejected"},
        status_code=403,
        headers={"Cache-Control": "private, no-store", "Vary": "Origin"},
    )


__all__ = ["csrf_guard", "_is_same_origin"]
