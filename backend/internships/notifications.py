"""
Notification Dispatcher: e-mails about review decisions and assignments.

Why:
    Use cases trigger notifications but must not depend on how mail is sent.
    One dispatcher is selected at startup (`build_dispatcher_from_env`) and
    injected; call sites never chain fallbacks themselves.

Behavior:
    - `send(kind, recipient, data)` returns a `DispatchResult`; provider
      failures are reported as `ok=False`, not raised.
    - `LogNotificationDispatcher` only logs subject line and recipient.
    - `ResendNotificationDispatcher` posts to the Resend HTTP API via httpx.

Security:
    Template values are HTML-escaped. Bodies and API keys are never logged.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import html
import logging
import os
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx


logger = logging.getLogger("stagehub.notifications")


class NotificationKind(str, Enum):
    SUBJECT_VALIDATED = "subject_validated"
    SUBJECT_NEEDS_MODIFICATION = "subject_needs_modification"
    SUBJECT_REFUSED = "subject_refused"
    ASSIGNMENT_CONFIRMATION = "assignment_confirmation"


@dataclass(frozen=True)
class DispatchResult:
    ok: bool
    message: str
    provider_id: Optional[str] = None


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


class NotificationDispatcher(Protocol):
    def send(self, kind: NotificationKind, recipient: str, data: Mapping[str, Any]) -> DispatchResult:
        ...


_SIGNATURE = "The Internship Management Team"
_NO_FEEDBACK = "No specific feedback provided."


def _esc(value: Any) -> str:
    return html.escape(str(value if value is not None else ""), quote=True)


def _paragraphs(lines: list[str]) -> str:
    return "".join(f"<p>{_esc(line)}</p>" for line in lines if line)


def render_email(kind: NotificationKind, data: Mapping[str, Any]) -> RenderedEmail:
    """Render subject line, HTML and plain-text bodies for `kind`."""
    title = str(data.get("subject_title") or "")
    comment = str(data.get("comment") or "").strip() or _NO_FEEDBACK
    app_url = str(data.get("app_url") or "")

    if kind is NotificationKind.ASSIGNMENT_CONFIRMATION:
        student = str(data.get("student_name") or "")
        supervisor = str(data.get("supervisor_name") or "")
        lines = [
            f"Dear {student},",
            "We are pleased to inform you that you have been assigned to the following internship:",
            f"Subject: {title}",
            f"Supervisor: {supervisor}",
            "Next steps: log in to the internship platform to view the details, contact your "
            "supervisor to discuss the internship, and review any additional requirements.",
            f"Platform: {app_url}" if app_url else "",
            "Best regards,",
            "M2 SIF Administration Team",
        ]
        subject = "Internship Assignment Confirmation - M2 SIF"
    else:
        supervisor = str(data.get("supervisor_name") or "")
        if kind is NotificationKind.SUBJECT_VALIDATED:
            subject = f'Your internship subject "{title}" has been validated'
            body = [
                "Great news! Your internship subject has been validated and is now available for student selection.",
                f"Subject: {title}",
                "Status: Validated",
            ]
        elif kind is NotificationKind.SUBJECT_NEEDS_MODIFICATION:
            subject = f'Your internship subject "{title}" needs modification'
            body = [
                "Your internship subject requires some modifications before it can be validated.",
                f"Subject: {title}",
                "Status: Needs modification",
                f"Admin feedback: {comment}",
                "Please log in to your account to edit your subject and resubmit it for review.",
            ]
        else:
            subject = f'Your internship subject "{title}" has been refused'
            body = [
                "Unfortunately, your internship subject has been refused.",
                f"Subject: {title}",
                "Status: Refused",
                f"Admin feedback: {comment}",
                "If you have questions about this decision, please contact the administration.",
            ]
        lines = [f"Dear {supervisor},", *body, "Best regards,", _SIGNATURE]

    text = "\n\n".join(line for line in lines if line)
    return RenderedEmail(subject=subject, html=_paragraphs(lines), text=text)


class LogNotificationDispatcher:
    """Development dispatcher: records the would-be e-mail in the log."""

    def send(self, kind: NotificationKind, recipient: str, data: Mapping[str, Any]) -> DispatchResult:
        email = render_email(kind, data)
        logger.info("Notification (log backend) kind=%s subject=%r", kind.value, email.subject)
        logger.debug("Notification recipient=%s", recipient)
        return DispatchResult(ok=True, message="Notification logged (log backend)")


class ResendNotificationDispatcher:
    """Send e-mails through the Resend HTTP API."""

    DEFAULT_API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        api_url: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("resend_api_key_required")
        if not sender:
            raise ValueError("notifications_from_required")
        self._api_key = api_key
        self._sender = sender
        self._api_url = api_url or self.DEFAULT_API_URL
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, kind: NotificationKind, recipient: str, data: Mapping[str, Any]) -> DispatchResult:
        email = render_email(kind, data)
        payload: Dict[str, Any] = {
            "from": self._sender,
            "to": [recipient],
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }
        try:
            resp = self._client.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Resend request failed kind=%s: %s", kind.value, exc.__class__.__name__)
            return DispatchResult(ok=False, message="Email provider unreachable")
        if resp.status_code // 100 != 2:
            logger.warning("Resend rejected kind=%s status=%s", kind.value, resp.status_code)
            return DispatchResult(ok=False, message=f"Email provider returned {resp.status_code}")
        provider_id = None
        try:
            body = resp.json()
            if isinstance(body, dict) and body.get("id"):
                provider_id = str(body["id"])
        except ValueError:
            pass
        logger.info("Notification sent kind=%s provider_id=%s", kind.value, provider_id)
        return DispatchResult(ok=True, message="Email sent", provider_id=provider_id)


def build_dispatcher_from_env() -> NotificationDispatcher:
    """Select the dispatcher from NOTIFICATIONS_BACKEND (log|resend)."""
    backend = (os.getenv("NOTIFICATIONS_BACKEND") or "log").strip().lower()
    if backend == "resend":
        return ResendNotificationDispatcher(
            api_key=(os.getenv("RESEND_API_KEY") or "").strip(),
            sender=(os.getenv("NOTIFICATIONS_FROM") or "").strip(),
            api_url=(os.getenv("RESEND_API_URL") or "").strip() or None,
        )
    if backend != "log":
        raise ValueError(f"unknown_notifications_backend: {backend}")
    return LogNotificationDispatcher()


def app_public_url() -> str:
    return (os.getenv("APP_PUBLIC_URL") or "http://localhost:8000").rstrip("/")


__all__ = [
    "NotificationKind",
    "DispatchResult",
    "RenderedEmail",
    "NotificationDispatcher",
    "render_email",
    "LogNotificationDispatcher",
    "ResendNotificationDispatcher",
    "build_dispatcher_from_env",
    "app_public_url",
]
