# services/api/core/notifications.py
"""
Notification dispatcher: request emails at creation time and reminders.

`EmailNotifier.send()` never raises. Every outcome (including timeouts and
transport errors) comes back as a DeliveryResult so callers can log it and
move on; the store is never touched from here.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.email_sender import send_email
from core.errors import NotificationFailure
from models import Request
from settings import Settings

logger = logging.getLogger(__name__)

LINK_PLACEHOLDER = "{{link}}"

REASON_MISSING_CONFIG = "missing-config"
REASON_NO_RECIPIENTS = "no-recipients"
REASON_DISABLED = "disabled"
REASON_TIMEOUT = "timeout"


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    recipients: List[str]
    subject: str
    body: str


SendFn = Callable[..., Awaitable[None]]


def request_link(base_url: str, request_id: str) -> str:
    return f"{(base_url or '').rstrip('/')}/request/{request_id}"


def render_template(text: str, link: str) -> str:
    """Substitute the {{link}} placeholder."""
    return (text or "").replace(LINK_PLACEHOLDER, link)


def build_request_email(request: Request, base_url: str) -> Notification:
    """
    Build the 'please submit your data' email for a freshly created request.
    Falls back to a default subject/body when the request carries none.
    """
    link = request_link(base_url, request.id)
    deadline = request.deadline.isoformat() if request.deadline else "Not specified"

    subject = request.email_subject or f"Data request: {request.title}"
    if request.email_body:
        body = render_template(request.email_body, link)
    else:
        body = (
            "Hi team,\n\n"
            f"Please submit the requested data here: {link}\n"
            f"Deadline: {deadline}\n\n"
            "Thank you."
        )
    return Notification(recipients=list(request.emails), subject=render_template(subject, link), body=body)


def build_reminder_email(request: Request, base_url: str, next_reminder: Optional[str]) -> Notification:
    link = request_link(base_url, request.id)
    deadline = request.deadline.isoformat() if request.deadline else "Not specified"
    lines = [
        "Hi team,",
        "",
        f"Friendly reminder to submit your data for '{request.title}': {link}",
        f"Deadline: {deadline}",
    ]
    if next_reminder:
        lines.append(f"Next reminder is scheduled on {next_reminder}.")
    return Notification(
        recipients=list(request.emails),
        subject=f"Reminder: {request.title}",
        body="\n".join(lines),
    )


class EmailNotifier:
    """
    SMTP notifier with a per-attempt timeout and optional bounded retry.

    Args:
        settings: SMTP + notification settings
        sender: coroutine used to deliver one message (defaults to SMTP);
                injectable for tests
    """

    def __init__(self, settings: Settings, sender: Optional[SendFn] = None):
        self.settings = settings
        self._sender = sender or send_email

    def precheck(self, recipients: List[str]) -> Optional[str]:
        """
        Return the reason a send would be skipped, or None if it would be attempted.
        """
        if not self.settings.notifications_enabled:
            return REASON_DISABLED
        if not [r for r in recipients or [] if r and r.strip()]:
            return REASON_NO_RECIPIENTS
        if not self.settings.smtp_configured():
            return REASON_MISSING_CONFIG
        return None

    async def _attempt(self, recipients: List[str], subject: str, body: str) -> None:
        s = self.settings
        try:
            await asyncio.wait_for(
                self._sender(
                    recipients=recipients,
                    subject=subject,
                    body_text=body,
                    smtp_host=s.smtp_host,
                    smtp_port=s.smtp_port,
                    smtp_user=s.smtp_user,
                    smtp_password=s.smtp_password,
                    from_email=s.smtp_from_email,
                    from_name=s.smtp_from_name,
                    use_tls=s.smtp_use_tls,
                    timeout=s.notify_timeout_seconds,
                ),
                timeout=s.notify_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise NotificationFailure(REASON_TIMEOUT) from e

    async def send(self, recipients: List[str], subject: str, body: str) -> DeliveryResult:
        reason = self.precheck(recipients)
        if reason:
            logger.warning(f"⚠️ Skipping email '{subject}': {reason}")
            return DeliveryResult(delivered=False, reason=reason)

        attempts = max(1, int(self.settings.notify_max_attempts))
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(NotificationFailure),
                reraise=True,
            ):
                with attempt:
                    await self._attempt(recipients, subject, body)
        except NotificationFailure as e:
            logger.error(f"✗ Email '{subject}' not delivered after {attempts} attempt(s): {e.detail}")
            return DeliveryResult(delivered=False, reason=e.detail)
        except Exception as e:
            logger.exception(f"✗ Unexpected error sending email '{subject}': {e}")
            return DeliveryResult(delivered=False, reason=f"transport-error: {e}")

        return DeliveryResult(delivered=True)

    async def send_notification(self, notification: Notification) -> DeliveryResult:
        return await self.send(notification.recipients, notification.subject, notification.body)
