# services/api/core/reminders.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from models import Request

if TYPE_CHECKING:
    from models.services import RequestService

logger = logging.getLogger(__name__)

FREQUENCY_DAYS = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
    "monthly": 30,
}
DEFAULT_FREQUENCY = "weekly"


def reminder_interval(frequency: Optional[str]) -> timedelta:
    """Unknown frequencies fall back to weekly."""
    days = FREQUENCY_DAYS.get((frequency or "").strip().lower())
    if days is None:
        logger.warning(f"Unknown reminder frequency {frequency!r}, using {DEFAULT_FREQUENCY}")
        days = FREQUENCY_DAYS[DEFAULT_FREQUENCY]
    return timedelta(days=days)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (with or without 'Z'); naive values are UTC."""
    if not value:
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def next_reminder_at(request: Request) -> Optional[datetime]:
    """
    When the next reminder for this request is due.

    None when reminders are disabled, the request is completed,
    or there is nobody to remind.
    """
    if not request.reminders.enabled or request.is_completed or not request.emails:
        return None
    base = parse_iso(request.reminders.last_sent_at) or parse_iso(request.created_at)
    if base is None:
        return None
    return base + reminder_interval(request.reminders.frequency)


def is_reminder_due(request: Request, now: datetime) -> bool:
    due = next_reminder_at(request)
    return due is not None and due <= now


class ReminderScheduler:
    """
    Background loop that periodically asks the service to send due reminders.
    Started on app startup, cancelled on shutdown.
    """

    def __init__(self, service: "RequestService", interval_seconds: int = 3600):
        self.service = service
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"⏰ Reminder loop started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder loop stopped")

    async def run_once(self) -> int:
        try:
            return await self.service.send_due_reminders()
        except Exception as e:
            # One bad pass must not kill the loop
            logger.exception(f"✗ Reminder pass failed: {e}")
            return 0

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)
