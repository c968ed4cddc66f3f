"""
Shared fixtures.

Run with: pytest tests/ -v
"""
import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Keep `import main` (module-level app) off disk and quiet
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("REMINDERS_ENABLED", "false")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

from adapters.memory import MemoryAdapter
from core.notifications import EmailNotifier
from models.services import RequestService
from settings import Settings

FIXED_NOW = datetime(2025, 1, 10, 9, 0, 0, tzinfo=timezone.utc)


class FakeSender:
    """Stands in for core.email_sender.send_email; records every call."""

    def __init__(self, error: Exception = None):
        self.calls = []
        self.error = error

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error


def make_settings(**overrides) -> Settings:
    values = dict(
        storage_backend="memory",
        notifications_enabled=True,
        smtp_host="smtp.test.local",
        smtp_port=2525,
        smtp_from_email="data-office@example.com",
        public_base_url="http://app.test",
        reminders_enabled=False,
        notify_timeout_seconds=1.0,
        notify_max_attempts=1,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def store():
    return MemoryAdapter()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def notifier(settings, sender):
    return EmailNotifier(settings, sender=sender)


@pytest.fixture
def service(store, notifier):
    return RequestService(
        storage=store,
        notifier=notifier,
        public_base_url="http://app.test",
        clock=lambda: FIXED_NOW,
    )
