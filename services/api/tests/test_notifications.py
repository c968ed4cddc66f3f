"""
Tests for the email notifier and message builders.

Run with: pytest tests/test_notifications.py -v
"""
import asyncio

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeSender, make_settings
from core.errors import NotificationFailure
from core.notifications import (
    REASON_DISABLED,
    REASON_MISSING_CONFIG,
    REASON_NO_RECIPIENTS,
    REASON_TIMEOUT,
    DeliveryResult,
    EmailNotifier,
    build_reminder_email,
    build_request_email,
    request_link,
)
from models import Request


def _request(**kw):
    base = dict(id="REQ-001", title="Meters", emails=["a@example.com"], deadline="2025-01-15")
    base.update(kw)
    return Request(**base)


class TestBuilders:
    def test_link(self):
        assert request_link("http://app.test/", "REQ-001") == "http://app.test/request/REQ-001"

    def test_default_request_email(self):
        n = build_request_email(_request(), "http://app.test")
        assert n.subject == "Data request: Meters"
        assert "http://app.test/request/REQ-001" in n.body
        assert "2025-01-15" in n.body
        assert n.recipients == ["a@example.com"]

    def test_custom_template_link_substituted(self):
        n = build_request_email(
            _request(emailSubject="Fill {{link}}", emailBody="Go: {{link}}\nBye"),
            "http://app.test",
        )
        assert n.subject == "Fill http://app.test/request/REQ-001"
        assert n.body == "Go: http://app.test/request/REQ-001\nBye"

    def test_reminder_email(self):
        n = build_reminder_email(_request(deadline=None), "http://app.test", "2025-01-17")
        assert n.subject == "Reminder: Meters"
        assert "Not specified" in n.body
        assert "2025-01-17" in n.body


class TestPrecheck:
    def test_disabled(self):
        notifier = EmailNotifier(make_settings(notifications_enabled=False), sender=FakeSender())
        assert notifier.precheck(["a@example.com"]) == REASON_DISABLED

    def test_no_recipients(self):
        notifier = EmailNotifier(make_settings(), sender=FakeSender())
        assert notifier.precheck(["", "  "]) == REASON_NO_RECIPIENTS

    def test_missing_config(self):
        notifier = EmailNotifier(make_settings(smtp_host=""), sender=FakeSender())
        assert notifier.precheck(["a@example.com"]) == REASON_MISSING_CONFIG

    def test_ready(self):
        notifier = EmailNotifier(make_settings(), sender=FakeSender())
        assert notifier.precheck(["a@example.com"]) is None


class TestSend:
    def test_delivered(self):
        sender = FakeSender()
        notifier = EmailNotifier(make_settings(), sender=sender)

        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))

        assert result.delivered is True
        assert result.reason is None
        call = sender.calls[0]
        assert call["smtp_host"] == "smtp.test.local"
        assert call["from_email"] == "data-office@example.com"
        assert call["body_text"] == "Body"

    def test_skipped_never_calls_sender(self):
        sender = FakeSender()
        notifier = EmailNotifier(make_settings(smtp_host=""), sender=sender)
        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))
        assert result.delivered is False
        assert result.reason == REASON_MISSING_CONFIG
        assert sender.calls == []

    def test_transport_error_is_returned(self):
        sender = FakeSender(error=NotificationFailure("transport-error: refused"))
        notifier = EmailNotifier(make_settings(), sender=sender)
        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))
        assert result.delivered is False
        assert result.reason == "transport-error: refused"
        assert len(sender.calls) == 1

    def test_retries_exhausted_returns_last_error(self):
        sender = FakeSender(error=NotificationFailure("transport-error: refused"))
        notifier = EmailNotifier(make_settings(notify_max_attempts=2), sender=sender)
        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))
        assert result == DeliveryResult(delivered=False, reason="transport-error: refused")
        assert len(sender.calls) == 2

    def test_unexpected_error_is_returned(self):
        notifier = EmailNotifier(make_settings(), sender=FakeSender(error=RuntimeError("boom")))
        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))
        assert result.delivered is False
        assert result.reason.startswith("transport-error")

    def test_timeout(self):
        async def slow_sender(**kwargs):
            await asyncio.sleep(5)

        notifier = EmailNotifier(make_settings(notify_timeout_seconds=0.05), sender=slow_sender)
        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))
        assert result == DeliveryResult(delivered=False, reason=REASON_TIMEOUT)

    def test_retry_then_success(self):
        state = {"n": 0}

        async def flaky(**kwargs):
            state["n"] += 1
            if state["n"] == 1:
                raise NotificationFailure("transport-error: try again")

        notifier = EmailNotifier(make_settings(notify_max_attempts=2), sender=flaky)

        result = asyncio.run(notifier.send(["a@example.com"], "Hi", "Body"))

        assert result.delivered is True
        assert state["n"] == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
