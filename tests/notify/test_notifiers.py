"""Tests for notification transports and the hub."""

from __future__ import annotations

import asyncio
import json
import smtplib
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs

import httpx
import pytest

from foreman.config import ForemanConfig
from foreman.notify import (
    EmailNotifier,
    NotificationHub,
    NotificationTargets,
    SlackNotifier,
    WhatsAppNotifier,
)


@pytest.fixture
def mock_transport():
    """A transport that records requests and answers with a fixed status."""

    class MockTransport(httpx.AsyncBaseTransport):
        def __init__(self):
            self.requests: list[httpx.Request] = []
            self.status = 200

        async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return httpx.Response(status_code=self.status, text="ok", request=request)

    return MockTransport()


class TestSlackNotifier:
    @pytest.mark.asyncio
    async def test_posts_to_target_webhook(self, mock_transport):
        notifier = SlackNotifier("https://hooks.slack.test/default", transport=mock_transport)

        ok = await notifier.send_notification("https://hooks.slack.test/ops", "Subject", "Body")

        assert ok is True
        request = mock_transport.requests[0]
        assert str(request.url) == "https://hooks.slack.test/ops"
        assert json.loads(request.read()) == {"text": "*Subject*\n\nBody"}

    @pytest.mark.asyncio
    async def test_falls_back_to_default_webhook(self, mock_transport):
        notifier = SlackNotifier("https://hooks.slack.test/default", transport=mock_transport)

        assert await notifier.send_notification("", None, "Body") is True
        assert str(mock_transport.requests[0].url) == "https://hooks.slack.test/default"

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self, mock_transport):
        mock_transport.status = 500
        notifier = SlackNotifier("https://hooks.slack.test/default", transport=mock_transport)

        assert await notifier.send_notification("", "s", "b") is False

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        notifier = SlackNotifier()
        assert not notifier.is_configured
        assert await notifier.send_notification("", "s", "b") is False


class TestWhatsAppNotifier:
    @pytest.mark.asyncio
    async def test_sends_twilio_message(self, mock_transport):
        notifier = WhatsAppNotifier(
            "AC123",
            "secret",
            "+15550001111",
            base_url="https://twilio.test/2010-04-01",
            transport=mock_transport,
        )

        ok = await notifier.send_notification("+15552223333", "Subject", "Body")

        assert ok is True
        request = mock_transport.requests[0]
        assert str(request.url) == "https://twilio.test/2010-04-01/Accounts/AC123/Messages.json"
        assert request.headers["Authorization"].startswith("Basic ")
        form = parse_qs(request.read().decode())
        assert form["To"] == ["whatsapp:+15552223333"]
        assert form["From"] == ["whatsapp:+15550001111"]
        assert form["Body"] == ["Subject\n\nBody"]

    @pytest.mark.asyncio
    async def test_api_error_returns_false(self, mock_transport):
        mock_transport.status = 401
        notifier = WhatsAppNotifier("AC123", "bad", "+1555", transport=mock_transport)

        assert await notifier.send_notification("+1666", None, "Body") is False

    @pytest.mark.asyncio
    async def test_unconfigured(self, mock_transport):
        notifier = WhatsAppNotifier(transport=mock_transport)

        assert await notifier.send_notification("+1666", None, "Body") is False
        assert mock_transport.requests == []


class TestEmailNotifier:
    @pytest.mark.asyncio
    async def test_unconfigured(self):
        assert await EmailNotifier().send_notification("a@example.com", "s", "b") is False

    @pytest.mark.asyncio
    async def test_sends_with_starttls_and_login(self):
        smtp = MagicMock()
        smtp.__enter__.return_value = smtp
        smtp.has_extn.return_value = True
        notifier = EmailNotifier("smtp.example.com", 587, user="u", password="p")

        with patch("foreman.notify.mail.smtplib.SMTP", return_value=smtp) as smtp_cls:
            ok = await notifier.send_notification("a@example.com", "Subject", "Body")

        assert ok is True
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("u", "p")
        message = smtp.send_message.call_args.args[0]
        assert message["To"] == "a@example.com"
        assert message["Subject"] == "Subject"

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self):
        notifier = EmailNotifier("smtp.example.com")

        with patch(
            "foreman.notify.mail.smtplib.SMTP",
            side_effect=smtplib.SMTPConnectError(421, "busy"),
        ):
            assert await notifier.send_notification("a@example.com", "s", "b") is False


def fake_notifier(configured: bool = True):
    notifier = MagicMock()
    notifier.name = "fake"
    notifier.is_configured = configured
    notifier.send_notification = AsyncMock(return_value=True)
    return notifier


class TestNotificationHub:
    def test_deliveries_only_for_given_targets(self):
        email, whatsapp, slack = fake_notifier(), fake_notifier(), fake_notifier(configured=False)
        hub = NotificationHub(email=email, whatsapp=whatsapp, slack=slack)

        pairs = hub.deliveries(NotificationTargets(email="a@example.com"))

        assert pairs == [(email, "a@example.com")]

    def test_slack_default_webhook_always_used(self):
        slack = fake_notifier(configured=True)
        hub = NotificationHub(slack=slack)

        assert hub.deliveries(NotificationTargets()) == [(slack, "")]

    @pytest.mark.asyncio
    async def test_dispatch_sends_to_every_transport(self):
        email, whatsapp, slack = fake_notifier(), fake_notifier(), fake_notifier()
        hub = NotificationHub(email=email, whatsapp=whatsapp, slack=slack)

        task = hub.dispatch(
            NotificationTargets(
                email="a@example.com",
                whatsapp_phone="+1555",
                slack_webhook="https://hooks.slack.test/x",
            ),
            "Subject",
            "Body",
        )
        assert task is not None
        await hub.drain()

        email.send_notification.assert_awaited_once_with("a@example.com", "Subject", "Body")
        whatsapp.send_notification.assert_awaited_once_with("+1555", "Subject", "Body")
        slack.send_notification.assert_awaited_once_with(
            "https://hooks.slack.test/x", "Subject", "Body"
        )

    @pytest.mark.asyncio
    async def test_failing_transport_does_not_stop_others(self):
        email, slack = fake_notifier(), fake_notifier()
        email.send_notification = AsyncMock(side_effect=RuntimeError("smtp down"))
        hub = NotificationHub(email=email, slack=slack)

        hub.dispatch(NotificationTargets(email="a@example.com"), "s", "b")
        await hub.drain()

        slack.send_notification.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dispatch_does_not_block(self):
        release = asyncio.Event()
        email = fake_notifier()

        async def slow(*args):
            await release.wait()
            return True

        email.send_notification = AsyncMock(side_effect=slow)
        hub = NotificationHub(email=email)

        task = hub.dispatch(NotificationTargets(email="a@example.com"), "s", "b")
        assert not task.done()

        release.set()
        await hub.drain()
        assert task.done()

    def test_no_targets(self):
        assert NotificationHub().dispatch(NotificationTargets(email="a@example.com"), "s", "b") is None

    def test_from_config(self):
        config = ForemanConfig(smtp_host="smtp.example.com", slack_webhook_url="https://hooks.slack.test/x")
        hub = NotificationHub.from_config(config)

        assert hub.email.is_configured
        assert hub.slack.is_configured
        assert not hub.whatsapp.is_configured
