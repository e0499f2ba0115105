import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from alertengine.config import EmailConfig, InAppConfig, SmsConfig, WebhookConfig
from alertengine.models.alert import AlertInstance
from alertengine.notifications.channels import (
    ALERT_ESCALATED,
    DeliveryError,
    EmailChannel,
    InAppChannel,
    SmsChannel,
    WebhookChannel,
    alert_payload,
    build_email_body,
)

from conftest import T0, make_rule


@pytest.fixture
def alert():
    return AlertInstance(
        tenant_id="tenant-a",
        alert_rule_id="rule-1",
        device_id="dev-1",
        severity="Critical",
        message="Alert triggered: High temperature",
        details="Server room <b>hot</b>",
        field_values={"temperature": 85},
        triggered_at=T0,
    )


def test_alert_payload(alert):
    payload = alert_payload(alert, make_rule())
    assert payload["rule_name"] == "High temperature"
    assert payload["severity"] == "Critical"
    assert payload["field_values"] == {"temperature": 85}
    assert payload["triggered_at"] == T0.isoformat()


# ─────────────────────────────────────────────────────────────
# Email
# ─────────────────────────────────────────────────────────────


def test_email_body_escapes_values(alert):
    body = build_email_body(alert, make_rule())
    assert "&lt;b&gt;hot&lt;/b&gt;" in body
    assert "<li><strong>temperature:</strong> 85</li>" in body


async def test_email_sends_through_smtp(alert):
    channel = EmailChannel(EmailConfig(smtp_server="smtp.example.com", smtp_port=2525))

    with patch("aiosmtplib.send", new_callable=AsyncMock) as send:
        await channel.send(alert, make_rule(), ["ops@example.com", "noc@example.com"])

    send.assert_awaited_once()
    msg = send.call_args.args[0]
    assert msg["Subject"] == "[Critical] High temperature"
    assert msg["To"] == "ops@example.com, noc@example.com"
    assert send.call_args.kwargs["hostname"] == "smtp.example.com"
    assert send.call_args.kwargs["port"] == 2525


def test_escalation_email_subject(alert):
    msg = EmailChannel(EmailConfig()).build_message(
        alert, make_rule(), ["ops@example.com"], ALERT_ESCALATED
    )
    assert msg["Subject"] == "[Critical] Escalation: High temperature"


async def test_disabled_email_raises(alert):
    channel = EmailChannel(EmailConfig(enabled=False))
    with pytest.raises(DeliveryError):
        await channel.send(alert, make_rule(), ["ops@example.com"])


# ─────────────────────────────────────────────────────────────
# Webhook
# ─────────────────────────────────────────────────────────────


async def test_webhook_retries_then_succeeds(alert):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200)

    channel = WebhookChannel(
        WebhookConfig(max_retries=3, retry_delay_seconds=0),
        transport=httpx.MockTransport(handler),
    )
    await channel.send(alert, make_rule(), ["https://hooks.example.com/x"])

    assert len(calls) == 3
    assert calls[-1]["alert_id"] == alert.id


async def test_webhook_client_error_is_not_retried(alert):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400)

    channel = WebhookChannel(
        WebhookConfig(max_retries=3, retry_delay_seconds=0),
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(DeliveryError):
        await channel.send(alert, make_rule(), ["https://hooks.example.com/x"])
    assert len(calls) == 1


async def test_webhook_partial_failure_still_delivers(alert):
    def handler(request):
        if request.url.host == "down.example.com":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(204)

    channel = WebhookChannel(
        WebhookConfig(max_retries=2, retry_delay_seconds=0),
        transport=httpx.MockTransport(handler),
    )
    await channel.send(
        alert, make_rule(), ["https://down.example.com/x", "https://up.example.com/x"]
    )


# ─────────────────────────────────────────────────────────────
# SMS
# ─────────────────────────────────────────────────────────────


class FakeMessages:
    def __init__(self, fail_for=()):
        self.created = []
        self.fail_for = set(fail_for)

    def create(self, to, from_, body):
        if to in self.fail_for:
            raise RuntimeError("invalid number")
        self.created.append({"to": to, "from_": from_, "body": body})


async def test_sms_sends_each_number(alert):
    messages = FakeMessages(fail_for={"+15550002"})
    channel = SmsChannel(
        SmsConfig(from_number="+15559999"), client=SimpleNamespace(messages=messages)
    )

    await channel.send(alert, make_rule(), ["+15550001", "+15550002"])

    assert messages.created == [
        {
            "to": "+15550001",
            "from_": "+15559999",
            "body": "[Critical] High temperature: Alert triggered: High temperature",
        }
    ]


async def test_sms_all_failed_raises(alert):
    messages = FakeMessages(fail_for={"+15550001"})
    channel = SmsChannel(SmsConfig(), client=SimpleNamespace(messages=messages))
    with pytest.raises(DeliveryError):
        await channel.send(alert, make_rule(), ["+15550001"])


async def test_sms_without_credentials_raises(alert):
    channel = SmsChannel(SmsConfig())
    assert channel.configured is False
    with pytest.raises(DeliveryError):
        await channel.send(alert, make_rule(), ["+15550001"])


# ─────────────────────────────────────────────────────────────
# In-app
# ─────────────────────────────────────────────────────────────


async def test_inapp_publishes_on_tenant_channel(alert):
    cache = AsyncMock()
    channel = InAppChannel(InAppConfig(channel_prefix="alerts"), cache)

    await channel.send(alert, make_rule(), [])

    cache.publish.assert_awaited_once()
    name, event = cache.publish.call_args.args
    assert name == "alerts:tenant-a"
    assert event["type"] == "alert_triggered"
    assert event["alert_id"] == alert.id


async def test_inapp_escalation_event_type(alert):
    cache = AsyncMock()
    channel = InAppChannel(InAppConfig(), cache)

    await channel.send(alert, make_rule(), [], event=ALERT_ESCALATED)

    _, event = cache.publish.call_args.args
    assert event["type"] == "alert_escalated"
    assert event["event"] == "alert_escalated"
