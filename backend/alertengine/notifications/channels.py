"""
Notification Channels

Transports for alert notifications. Each channel sends one alert to a
list of recipients and raises DeliveryError (or any transport error) when
nothing could be delivered; the dispatcher isolates those failures.
"""

from __future__ import annotations

import asyncio
import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from functools import partial
from typing import Any, Protocol

import aiosmtplib
import httpx
from twilio.rest import Client as TwilioClient

from alertengine.cache import RedisCache
from alertengine.config import EmailConfig, InAppConfig, SmsConfig, WebhookConfig
from alertengine.models.alert import AlertInstance, AlertSeverity
from alertengine.models.rule import AlertRule
from alertengine.notifications.recipients import EMAIL, INAPP, SMS, WEBHOOK

logger = logging.getLogger(__name__)

# Status codes worth another attempt
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

ALERT_TRIGGERED = "alert_triggered"
ALERT_ESCALATED = "alert_escalated"

SEVERITY_COLORS = {
    AlertSeverity.CRITICAL: "#dc2626",
    AlertSeverity.WARNING: "#f59e0b",
    AlertSeverity.INFO: "#3b82f6",
}


class DeliveryError(Exception):
    """A channel could not deliver to any recipient."""


class NotificationChannel(Protocol):
    name: str

    async def send(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str = ALERT_TRIGGERED,
    ) -> None: ...


def alert_payload(
    instance: AlertInstance, rule: AlertRule, event: str = ALERT_TRIGGERED
) -> dict[str, Any]:
    """JSON body shared by webhook and in-app notifications."""
    return {
        "event": event,
        "alert_id": instance.id,
        "tenant_id": instance.tenant_id,
        "rule_id": rule.id,
        "rule_name": rule.name,
        "severity": instance.severity.value,
        "status": instance.status.value,
        "message": instance.message,
        "details": instance.details,
        "device_id": instance.device_id,
        "triggered_at": instance.triggered_at.isoformat(),
        "field_values": instance.field_values,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Email
# ─────────────────────────────────────────────────────────────────────────────


def build_email_body(instance: AlertInstance, rule: AlertRule) -> str:
    """Render the HTML body for an alert email."""
    color = SEVERITY_COLORS.get(instance.severity, "#6b7280")
    lines = [
        "<html><body>",
        f"<h2 style='color: {color}'>[{instance.severity.value}] Alert Triggered</h2>",
        f"<p><strong>Rule:</strong> {html.escape(rule.name)}</p>",
        f"<p><strong>Message:</strong> {html.escape(instance.message)}</p>",
        f"<p><strong>Details:</strong> {html.escape(instance.details)}</p>",
        f"<p><strong>Device ID:</strong> {html.escape(instance.device_id)}</p>",
        f"<p><strong>Triggered At:</strong> "
        f"{instance.triggered_at:%Y-%m-%d %H:%M:%S} UTC</p>",
    ]
    if instance.field_values:
        lines.append("<h3>Field Values:</h3>")
        lines.append("<ul>")
        for key, value in instance.field_values.items():
            lines.append(f"<li><strong>{html.escape(key)}:</strong> {html.escape(str(value))}</li>")
        lines.append("</ul>")
    lines.append("</body></html>")
    return "\n".join(lines)


class EmailChannel:
    """SMTP delivery via aiosmtplib."""

    name = EMAIL

    def __init__(self, config: EmailConfig):
        self.config = config

    def build_message(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str = ALERT_TRIGGERED,
    ) -> MIMEMultipart:
        prefix = "Escalation: " if event == ALERT_ESCALATED else ""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"[{instance.severity.value}] {prefix}{rule.name}"
        msg["From"] = f"{self.config.from_name} <{self.config.from_address}>"
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(instance.message, "plain"))
        msg.attach(MIMEText(build_email_body(instance, rule), "html"))
        return msg

    async def send(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str = ALERT_TRIGGERED,
    ) -> None:
        if not self.config.enabled:
            raise DeliveryError("email delivery is disabled")

        msg = self.build_message(instance, rule, recipients, event)
        await aiosmtplib.send(
            msg,
            recipients=recipients,
            hostname=self.config.smtp_server,
            port=self.config.smtp_port,
            username=self.config.username or None,
            password=self.config.password or None,
            use_tls=self.config.use_tls,
            start_tls=self.config.start_tls if not self.config.use_tls else False,
        )
        logger.info(
            "Email notification sent: alert=%s recipients=%d", instance.id, len(recipients)
        )


# ─────────────────────────────────────────────────────────────────────────────
# Webhook
# ─────────────────────────────────────────────────────────────────────────────


class WebhookChannel:
    """JSON POST to each webhook URL with bounded retries."""

    name = WEBHOOK

    def __init__(
        self,
        config: WebhookConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport

    async def _post(self, client: httpx.AsyncClient, url: str, payload: dict[str, Any]) -> None:
        attempts = max(1, self.config.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                response = await client.post(url, json=payload)
                if response.status_code in RETRYABLE_STATUS_CODES and attempt < attempts:
                    logger.debug("Webhook %s returned %d, retrying", url, response.status_code)
                else:
                    response.raise_for_status()
                    return
            except httpx.TransportError as e:
                if attempt >= attempts:
                    raise
                logger.debug("Webhook %s transport error (%s), retrying", url, e)
            await asyncio.sleep(self.config.retry_delay_seconds * attempt)

    async def send(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str = ALERT_TRIGGERED,
    ) -> None:
        payload = alert_payload(instance, rule, event)

        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(
                *(self._post(client, url, payload) for url in recipients),
                return_exceptions=True,
            )

        failed = 0
        for url, result in zip(recipients, results):
            if isinstance(result, Exception):
                failed += 1
                logger.error("Failed to send webhook notification to %s: %s", url, result)
            else:
                logger.info("Webhook notification sent: url=%s alert=%s", url, instance.id)

        if failed == len(recipients):
            raise DeliveryError(f"all {failed} webhook deliveries failed")


# ─────────────────────────────────────────────────────────────────────────────
# SMS
# ─────────────────────────────────────────────────────────────────────────────


class SmsChannel:
    """SMS via the Twilio REST client, run in a thread executor."""

    name = SMS

    def __init__(self, config: SmsConfig, client: Any = None):
        self.config = config
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.config.account_sid and self.config.auth_token and self.config.from_number)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = TwilioClient(self.config.account_sid, self.config.auth_token)
        return self._client

    async def send(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str = ALERT_TRIGGERED,
    ) -> None:
        if self._client is None and not self.configured:
            raise DeliveryError("SMS provider credentials are not configured")

        body = f"[{instance.severity.value}] {rule.name}: {instance.message}"
        client = self._get_client()
        loop = asyncio.get_running_loop()

        failed = 0
        for number in recipients:
            try:
                await loop.run_in_executor(
                    None,
                    partial(
                        client.messages.create,
                        to=number,
                        from_=self.config.from_number,
                        body=body,
                    ),
                )
            except Exception as e:
                failed += 1
                logger.error("Failed to send SMS for alert %s: %s", instance.id, e)

        if failed == len(recipients):
            raise DeliveryError(f"all {failed} SMS deliveries failed")
        logger.info("SMS notification sent: alert=%s numbers=%d", instance.id, len(recipients) - failed)


# ─────────────────────────────────────────────────────────────────────────────
# In-app
# ─────────────────────────────────────────────────────────────────────────────


class InAppChannel:
    """Publishes alert events on a per-tenant Redis channel."""

    name = INAPP

    def __init__(self, config: InAppConfig, cache: RedisCache):
        self.config = config
        self._cache = cache

    def channel_for(self, tenant_id: str) -> str:
        return f"{self.config.channel_prefix}:{tenant_id}"

    async def send(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str = ALERT_TRIGGERED,
    ) -> None:
        message = {"type": event, **alert_payload(instance, rule, event)}
        await self._cache.publish(self.channel_for(instance.tenant_id), message)
        logger.info("In-app notification: alert=%s tenant=%s", instance.id, instance.tenant_id)
