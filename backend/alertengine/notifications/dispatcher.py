"""
Notification dispatcher - fans an alert out to its channels.

Channels are sent concurrently. A failing or hanging channel is logged
and never affects the others; dispatch itself never raises.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from alertengine.models.alert import AlertInstance
from alertengine.models.rule import AlertRule
from alertengine.notifications.channels import (
    ALERT_ESCALATED,
    ALERT_TRIGGERED,
    NotificationChannel,
)
from alertengine.notifications.recipients import INAPP, partition_recipients

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    """Outcome of one dispatch, by channel name."""

    delivered: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)


class NotificationDispatcher:
    """Routes alerts to the channel senders listed on their rule."""

    def __init__(
        self,
        channels: Iterable[NotificationChannel],
        send_timeout: float = 30.0,
    ):
        self._channels: dict[str, NotificationChannel] = {c.name.lower(): c for c in channels}
        self.send_timeout = send_timeout

    def plan(
        self, channel_names: Iterable[str], recipients: Iterable[str]
    ) -> dict[str, list[str]]:
        """
        Work out which channels to invoke and with which recipients.

        Channels without a matching recipient are skipped, except in-app
        which needs none.
        """
        partitioned = partition_recipients(recipients)
        planned: dict[str, list[str]] = {}
        for name in channel_names:
            key = name.strip().lower()
            if key in planned:
                continue
            if key == INAPP:
                planned[key] = []
            elif partitioned.get(key):
                planned[key] = partitioned[key]
        return planned

    async def _send_one(
        self,
        name: str,
        instance: AlertInstance,
        rule: AlertRule,
        recipients: list[str],
        event: str,
    ) -> None:
        channel = self._channels.get(name)
        if channel is None:
            raise LookupError(f"no sender registered for channel '{name}'")
        await asyncio.wait_for(
            channel.send(instance, rule, recipients, event=event), self.send_timeout
        )

    async def _fan_out(
        self,
        instance: AlertInstance,
        rule: AlertRule,
        planned: Mapping[str, list[str]],
        event: str = ALERT_TRIGGERED,
    ) -> DispatchReport:
        report = DispatchReport()
        if not planned:
            return report

        names = list(planned)
        results = await asyncio.gather(
            *(self._send_one(name, instance, rule, planned[name], event) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, asyncio.TimeoutError):
                report.failed.append(name)
                logger.error(
                    "Timed out sending %s notification for alert %s", name, instance.id
                )
            elif isinstance(result, BaseException):
                report.failed.append(name)
                logger.error(
                    "Failed to send %s notification for alert %s: %s", name, instance.id, result
                )
            else:
                report.delivered.append(name)
        return report

    async def dispatch(self, instance: AlertInstance, rule: AlertRule) -> DispatchReport:
        """Send the initial trigger notification."""
        planned = self.plan(rule.delivery_channels, rule.recipients)
        return await self._fan_out(instance, rule, planned)

    async def escalate(self, instance: AlertInstance, rule: AlertRule) -> DispatchReport:
        """Send an escalation using the rule's escalation channels and recipients."""
        escalation = rule.escalation_rule
        if escalation is None:
            return DispatchReport()

        logger.warning("Escalating alert: alert=%s rule=%s", instance.id, rule.name)
        message = escalation.escalation_message or f"Escalation: {instance.message}"
        escalated = instance.model_copy(update={"message": message})
        planned = self.plan(escalation.escalation_channels, escalation.escalation_recipients)
        return await self._fan_out(escalated, rule, planned, ALERT_ESCALATED)
