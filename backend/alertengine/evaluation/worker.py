"""
Evaluation Worker

Drives one evaluation cycle at a time:

    tenants -> enabled rules -> applicable devices -> latest telemetry
            -> condition evaluation -> lifecycle transition -> notifications

Failures are isolated per device, per rule and per tenant so one bad
rule or tenant never blocks the rest of the cycle. Every external call
is bounded by a timeout.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from alertengine.config import EngineConfig, EscalationConfig
from alertengine.evaluation.conditions import evaluate_rule, trigger_severity
from alertengine.evaluation.lifecycle import AUTO_RESOLVE_REASON, Transition, decide
from alertengine.models.alert import AlertInstance, utcnow
from alertengine.models.rule import AlertRule
from alertengine.models.telemetry import TelemetryValue
from alertengine.notifications.dispatcher import NotificationDispatcher
from alertengine.repositories.base import (
    DeviceDirectory,
    InstanceRepository,
    RuleRepository,
    TelemetryFetcher,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class EngineStats:
    """Counters exposed on the health endpoint."""

    cycles: int = 0
    rules_evaluated: int = 0
    alerts_triggered: int = 0
    alerts_resolved: int = 0
    alerts_suppressed: int = 0
    escalations: int = 0
    errors: int = 0
    last_cycle_at: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class EvaluationWorker:
    """
    Evaluates alert rules against live telemetry.

    All collaborators are injected; the worker holds no global state, so
    several isolated workers can run side by side.
    """

    def __init__(
        self,
        rules: RuleRepository,
        instances: InstanceRepository,
        devices: DeviceDirectory,
        telemetry: TelemetryFetcher,
        dispatcher: NotificationDispatcher,
        config: EngineConfig | None = None,
        escalation: EscalationConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._rules = rules
        self._instances = instances
        self._devices = devices
        self._telemetry = telemetry
        self._dispatcher = dispatcher
        self.config = config or EngineConfig()
        self.escalation = escalation or EscalationConfig()
        self._clock = clock

        self._stop = asyncio.Event()
        self._pair_locks: defaultdict[tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)
        self.stats = EngineStats()

    # ─────────────────────────────────────────────────────────────
    # Loop control
    # ─────────────────────────────────────────────────────────────

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Ask the loop to exit after the tenant currently being evaluated."""
        self._stop.set()

    async def _sleep(self, seconds: float) -> bool:
        """Sleep until the next cycle. Returns True if stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def run(self) -> None:
        """Run cycles until stopped, backing off after a failed cycle."""
        logger.info("Alert evaluation worker started")
        while not self.stopping:
            try:
                await self.run_cycle()
                delay = self.config.interval_seconds
            except Exception:
                self.stats.errors += 1
                logger.exception("Error in alert evaluation cycle")
                delay = self.config.error_backoff_seconds

            if await self._sleep(delay):
                break
        logger.info("Alert evaluation worker stopped")

    # ─────────────────────────────────────────────────────────────
    # Cycle
    # ─────────────────────────────────────────────────────────────

    async def _io(self, call: Awaitable[T]) -> T:
        """Await a repository/directory call within the configured budget."""
        return await asyncio.wait_for(call, timeout=self.config.repository_timeout_seconds)

    async def run_cycle(self) -> None:
        """Evaluate every tenant once."""
        tenants = await self._io(self._devices.list_tenants())
        logger.debug("Evaluating alert rules for %d tenants", len(tenants))

        if self.config.tenant_concurrency <= 1:
            for tenant_id in tenants:
                if self.stopping:
                    break
                await self.evaluate_tenant(tenant_id)
        else:
            semaphore = asyncio.Semaphore(self.config.tenant_concurrency)

            async def bounded(tenant_id: str) -> None:
                async with semaphore:
                    if not self.stopping:
                        await self.evaluate_tenant(tenant_id)

            await asyncio.gather(*(bounded(t) for t in tenants))

        self._prune_pair_locks()
        self.stats.cycles += 1
        self.stats.last_cycle_at = self._clock().isoformat()

    def _prune_pair_locks(self) -> None:
        """Drop locks that nobody holds or waits on."""
        idle = [pair for pair, lock in self._pair_locks.items() if not lock.locked()]
        for pair in idle:
            del self._pair_locks[pair]

    async def evaluate_tenant(self, tenant_id: str) -> None:
        try:
            rules = await self._io(self._rules.get_enabled_rules(tenant_id))
            logger.debug("Evaluating %d rules for tenant %s", len(rules), tenant_id)
            for rule in rules:
                await self.evaluate_rule(rule)
        except Exception:
            self.stats.errors += 1
            logger.exception("Error evaluating rules for tenant %s", tenant_id)

    async def applicable_devices(self, rule: AlertRule) -> list[str]:
        """Device ids a rule targets, without duplicates."""
        if not rule.targets_device_types:
            return list(dict.fromkeys(rule.device_ids))

        device_ids: list[str] = []
        for type_id in rule.device_type_ids:
            device_ids.extend(await self._io(self._devices.devices_of_type(rule.tenant_id, type_id)))
        return list(dict.fromkeys(device_ids))

    async def evaluate_rule(self, rule: AlertRule) -> None:
        try:
            device_ids = await self.applicable_devices(rule)
        except Exception:
            self.stats.errors += 1
            logger.exception("Error resolving devices for rule %s", rule.id)
            return

        for device_id in device_ids:
            try:
                await self.evaluate_device(rule, device_id)
            except Exception:
                self.stats.errors += 1
                logger.exception("Error evaluating rule %s on device %s", rule.id, device_id)
        self.stats.rules_evaluated += 1

    async def fetch_telemetry(self, device_id: str, tenant_id: str) -> dict[str, TelemetryValue]:
        """Latest telemetry, or {} on timeout or error."""
        try:
            return await asyncio.wait_for(
                self._telemetry.latest(device_id, tenant_id),
                timeout=self.config.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Telemetry fetch timed out for device %s", device_id)
        except Exception as e:
            logger.error("Error fetching telemetry for device %s: %s", device_id, e)
        return {}

    async def evaluate_device(self, rule: AlertRule, device_id: str) -> Transition:
        """Evaluate one (rule, device) pair and apply the resulting transition."""
        telemetry = await self.fetch_telemetry(device_id, rule.tenant_id)
        if not telemetry:
            logger.debug("No telemetry for device %s, skipping", device_id)
            return Transition.NONE

        # Check-then-act must not interleave for the same pair
        async with self._pair_locks[(rule.id, device_id)]:
            open_alerts = await self._io(
                self._instances.get_active_by_device(rule.tenant_id, device_id)
            )
            open_instance = next((a for a in open_alerts if a.alert_rule_id == rule.id), None)
            condition_met = evaluate_rule(rule, telemetry)
            now = self._clock()

            last_instance = None
            if open_instance is None and condition_met:
                last_instance = await self._io(
                    self._instances.most_recent_by_rule_and_device(rule.id, device_id)
                )

            transition = decide(
                open_instance,
                condition_met,
                last_instance,
                rule,
                now,
                repeat_escalation=self.escalation.repeat,
            )

            if transition == Transition.TRIGGER:
                await self._trigger(rule, device_id, telemetry, now)
            elif transition == Transition.SUPPRESS:
                self.stats.alerts_suppressed += 1
                logger.debug("Rule %s on device %s is in cooldown", rule.id, device_id)
            elif transition == Transition.RESOLVE:
                await self._resolve(open_instance, rule)
            elif transition == Transition.ESCALATE:
                await self._escalate(open_instance, rule, now)

        return transition

    # ─────────────────────────────────────────────────────────────
    # Transitions
    # ─────────────────────────────────────────────────────────────

    async def _trigger(
        self,
        rule: AlertRule,
        device_id: str,
        telemetry: dict[str, TelemetryValue],
        now: datetime,
    ) -> AlertInstance:
        instance = AlertInstance(
            tenant_id=rule.tenant_id,
            alert_rule_id=rule.id,
            device_id=device_id,
            severity=trigger_severity(rule, telemetry),
            message=f"Alert triggered: {rule.name}",
            details=rule.description or "",
            field_values=dict(telemetry),
            triggered_at=now,
            updated_at=now,
        )
        await self._io(self._instances.create(instance))
        self.stats.alerts_triggered += 1
        logger.warning(
            "Alert triggered: rule=%s device=%s severity=%s",
            rule.name,
            device_id,
            instance.severity.value,
        )

        report = await self._dispatcher.dispatch(instance, rule)
        if report.delivered:
            await self._io(
                self._instances.record_notifications(
                    instance.id, instance.tenant_id, len(report.delivered)
                )
            )
        return instance

    async def _resolve(self, instance: AlertInstance, rule: AlertRule) -> None:
        resolved = await self._io(
            self._instances.resolve(instance.id, instance.tenant_id, AUTO_RESOLVE_REASON)
        )
        if resolved:
            self.stats.alerts_resolved += 1
            logger.info(
                "Alert auto-resolved: rule=%s device=%s alert=%s",
                rule.name,
                instance.device_id,
                instance.id,
            )

    async def _escalate(self, instance: AlertInstance, rule: AlertRule, now: datetime) -> None:
        report = await self._dispatcher.escalate(instance, rule)
        await self._io(self._instances.mark_escalated(instance.id, instance.tenant_id, now))
        self.stats.escalations += 1
        if report.delivered:
            await self._io(
                self._instances.record_notifications(
                    instance.id, instance.tenant_id, len(report.delivered)
                )
            )
