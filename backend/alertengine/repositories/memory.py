"""In-memory repositories for development and tests."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Iterable, Optional

from alertengine.models.alert import (
    AlertInstance,
    AlertSeverity,
    AlertStatistics,
    AlertStatus,
    utcnow,
)
from alertengine.models.rule import AlertRule


class InMemoryRuleRepository:
    """Rules held in a list."""

    def __init__(self, rules: Iterable[AlertRule] = ()):
        self._rules: list[AlertRule] = list(rules)

    def add(self, rule: AlertRule) -> None:
        self._rules.append(rule)

    async def get_enabled_rules(self, tenant_id: str) -> list[AlertRule]:
        return [r for r in self._rules if r.tenant_id == tenant_id and r.is_enabled]


class InMemoryInstanceRepository:
    """Alert instances keyed by id."""

    def __init__(self):
        self._instances: dict[str, AlertInstance] = {}
        self._lock = asyncio.Lock()

    @property
    def instances(self) -> list[AlertInstance]:
        return list(self._instances.values())

    def _find(self, instance_id: str, tenant_id: str) -> Optional[AlertInstance]:
        instance = self._instances.get(instance_id)
        if instance is None or instance.tenant_id != tenant_id:
            return None
        return instance

    async def get(self, instance_id: str, tenant_id: str) -> Optional[AlertInstance]:
        instance = self._find(instance_id, tenant_id)
        return instance.model_copy(deep=True) if instance else None

    async def get_active_by_device(self, tenant_id: str, device_id: str) -> list[AlertInstance]:
        matches = [
            i.model_copy(deep=True)
            for i in self._instances.values()
            if i.tenant_id == tenant_id and i.device_id == device_id and i.is_open
        ]
        return sorted(matches, key=lambda i: i.triggered_at, reverse=True)

    async def most_recent_by_rule_and_device(
        self, rule_id: str, device_id: str
    ) -> Optional[AlertInstance]:
        matches = [
            i
            for i in self._instances.values()
            if i.alert_rule_id == rule_id and i.device_id == device_id
        ]
        if not matches:
            return None
        return max(matches, key=lambda i: i.triggered_at).model_copy(deep=True)

    async def create(self, instance: AlertInstance) -> AlertInstance:
        async with self._lock:
            for existing in self._instances.values():
                if (
                    existing.is_open
                    and existing.alert_rule_id == instance.alert_rule_id
                    and existing.device_id == instance.device_id
                ):
                    raise ValueError(
                        f"open alert already exists for rule {instance.alert_rule_id} "
                        f"on device {instance.device_id}"
                    )
            self._instances[instance.id] = instance.model_copy(deep=True)
        return instance

    async def acknowledge(
        self,
        instance_id: str,
        tenant_id: str,
        acknowledged_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        instance = self._find(instance_id, tenant_id)
        if instance is None or instance.status != AlertStatus.ACTIVE:
            return False
        instance.acknowledge(acknowledged_by, notes)
        return True

    async def resolve(self, instance_id: str, tenant_id: str, reason: Optional[str] = None) -> bool:
        instance = self._find(instance_id, tenant_id)
        if instance is None or not instance.is_open:
            return False
        instance.resolve(reason)
        return True

    async def record_notifications(self, instance_id: str, tenant_id: str, count: int) -> None:
        instance = self._find(instance_id, tenant_id)
        if instance is not None:
            instance.notification_count += count
            instance.updated_at = utcnow()

    async def mark_escalated(self, instance_id: str, tenant_id: str, at: datetime) -> None:
        instance = self._find(instance_id, tenant_id)
        if instance is not None:
            instance.mark_escalated(at)

    async def list_instances(
        self,
        tenant_id: str,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        device_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AlertInstance]:
        matches = [
            i
            for i in self._instances.values()
            if i.tenant_id == tenant_id
            and (status is None or i.status == status)
            and (severity is None or i.severity == severity)
            and (device_id is None or i.device_id == device_id)
        ]
        matches.sort(key=lambda i: i.triggered_at, reverse=True)
        return [i.model_copy(deep=True) for i in matches[:limit]]

    async def by_rule(self, tenant_id: str, rule_id: str, limit: int = 100) -> list[AlertInstance]:
        matches = [
            i
            for i in self._instances.values()
            if i.tenant_id == tenant_id and i.alert_rule_id == rule_id
        ]
        matches.sort(key=lambda i: i.triggered_at, reverse=True)
        return [i.model_copy(deep=True) for i in matches[:limit]]

    async def statistics(self, tenant_id: str) -> AlertStatistics:
        return AlertStatistics.from_instances(
            i for i in self._instances.values() if i.tenant_id == tenant_id
        )


class StaticDeviceDirectory:
    """
    Device catalog from a plain mapping.

    Shape: {tenant_id: {device_id: device_type_id}}
    """

    def __init__(self, devices: dict[str, dict[str, str]] | None = None):
        self._devices = devices or {}

    async def list_tenants(self) -> list[str]:
        return sorted(self._devices)

    async def devices_of_type(self, tenant_id: str, device_type_id: str) -> list[str]:
        return [
            device_id
            for device_id, type_id in self._devices.get(tenant_id, {}).items()
            if type_id == device_type_id
        ]
