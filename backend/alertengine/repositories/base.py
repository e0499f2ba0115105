"""Capabilities the engine consumes from its environment."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from alertengine.models.alert import (
    AlertInstance,
    AlertSeverity,
    AlertStatistics,
    AlertStatus,
)
from alertengine.models.rule import AlertRule
from alertengine.models.telemetry import TelemetryValue


class RuleRepository(Protocol):
    async def get_enabled_rules(self, tenant_id: str) -> list[AlertRule]: ...


class InstanceRepository(Protocol):
    async def get(self, instance_id: str, tenant_id: str) -> Optional[AlertInstance]: ...

    async def get_active_by_device(self, tenant_id: str, device_id: str) -> list[AlertInstance]:
        """Open (Active or Acknowledged) instances for a device, newest first."""
        ...

    async def most_recent_by_rule_and_device(
        self, rule_id: str, device_id: str
    ) -> Optional[AlertInstance]: ...

    async def create(self, instance: AlertInstance) -> AlertInstance: ...

    async def acknowledge(
        self,
        instance_id: str,
        tenant_id: str,
        acknowledged_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Acknowledge an Active instance. False if missing or not Active."""
        ...

    async def resolve(self, instance_id: str, tenant_id: str, reason: Optional[str] = None) -> bool:
        """Resolve an open instance. False if missing or already Resolved."""
        ...

    async def record_notifications(self, instance_id: str, tenant_id: str, count: int) -> None: ...

    async def mark_escalated(self, instance_id: str, tenant_id: str, at: datetime) -> None: ...

    async def list_instances(
        self,
        tenant_id: str,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        device_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AlertInstance]: ...

    async def by_rule(self, tenant_id: str, rule_id: str, limit: int = 100) -> list[AlertInstance]: ...

    async def statistics(self, tenant_id: str) -> AlertStatistics: ...


class DeviceDirectory(Protocol):
    async def list_tenants(self) -> list[str]: ...

    async def devices_of_type(self, tenant_id: str, device_type_id: str) -> list[str]: ...


class TelemetryFetcher(Protocol):
    async def latest(self, device_id: str, tenant_id: str) -> dict[str, TelemetryValue]:
        """Latest readings for a device; empty when there is no data."""
        ...
