"""Alert instance models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertSeverity(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.CRITICAL: 2,
}


class AlertStatus(str, Enum):
    ACTIVE = "Active"
    ACKNOWLEDGED = "Acknowledged"
    RESOLVED = "Resolved"


OPEN_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)


class AlertInstance(BaseModel):
    """One occurrence of a rule firing for one device."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    alert_rule_id: str
    device_id: str

    status: AlertStatus = AlertStatus.ACTIVE
    severity: AlertSeverity
    message: str
    details: str = ""
    field_values: dict[str, Any] = {}

    triggered_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    acknowledgment_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None

    notification_count: int = 0
    escalation_count: int = 0
    last_escalated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        """Active and Acknowledged both count as an open alert."""
        return self.status in OPEN_STATUSES

    def acknowledge(
        self,
        acknowledged_by: Optional[str] = None,
        notes: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        at = at or utcnow()
        self.status = AlertStatus.ACKNOWLEDGED
        self.acknowledged_at = at
        self.acknowledged_by = acknowledged_by
        self.acknowledgment_notes = notes
        self.updated_at = at

    def resolve(self, notes: Optional[str] = None, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self.status = AlertStatus.RESOLVED
        self.resolved_at = at
        self.resolution_notes = notes
        self.updated_at = at

    def mark_escalated(self, at: Optional[datetime] = None) -> None:
        at = at or utcnow()
        self.last_escalated_at = at
        self.escalation_count += 1
        self.updated_at = at


class AlertSummary(BaseModel):
    """Lightweight alert summary."""

    id: str
    alert_rule_id: str
    device_id: str
    severity: AlertSeverity
    message: str
    triggered_at: datetime
    status: AlertStatus


class AlertStatistics(BaseModel):
    """Per-tenant alert counts."""

    total_active: int = 0
    total_acknowledged: int = 0
    total_resolved: int = 0
    critical_count: int = 0
    warning_count: int = 0
    info_count: int = 0

    @classmethod
    def from_instances(cls, instances) -> "AlertStatistics":
        stats = cls()
        for instance in instances:
            if instance.status == AlertStatus.ACTIVE:
                stats.total_active += 1
            elif instance.status == AlertStatus.ACKNOWLEDGED:
                stats.total_acknowledged += 1
            else:
                stats.total_resolved += 1

            if instance.severity == AlertSeverity.CRITICAL:
                stats.critical_count += 1
            elif instance.severity == AlertSeverity.WARNING:
                stats.warning_count += 1
            else:
                stats.info_count += 1
        return stats


class AcknowledgeRequest(BaseModel):
    acknowledged_by: Optional[str] = None
    notes: Optional[str] = None


class ResolveRequest(BaseModel):
    resolution_notes: Optional[str] = None
