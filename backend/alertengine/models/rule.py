"""Alert rule models."""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .alert import AlertSeverity


class TargetType(str, Enum):
    DEVICE = "Device"
    DEVICE_TYPE = "DeviceType"


class ConditionLogic(str, Enum):
    AND = "AND"
    OR = "OR"


class AlertOperator(str, Enum):
    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"
    EQUAL = "Equal"
    NOT_EQUAL = "NotEqual"
    BETWEEN = "Between"
    OUTSIDE = "Outside"


ThresholdValue = Union[float, int, str, bool, None]


class AlertCondition(BaseModel):
    """A single comparison against one telemetry field."""

    field: str
    operator: AlertOperator
    value: ThresholdValue = None
    second_value: ThresholdValue = None  # upper bound for Between/Outside
    unit: Optional[str] = None
    level: Optional[AlertSeverity] = None  # severity override


class EscalationRule(BaseModel):
    """Secondary notification while an alert stays unresolved."""

    escalate_after_minutes: int = Field(default=30, ge=0)
    escalation_channels: list[str] = []
    escalation_recipients: list[str] = []
    escalation_message: Optional[str] = None


class AlertRule(BaseModel):
    """Tenant-defined alert rule. Read-only to the engine."""

    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    tags: list[str] = []

    target_type: TargetType = TargetType.DEVICE
    device_ids: list[str] = []
    device_type_ids: list[str] = []

    conditions: list[AlertCondition] = []
    condition_logic: ConditionLogic = ConditionLogic.AND
    severity: AlertSeverity = AlertSeverity.WARNING

    # Informational; the loop runs on one global interval
    time_window_seconds: Optional[int] = None
    evaluation_frequency_seconds: int = 60

    cooldown_minutes: int = Field(default=15, ge=0)

    delivery_channels: list[str] = []
    recipients: list[str] = []
    escalation_rule: Optional[EscalationRule] = None

    is_enabled: bool = True

    @field_validator("condition_logic", mode="before")
    @classmethod
    def _upper_logic(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _enabled_rules_need_conditions(self) -> "AlertRule":
        if self.is_enabled and not self.conditions:
            raise ValueError(f"enabled rule '{self.id}' has no conditions")
        return self

    @property
    def targets_device_types(self) -> bool:
        return self.target_type == TargetType.DEVICE_TYPE
