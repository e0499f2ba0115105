# Pydantic models
from .alert import (
    AlertInstance,
    AlertSeverity,
    AlertStatistics,
    AlertStatus,
    AlertSummary,
    utcnow,
)
from .rule import (
    AlertCondition,
    AlertOperator,
    AlertRule,
    ConditionLogic,
    EscalationRule,
    TargetType,
)
from .telemetry import TelemetrySnapshot, TelemetryValue, coerce_to_float

__all__ = [
    "AlertInstance",
    "AlertSeverity",
    "AlertStatistics",
    "AlertStatus",
    "AlertSummary",
    "utcnow",
    "AlertCondition",
    "AlertOperator",
    "AlertRule",
    "ConditionLogic",
    "EscalationRule",
    "TargetType",
    "TelemetrySnapshot",
    "TelemetryValue",
    "coerce_to_float",
]
