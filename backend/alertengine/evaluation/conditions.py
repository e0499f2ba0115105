"""
Condition Evaluator

Pure comparison of rule conditions against a telemetry snapshot.
Every failure path evaluates to False; nothing here raises.
"""

from __future__ import annotations

from alertengine.models.alert import AlertSeverity
from alertengine.models.rule import AlertCondition, AlertOperator, AlertRule, ConditionLogic
from alertengine.models.telemetry import TelemetrySnapshot, coerce_to_float

EQUALITY_EPSILON = 1e-4


def evaluate(condition: AlertCondition, telemetry: TelemetrySnapshot) -> bool:
    """Evaluate one condition against the latest telemetry values."""
    if condition.field not in telemetry:
        return False

    actual = coerce_to_float(telemetry[condition.field])
    if actual is None:
        return False

    threshold = coerce_to_float(condition.value)
    if threshold is None:
        return False

    op = condition.operator
    if op == AlertOperator.GREATER_THAN:
        return actual > threshold
    if op == AlertOperator.LESS_THAN:
        return actual < threshold
    if op == AlertOperator.EQUAL:
        return abs(actual - threshold) < EQUALITY_EPSILON
    if op == AlertOperator.NOT_EQUAL:
        return abs(actual - threshold) >= EQUALITY_EPSILON

    upper = coerce_to_float(condition.second_value)
    if upper is None:
        # Range operators without an upper bound never match
        return False
    if op == AlertOperator.BETWEEN:
        return threshold <= actual <= upper
    if op == AlertOperator.OUTSIDE:
        return not (threshold <= actual <= upper)

    return False


def matched_conditions(rule: AlertRule, telemetry: TelemetrySnapshot) -> list[AlertCondition]:
    """Return the conditions of a rule that currently hold."""
    return [c for c in rule.conditions if evaluate(c, telemetry)]


def evaluate_rule(rule: AlertRule, telemetry: TelemetrySnapshot) -> bool:
    """
    Combine per-condition results with the rule's AND/OR logic.

    A rule without conditions never fires.
    """
    if not rule.conditions:
        return False

    results = [evaluate(c, telemetry) for c in rule.conditions]
    if rule.condition_logic == ConditionLogic.AND:
        return all(results)
    return any(results)


def trigger_severity(rule: AlertRule, telemetry: TelemetrySnapshot) -> AlertSeverity:
    """Highest `level` among matching conditions, else the rule severity."""
    levels = [c.level for c in matched_conditions(rule, telemetry) if c.level is not None]
    if not levels:
        return rule.severity
    return max(levels, key=lambda level: level.rank)
