"""
Alert Instance State Machine

Decides what happens to a (rule, device) pair on each evaluation:

    no open alert + condition true  -> TRIGGER (or SUPPRESS in cooldown)
    open alert    + condition false -> RESOLVE
    Active alert  + condition true  -> ESCALATE once the delay has passed

Acknowledged alerts count as open: they block new triggers and still
auto-resolve, but are not escalated.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from alertengine.evaluation.cooldown import should_suppress
from alertengine.models.alert import AlertInstance, AlertStatus
from alertengine.models.rule import AlertRule

AUTO_RESOLVE_REASON = "Automatically resolved - conditions no longer met"


class Transition(str, Enum):
    TRIGGER = "trigger"
    SUPPRESS = "suppress"
    RESOLVE = "resolve"
    ESCALATE = "escalate"
    NONE = "none"


def escalation_due(
    instance: AlertInstance,
    rule: AlertRule,
    now: datetime,
    repeat: bool = True,
) -> bool:
    """Whether an Active instance should be escalated now."""
    escalation = rule.escalation_rule
    if escalation is None or instance.status != AlertStatus.ACTIVE:
        return False
    if instance.last_escalated_at is not None and not repeat:
        return False

    since = instance.last_escalated_at or instance.triggered_at
    return now - since >= timedelta(minutes=escalation.escalate_after_minutes)


def decide(
    open_instance: Optional[AlertInstance],
    condition_met: bool,
    last_instance: Optional[AlertInstance],
    rule: AlertRule,
    now: datetime,
    *,
    repeat_escalation: bool = True,
) -> Transition:
    """Pick the transition for one (rule, device) pair on this cycle."""
    if open_instance is None:
        if not condition_met:
            return Transition.NONE
        if should_suppress(rule, last_instance, now):
            return Transition.SUPPRESS
        return Transition.TRIGGER

    if not condition_met:
        return Transition.RESOLVE

    if escalation_due(open_instance, rule, now, repeat=repeat_escalation):
        return Transition.ESCALATE
    return Transition.NONE
