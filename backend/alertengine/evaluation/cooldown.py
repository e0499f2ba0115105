"""Cooldown gate for repeated triggers of one rule on one device."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from alertengine.models.alert import AlertInstance
from alertengine.models.rule import AlertRule


def should_suppress(
    rule: AlertRule,
    last_instance: Optional[AlertInstance],
    now: datetime,
) -> bool:
    """
    Decide whether a new trigger falls inside the rule's cooldown.

    `last_instance` is the most recent instance for the (rule, device)
    pair regardless of status.
    """
    if last_instance is None:
        return False
    elapsed = now - last_instance.triggered_at
    return elapsed < timedelta(minutes=rule.cooldown_minutes)
