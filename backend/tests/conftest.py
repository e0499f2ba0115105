"""Shared fixtures for alert engine tests."""

from datetime import datetime, timedelta, timezone

import pytest

from alertengine.config import EngineConfig
from alertengine.evaluation.worker import EvaluationWorker
from alertengine.models.rule import AlertCondition, AlertRule
from alertengine.notifications.dispatcher import NotificationDispatcher
from alertengine.repositories.memory import (
    InMemoryInstanceRepository,
    InMemoryRuleRepository,
    StaticDeviceDirectory,
)

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeTelemetry:
    """Canned telemetry keyed by device id."""

    def __init__(self, readings=None):
        self.readings = dict(readings or {})
        self.calls = []

    def set(self, device_id, values):
        self.readings[device_id] = values

    async def latest(self, device_id, tenant_id):
        self.calls.append((device_id, tenant_id))
        return dict(self.readings.get(device_id, {}))


class RecordingChannel:
    """Channel double that records sends and can be told to fail."""

    def __init__(self, name, error=None):
        self.name = name
        self.error = error
        self.sent = []
        self.events = []

    async def send(self, instance, rule, recipients, event="alert_triggered"):
        self.sent.append((instance, rule, list(recipients)))
        self.events.append(event)
        if self.error is not None:
            raise self.error


def make_rule(**overrides) -> AlertRule:
    data = {
        "id": "rule-1",
        "tenant_id": "tenant-a",
        "name": "High temperature",
        "target_type": "Device",
        "device_ids": ["dev-1"],
        "conditions": [AlertCondition(field="temperature", operator="GreaterThan", value=80)],
        "condition_logic": "AND",
        "severity": "Warning",
        "cooldown_minutes": 0,
        "delivery_channels": ["email"],
        "recipients": ["ops@example.com"],
    }
    data.update(overrides)
    return AlertRule(**data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def telemetry():
    return FakeTelemetry()


@pytest.fixture
def instances():
    return InMemoryInstanceRepository()


@pytest.fixture
def email_channel():
    return RecordingChannel("email")


@pytest.fixture
def build_worker(instances, telemetry, clock, email_channel):
    """Factory for a worker over in-memory collaborators."""

    def _build(rules, devices=None, channels=None, **config):
        devices = devices if devices is not None else {"tenant-a": {"dev-1": "sensor"}}
        dispatcher = NotificationDispatcher(
            channels if channels is not None else [email_channel], send_timeout=1
        )
        return EvaluationWorker(
            rules=InMemoryRuleRepository(rules),
            instances=instances,
            devices=StaticDeviceDirectory(devices),
            telemetry=telemetry,
            dispatcher=dispatcher,
            config=EngineConfig(**config),
            clock=clock,
        )

    return _build
