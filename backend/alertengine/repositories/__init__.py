"""Rule, instance and device stores."""

from alertengine.repositories.base import (
    DeviceDirectory,
    InstanceRepository,
    RuleRepository,
    TelemetryFetcher,
)
from alertengine.repositories.memory import (
    InMemoryInstanceRepository,
    InMemoryRuleRepository,
    StaticDeviceDirectory,
)
from alertengine.repositories.redis_store import RedisInstanceRepository
from alertengine.repositories.yaml_catalog import YamlDeviceDirectory, YamlRuleRepository

__all__ = [
    "DeviceDirectory",
    "InstanceRepository",
    "RuleRepository",
    "TelemetryFetcher",
    "InMemoryInstanceRepository",
    "InMemoryRuleRepository",
    "StaticDeviceDirectory",
    "RedisInstanceRepository",
    "YamlDeviceDirectory",
    "YamlRuleRepository",
]
