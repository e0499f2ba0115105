"""
YAML Rule and Device Catalogs

rules.yaml lists alert rules; devices.yaml lists devices per tenant:

    tenants:
      tenant-a:
        devices:
          - id: pump-1
            device_type_id: pump

Files are re-read on every call so edits apply on the next cycle.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from alertengine.config import load_yaml_config
from alertengine.models.rule import AlertRule

logger = logging.getLogger(__name__)


def parse_rules(data: dict[str, Any]) -> list[AlertRule]:
    """Build rules from a loaded rules.yaml, skipping invalid entries."""
    rules: list[AlertRule] = []
    for entry in data.get("rules") or []:
        try:
            rules.append(AlertRule(**entry))
        except ValidationError as e:
            logger.error("Skipping invalid rule %s: %s", entry.get("id", "?"), e)
    return rules


class YamlRuleRepository:
    """Rules loaded from a YAML file."""

    def __init__(self, path: str):
        self.path = path

    async def get_enabled_rules(self, tenant_id: str) -> list[AlertRule]:
        rules = parse_rules(load_yaml_config(self.path))
        return [r for r in rules if r.tenant_id == tenant_id and r.is_enabled]


class YamlDeviceDirectory:
    """Tenants and devices loaded from a YAML file."""

    def __init__(self, path: str):
        self.path = path

    def _tenants(self) -> dict[str, Any]:
        return load_yaml_config(self.path).get("tenants") or {}

    async def list_tenants(self) -> list[str]:
        return sorted(str(t) for t in self._tenants())

    async def devices_of_type(self, tenant_id: str, device_type_id: str) -> list[str]:
        tenant = self._tenants().get(tenant_id) or {}
        return [
            str(device["id"])
            for device in tenant.get("devices") or []
            if str(device.get("device_type_id")) == device_type_id
        ]
