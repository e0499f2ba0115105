"""
Redis-backed alert instance repository.

Instances are stored as JSON documents with set indexes:

    alertengine:instance:<id>                  instance document
    alertengine:tenant:<tenant>:instances      all ids for a tenant
    alertengine:pair:<rule>:<device>           all ids for a rule/device pair
    alertengine:open:<tenant>:<device>         open ids for a device
    alertengine:open-pair:<rule>:<device>      id of the open instance, if any
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from alertengine.cache import RedisCache
from alertengine.models.alert import (
    AlertInstance,
    AlertSeverity,
    AlertStatistics,
    AlertStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

KEY_PREFIX = "alertengine"


def _instance_key(instance_id: str) -> str:
    return f"{KEY_PREFIX}:instance:{instance_id}"


def _tenant_key(tenant_id: str) -> str:
    return f"{KEY_PREFIX}:tenant:{tenant_id}:instances"


def _pair_key(rule_id: str, device_id: str) -> str:
    return f"{KEY_PREFIX}:pair:{rule_id}:{device_id}"


def _open_key(tenant_id: str, device_id: str) -> str:
    return f"{KEY_PREFIX}:open:{tenant_id}:{device_id}"


def _open_pair_key(rule_id: str, device_id: str) -> str:
    return f"{KEY_PREFIX}:open-pair:{rule_id}:{device_id}"


class RedisInstanceRepository:
    """Alert instance store on top of RedisCache."""

    def __init__(self, cache: RedisCache):
        self._cache = cache

    async def _load(self, instance_id: str) -> Optional[AlertInstance]:
        data = await self._cache.get_json(_instance_key(instance_id))
        return AlertInstance.model_validate(data) if data else None

    async def _load_many(self, ids) -> list[AlertInstance]:
        documents = await self._cache.mget_json([_instance_key(i) for i in ids])
        return [AlertInstance.model_validate(d) for d in documents]

    async def _save(self, instance: AlertInstance) -> None:
        await self._cache.set(_instance_key(instance.id), instance.model_dump_json())

    async def _load_for_tenant(self, instance_id: str, tenant_id: str) -> Optional[AlertInstance]:
        instance = await self._load(instance_id)
        if instance is None or instance.tenant_id != tenant_id:
            return None
        return instance

    async def _close(self, instance: AlertInstance) -> None:
        await self._cache.srem(_open_key(instance.tenant_id, instance.device_id), instance.id)
        await self._cache.delete_if_equals(
            _open_pair_key(instance.alert_rule_id, instance.device_id), instance.id
        )

    async def get(self, instance_id: str, tenant_id: str) -> Optional[AlertInstance]:
        return await self._load_for_tenant(instance_id, tenant_id)

    async def get_active_by_device(self, tenant_id: str, device_id: str) -> list[AlertInstance]:
        ids = await self._cache.smembers(_open_key(tenant_id, device_id))
        instances = [i for i in await self._load_many(ids) if i.is_open]
        return sorted(instances, key=lambda i: i.triggered_at, reverse=True)

    async def most_recent_by_rule_and_device(
        self, rule_id: str, device_id: str
    ) -> Optional[AlertInstance]:
        ids = await self._cache.smembers(_pair_key(rule_id, device_id))
        instances = await self._load_many(ids)
        if not instances:
            return None
        return max(instances, key=lambda i: i.triggered_at)

    async def create(self, instance: AlertInstance) -> AlertInstance:
        open_pair = _open_pair_key(instance.alert_rule_id, instance.device_id)
        claimed = await self._cache.set_if_absent(open_pair, instance.id)
        if not claimed:
            raise ValueError(
                f"open alert already exists for rule {instance.alert_rule_id} "
                f"on device {instance.device_id}"
            )

        try:
            await self._cache.set_and_index(
                _instance_key(instance.id),
                instance.model_dump_json(),
                [
                    _tenant_key(instance.tenant_id),
                    _pair_key(instance.alert_rule_id, instance.device_id),
                    _open_key(instance.tenant_id, instance.device_id),
                ],
                instance.id,
            )
        except BaseException:
            # Release the claim so the pair can trigger again
            await self._cache.delete_if_equals(open_pair, instance.id)
            raise
        logger.debug("Stored alert instance %s", instance.id)
        return instance

    async def acknowledge(
        self,
        instance_id: str,
        tenant_id: str,
        acknowledged_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> bool:
        instance = await self._load_for_tenant(instance_id, tenant_id)
        if instance is None or instance.status != AlertStatus.ACTIVE:
            return False
        instance.acknowledge(acknowledged_by, notes)
        await self._save(instance)
        return True

    async def resolve(self, instance_id: str, tenant_id: str, reason: Optional[str] = None) -> bool:
        instance = await self._load_for_tenant(instance_id, tenant_id)
        if instance is None or not instance.is_open:
            return False
        instance.resolve(reason)
        await self._save(instance)
        await self._close(instance)
        return True

    async def record_notifications(self, instance_id: str, tenant_id: str, count: int) -> None:
        instance = await self._load_for_tenant(instance_id, tenant_id)
        if instance is None:
            return
        instance.notification_count += count
        instance.updated_at = utcnow()
        await self._save(instance)

    async def mark_escalated(self, instance_id: str, tenant_id: str, at: datetime) -> None:
        instance = await self._load_for_tenant(instance_id, tenant_id)
        if instance is None:
            return
        instance.mark_escalated(at)
        await self._save(instance)

    async def list_instances(
        self,
        tenant_id: str,
        status: Optional[AlertStatus] = None,
        severity: Optional[AlertSeverity] = None,
        device_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AlertInstance]:
        ids = await self._cache.smembers(_tenant_key(tenant_id))
        instances = [
            i
            for i in await self._load_many(ids)
            if (status is None or i.status == status)
            and (severity is None or i.severity == severity)
            and (device_id is None or i.device_id == device_id)
        ]
        instances.sort(key=lambda i: i.triggered_at, reverse=True)
        return instances[:limit]

    async def by_rule(self, tenant_id: str, rule_id: str, limit: int = 100) -> list[AlertInstance]:
        ids = await self._cache.smembers(_tenant_key(tenant_id))
        instances = [i for i in await self._load_many(ids) if i.alert_rule_id == rule_id]
        instances.sort(key=lambda i: i.triggered_at, reverse=True)
        return instances[:limit]

    async def statistics(self, tenant_id: str) -> AlertStatistics:
        ids = await self._cache.smembers(_tenant_key(tenant_id))
        return AlertStatistics.from_instances(await self._load_many(ids))
