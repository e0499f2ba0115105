"""Assembles the evaluation engine from settings and configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from alertengine.cache import RedisCache
from alertengine.config import AppConfig, Settings
from alertengine.evaluation.worker import EvaluationWorker
from alertengine.mock_data import MockTelemetryFetcher
from alertengine.notifications.channels import (
    EmailChannel,
    InAppChannel,
    SmsChannel,
    WebhookChannel,
)
from alertengine.notifications.dispatcher import NotificationDispatcher
from alertengine.polling.query_api import HttpTelemetryFetcher
from alertengine.polling.scheduler import EvaluationScheduler
from alertengine.repositories.base import InstanceRepository, TelemetryFetcher
from alertengine.repositories.memory import InMemoryInstanceRepository
from alertengine.repositories.redis_store import RedisInstanceRepository
from alertengine.repositories.yaml_catalog import YamlDeviceDirectory, YamlRuleRepository

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Wired-up engine components."""

    worker: EvaluationWorker
    scheduler: EvaluationScheduler
    instances: InstanceRepository
    dispatcher: NotificationDispatcher
    telemetry: TelemetryFetcher
    cache: RedisCache
    config: AppConfig

    async def close(self) -> None:
        await self.scheduler.stop()
        if isinstance(self.telemetry, HttpTelemetryFetcher):
            await self.telemetry.close()


def build_dispatcher(config: AppConfig, cache: RedisCache) -> NotificationDispatcher:
    notifications = config.notifications
    return NotificationDispatcher(
        [
            EmailChannel(notifications.email),
            WebhookChannel(notifications.webhook),
            SmsChannel(notifications.sms),
            InAppChannel(notifications.inapp, cache),
        ],
        send_timeout=notifications.send_timeout_seconds,
    )


def build_engine(
    settings: Settings,
    config: AppConfig,
    cache: RedisCache,
    telemetry: Optional[TelemetryFetcher] = None,
) -> Engine:
    """Build the worker and scheduler; the cache must already be connected."""
    if settings.store == "redis":
        instances: InstanceRepository = RedisInstanceRepository(cache)
    else:
        instances = InMemoryInstanceRepository()

    if telemetry is None:
        if settings.dev_mode and not config.query_api.url:
            telemetry = MockTelemetryFetcher()
        else:
            telemetry = HttpTelemetryFetcher(config.query_api)

    dispatcher = build_dispatcher(config, cache)
    worker = EvaluationWorker(
        rules=YamlRuleRepository(settings.rules_path),
        instances=instances,
        devices=YamlDeviceDirectory(settings.devices_path),
        telemetry=telemetry,
        dispatcher=dispatcher,
        config=config.engine,
        escalation=config.escalation,
    )
    logger.info(
        "Alert engine built: store=%s telemetry=%s",
        settings.store,
        type(telemetry).__name__,
    )
    return Engine(
        worker=worker,
        scheduler=EvaluationScheduler(worker, config.engine),
        instances=instances,
        dispatcher=dispatcher,
        telemetry=telemetry,
        cache=cache,
        config=config,
    )
