"""Telemetry polling and the evaluation schedule."""

from alertengine.polling.query_api import HttpTelemetryFetcher, QueryApiClient
from alertengine.polling.scheduler import EvaluationScheduler

__all__ = [
    "HttpTelemetryFetcher",
    "QueryApiClient",
    "EvaluationScheduler",
]
