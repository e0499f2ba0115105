"""
Query API Client

Fetches the latest telemetry snapshot for a device from the time-series
query service:

    GET /api/timeseries/telemetry/device/{device_id}/latest
    X-Tenant-Id: <tenant>
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from alertengine.config import QueryApiConfig
from alertengine.models.telemetry import TelemetryValue, normalize_snapshot

logger = logging.getLogger(__name__)


class QueryApiClient:
    """
    Async client for the telemetry query service.

    Usage:
        async with QueryApiClient(config) as client:
            telemetry = await client.get_latest_telemetry(device_id, tenant_id)
    """

    def __init__(
        self,
        config: QueryApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = config.url.rstrip("/")
        self.timeout = config.timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "QueryApiClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(
        self, endpoint: str, tenant_id: str, params: dict | None = None
    ) -> httpx.Response:
        """Make GET request on behalf of a tenant"""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        return await self._client.get(
            endpoint,
            params=params,
            headers={"X-Tenant-Id": tenant_id},
        )

    async def get_latest_telemetry(self, device_id: str, tenant_id: str) -> dict[str, Any]:
        """
        Get the latest telemetry values for a device.

        Raises httpx errors on transport failures and non-2xx responses.
        """
        response = await self._get(
            f"/api/timeseries/telemetry/device/{device_id}/latest", tenant_id
        )
        response.raise_for_status()
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def health_check(self) -> bool:
        """Check if the query service is reachable"""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        try:
            response = await self._client.get("/health")
            return response.is_success
        except httpx.HTTPError:
            return False


class HttpTelemetryFetcher:
    """
    TelemetryFetcher over the query service.

    Keeps one client open for the engine's lifetime. Never raises:
    no data, non-2xx responses and transport errors all yield {}.
    """

    def __init__(
        self,
        config: QueryApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api = QueryApiClient(config, transport=transport)
        self._opened = False

    async def open(self) -> None:
        if not self._opened:
            await self._api.__aenter__()
            self._opened = True

    async def close(self) -> None:
        if self._opened:
            await self._api.__aexit__(None, None, None)
            self._opened = False

    async def latest(self, device_id: str, tenant_id: str) -> dict[str, TelemetryValue]:
        await self.open()
        try:
            data = await self._api.get_latest_telemetry(device_id, tenant_id)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Failed to fetch telemetry for device %s: %s",
                device_id,
                e.response.status_code,
            )
            return {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching telemetry for device %s: %s", device_id, e)
            return {}
        return normalize_snapshot(data)
