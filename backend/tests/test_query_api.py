import httpx
import pytest

from alertengine.config import QueryApiConfig
from alertengine.mock_data import MockTelemetryFetcher
from alertengine.polling.query_api import HttpTelemetryFetcher, QueryApiClient

CONFIG = QueryApiConfig(url="http://query.test/", timeout=5)


def fetcher_for(handler) -> HttpTelemetryFetcher:
    return HttpTelemetryFetcher(CONFIG, transport=httpx.MockTransport(handler))


async def test_latest_telemetry_sends_tenant_header():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["tenant"] = request.headers["X-Tenant-Id"]
        return httpx.Response(200, json={"temperature": 85, "status": "ok", "raw": [1, 2]})

    fetcher = fetcher_for(handler)
    try:
        telemetry = await fetcher.latest("dev-1", "tenant-a")
    finally:
        await fetcher.close()

    assert seen == {
        "path": "/api/timeseries/telemetry/device/dev-1/latest",
        "tenant": "tenant-a",
    }
    assert telemetry == {"temperature": 85, "status": "ok"}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404),
        httpx.Response(500),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.Response(200, content=b"not json"),
    ],
)
async def test_unusable_responses_yield_empty_snapshot(response):
    fetcher = fetcher_for(lambda request: response)
    try:
        assert await fetcher.latest("dev-1", "tenant-a") == {}
    finally:
        await fetcher.close()


async def test_transport_error_yields_empty_snapshot():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = fetcher_for(handler)
    try:
        assert await fetcher.latest("dev-1", "tenant-a") == {}
    finally:
        await fetcher.close()


async def test_client_requires_context_manager():
    client = QueryApiClient(CONFIG)
    with pytest.raises(RuntimeError):
        await client.get_latest_telemetry("dev-1", "tenant-a")


async def test_health_check():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200 if request.url.path == "/health" else 404)
    )
    async with QueryApiClient(CONFIG, transport=transport) as client:
        assert await client.health_check() is True


async def test_mock_fetcher_can_report_no_data():
    assert await MockTelemetryFetcher(missing_rate=1.0).latest("dev-1", "t") == {}
    reading = await MockTelemetryFetcher(missing_rate=0.0).latest("dev-1", "t")
    assert "temperature" in reading
