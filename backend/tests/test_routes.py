import pytest
from fastapi.testclient import TestClient

from alertengine.cache import RedisCache
from alertengine.config import AppConfig, EngineConfig, QueryApiConfig
from alertengine.engine import Engine
from alertengine.main import create_app
from alertengine.models.alert import AlertInstance
from alertengine.polling.scheduler import EvaluationScheduler

from conftest import T0, make_rule

HEADERS = {"X-Tenant-Id": "tenant-a"}


@pytest.fixture
def app_engine(build_worker, instances, telemetry):
    worker = build_worker([make_rule()])
    return Engine(
        worker=worker,
        scheduler=EvaluationScheduler(worker),
        instances=instances,
        dispatcher=worker._dispatcher,
        telemetry=telemetry,
        cache=RedisCache(),
        config=AppConfig(
            engine=EngineConfig(interval_seconds=42),
            query_api=QueryApiConfig(url="http://query.test"),
        ),
    )


@pytest.fixture
def client(app_engine):
    with TestClient(create_app(engine=app_engine)) as test_client:
        yield test_client


@pytest.fixture
def stored_alert(instances):
    alert = AlertInstance(
        tenant_id="tenant-a",
        alert_rule_id="rule-1",
        device_id="dev-1",
        severity="Critical",
        message="Alert triggered: High temperature",
        triggered_at=T0,
    )
    instances._instances[alert.id] = alert
    return alert


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["scheduler_running"] is False
    assert body["counters"]["cycles"] == 0


def test_tenant_header_is_required(client):
    assert client.get("/api/alerts").status_code == 422


def test_list_and_get_alerts(client, stored_alert):
    listed = client.get("/api/alerts", headers=HEADERS).json()
    assert [a["id"] for a in listed] == [stored_alert.id]

    assert client.get("/api/alerts", headers={"X-Tenant-Id": "other"}).json() == []
    assert client.get("/api/alerts?status=Resolved", headers=HEADERS).json() == []

    detail = client.get(f"/api/alert/{stored_alert.id}", headers=HEADERS).json()
    assert detail["severity"] == "Critical"
    assert client.get("/api/alert/missing", headers=HEADERS).status_code == 404

    active = client.get("/api/alerts/active/device/dev-1", headers=HEADERS).json()
    assert len(active) == 1
    by_rule = client.get("/api/alerts/by-rule/rule-1", headers=HEADERS).json()
    assert len(by_rule) == 1


def test_acknowledge_and_resolve(client, stored_alert):
    response = client.post(
        f"/api/alert/{stored_alert.id}/acknowledge",
        headers=HEADERS,
        json={"acknowledged_by": "alice", "notes": "looking"},
    )
    assert response.json() == {"status": "acknowledged", "alert_id": stored_alert.id}
    assert stored_alert.acknowledged_by == "alice"

    response = client.post(f"/api/alert/{stored_alert.id}/resolve", headers=HEADERS)
    assert response.json() == {"status": "resolved", "alert_id": stored_alert.id}
    assert stored_alert.status.value == "Resolved"

    stats = client.get("/api/alerts/statistics", headers=HEADERS).json()
    assert stats["total_resolved"] == 1
    assert stats["critical_count"] == 1


def test_invalid_transitions_conflict(client, stored_alert):
    client.post(f"/api/alert/{stored_alert.id}/resolve", headers=HEADERS)

    response = client.post(f"/api/alert/{stored_alert.id}/acknowledge", headers=HEADERS)
    assert response.status_code == 409
    response = client.post(f"/api/alert/{stored_alert.id}/resolve", headers=HEADERS)
    assert response.status_code == 409
    assert stored_alert.status.value == "Resolved"


def test_acknowledge_unknown_alert(client):
    response = client.post("/api/alert/missing/acknowledge", headers=HEADERS)
    assert response.status_code == 404
    response = client.post("/api/alert/missing/resolve", headers=HEADERS)
    assert response.status_code == 404


def test_evaluate_now_runs_a_cycle(client, telemetry, instances):
    telemetry.set("dev-1", {"temperature": 85})

    response = client.post("/api/diagnostics/evaluate")

    assert response.status_code == 200
    assert response.json()["stats"]["alerts_triggered"] == 1
    assert len(instances.instances) == 1


def test_config_reports_the_running_engine(client):
    body = client.get("/api/diagnostics/config").json()
    assert "password" not in body["notifications"]["email"]
    assert body["engine"]["interval_seconds"] == 42
    assert body["query_api"]["url"] == "http://query.test"
