"""Alert instance API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from ..models.alert import (
    AcknowledgeRequest,
    AlertInstance,
    AlertSeverity,
    AlertStatistics,
    AlertStatus,
    AlertSummary,
    ResolveRequest,
)
from ..repositories.base import InstanceRepository

router = APIRouter()


def get_instances(request: Request) -> InstanceRepository:
    return request.app.state.engine.instances


def get_tenant_id(x_tenant_id: str = Header(...)) -> str:
    """Tenant comes from the X-Tenant-Id header."""
    return x_tenant_id


def _summaries(instances: list[AlertInstance]) -> list[AlertSummary]:
    return [
        AlertSummary(
            id=alert.id,
            alert_rule_id=alert.alert_rule_id,
            device_id=alert.device_id,
            severity=alert.severity,
            message=alert.message,
            triggered_at=alert.triggered_at,
            status=alert.status,
        )
        for alert in instances
    ]


async def _raise_transition_error(
    instances: InstanceRepository, alert_id: str, tenant_id: str, reason: str
) -> None:
    """404 for an unknown alert, 409 when it is in the wrong state."""
    if await instances.get(alert_id, tenant_id) is None:
        raise HTTPException(status_code=404, detail=f"Alert '{alert_id}' not found")
    raise HTTPException(status_code=409, detail=f"Alert '{alert_id}' {reason}")


@router.get("/alerts", response_model=list[AlertSummary])
async def list_alerts(
    status: Optional[AlertStatus] = None,
    severity: Optional[AlertSeverity] = None,
    device_id: Optional[str] = None,
    limit: int = 100,
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """List alerts for the tenant, newest first."""
    alerts = await instances.list_instances(
        tenant_id, status=status, severity=severity, device_id=device_id, limit=limit
    )
    return _summaries(alerts)


@router.get("/alerts/statistics", response_model=AlertStatistics)
async def alert_statistics(
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """Alert counts by status and severity."""
    return await instances.statistics(tenant_id)


@router.get("/alerts/active/device/{device_id}", response_model=list[AlertInstance])
async def active_alerts_for_device(
    device_id: str,
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """Open alerts for one device."""
    return await instances.get_active_by_device(tenant_id, device_id)


@router.get("/alerts/by-rule/{rule_id}", response_model=list[AlertSummary])
async def alerts_for_rule(
    rule_id: str,
    limit: int = 100,
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """Alert history for one rule."""
    return _summaries(await instances.by_rule(tenant_id, rule_id, limit=limit))


@router.get("/alert/{alert_id}", response_model=AlertInstance)
async def get_alert(
    alert_id: str,
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """Get details of a specific alert."""
    alert = await instances.get(alert_id, tenant_id)
    if alert is None:
        raise HTTPException(status_code=404, detail=f"Alert '{alert_id}' not found")
    return alert


@router.post("/alert/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    body: Optional[AcknowledgeRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """Acknowledge an alert."""
    body = body or AcknowledgeRequest()
    if not await instances.acknowledge(alert_id, tenant_id, body.acknowledged_by, body.notes):
        await _raise_transition_error(instances, alert_id, tenant_id, "is not active")
    return {"status": "acknowledged", "alert_id": alert_id}


@router.post("/alert/{alert_id}/resolve")
async def resolve_alert(
    alert_id: str,
    body: Optional[ResolveRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    instances: InstanceRepository = Depends(get_instances),
):
    """Resolve an alert."""
    body = body or ResolveRequest()
    if not await instances.resolve(alert_id, tenant_id, body.resolution_notes):
        await _raise_transition_error(instances, alert_id, tenant_id, "is already resolved")
    return {"status": "resolved", "alert_id": alert_id}
