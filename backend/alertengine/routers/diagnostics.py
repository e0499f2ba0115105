"""Diagnostics API routes for checking the engine and its data sources."""

import logging

from fastapi import APIRouter, Request

from alertengine.polling.query_api import QueryApiClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnostics", tags=["diagnostics"])


@router.get("/config")
async def check_config(request: Request):
    """Show engine configuration (no secrets)."""
    config = request.app.state.engine.config
    notifications = config.notifications
    return {
        "engine": config.engine.model_dump(),
        "escalation": config.escalation.model_dump(),
        "query_api": {
            "url": config.query_api.url or "(not configured)",
            "timeout": config.query_api.timeout,
        },
        "notifications": {
            "email": {
                "enabled": notifications.email.enabled,
                "smtp_server": notifications.email.smtp_server,
            },
            "sms": {"has_credentials": bool(notifications.sms.account_sid)},
            "webhook": notifications.webhook.model_dump(),
        },
    }


@router.get("/test/query-api")
async def test_query_api(request: Request):
    """Test telemetry query service connectivity."""
    config = request.app.state.engine.config

    if not config.query_api.url:
        return {"status": "not_configured", "message": "Query API URL not set in config.yaml"}

    try:
        async with QueryApiClient(config.query_api) as client:
            if await client.health_check():
                return {
                    "status": "ok",
                    "message": f"Connected to query API at {config.query_api.url}",
                }
            return {"status": "error", "message": "Health check failed"}
    except Exception:
        logger.exception("Query API connectivity test failed")
        return {"status": "error", "message": "Connection failed. Check server logs for details."}


@router.post("/evaluate")
async def evaluate_now(request: Request):
    """Run one evaluation cycle immediately."""
    engine = request.app.state.engine
    await engine.scheduler.run_now()
    return {"status": "ok", "stats": engine.worker.stats.as_dict()}
