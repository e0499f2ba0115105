"""Alert Engine - FastAPI Application."""

import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .cache import RedisCache
from .config import Settings, get_config, settings
from .engine import Engine, build_engine
from .routers import alerts_router, diagnostics_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Single stream handler for the whole process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(engine: Optional[Engine] = None, app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the API; a prebuilt engine is used as-is and not started."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown events."""
        if engine is not None:
            app.state.engine = engine
            yield
            return

        # Startup
        cache = RedisCache(app_settings.redis_url)
        await cache.connect()
        app.state.engine = build_engine(app_settings, get_config(app_settings), cache)
        app.state.engine.scheduler.start()

        yield

        # Shutdown
        await app.state.engine.close()
        await cache.disconnect()

    app = FastAPI(
        title="Alert Engine",
        description="Alert rule evaluation engine API",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.include_router(alerts_router, prefix="/api", tags=["alerts"])
    app.include_router(diagnostics_router, prefix="/api", tags=["diagnostics"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        engine_state: Engine = app.state.engine
        return {
            "status": "healthy",
            "service": "alertengine",
            "scheduler_running": engine_state.scheduler.running,
            "counters": engine_state.worker.stats.as_dict(),
        }

    return app


def run() -> None:
    """Serve the API with the scheduler running in-process."""
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host="0.0.0.0", port=8080)


async def _run_worker() -> None:
    cache = RedisCache(settings.redis_url)
    await cache.connect()
    engine = build_engine(settings, get_config(settings), cache)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, engine.worker.stop)

    try:
        await engine.worker.run()
    finally:
        await engine.close()
        await cache.disconnect()


def run_worker() -> None:
    """Run the evaluation loop alone, without the API."""
    configure_logging(settings.log_level)
    asyncio.run(_run_worker())
