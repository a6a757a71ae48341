"""
LoadBench - Main Application Entry Point

FastAPI service that launches database benchmark runs, stores one normalized
metric record per run, and pushes completion events to WebSocket observers.
"""

from contextlib import asynccontextmanager
from typing import Any, cast

import logging
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from loadbench import __version__
from loadbench.config import settings
from loadbench.connectors import postgres_pool
from loadbench.core import results_store
from loadbench.core.observer_hub import hub
from loadbench.core.run_coordinator import coordinator

# Configure logging
# Every logger shares uvicorn's colored "LEVEL:" prefix.
from uvicorn.logging import DefaultFormatter

console_handler = logging.StreamHandler()
console_handler.setFormatter(DefaultFormatter(fmt=settings.LOG_FORMAT, use_colors=True))

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    handlers=[console_handler],
)

logging.getLogger("pymongo").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - handles startup and shutdown events.
    """
    logger.info("🚀 LoadBench starting up...")
    logger.info(
        f"🔧 Environment: {'Development' if settings.APP_DEBUG else 'Production'}"
    )

    if settings.POSTGRES_CONNECT_ON_STARTUP:
        try:
            logger.info("🐘 Initializing results Postgres pool...")
            await postgres_pool.get_default_pool().initialize()
            if settings.RESULTS_CREATE_SCHEMA:
                await results_store.ensure_schema()
            logger.info("✅ Results store ready")
        except Exception as e:
            logger.error(f"❌ Failed to initialize results store: {e}")
            logger.warning("⚠️  Application starting without a results database connection")
    else:
        logger.info(
            "🐘 Results pool connects lazily "
            "(set POSTGRES_CONNECT_ON_STARTUP=true to initialize at boot)"
        )

    yield

    logger.info("🛑 LoadBench shutting down...")

    try:
        await coordinator.shutdown(timeout_seconds=5.0)
    except Exception as e:
        logger.warning("Run shutdown encountered an error: %s", e)

    try:
        await postgres_pool.close_default_pool()
        logger.info("✅ Connection pools closed")
    except Exception as e:
        logger.error(f"Error closing connection pools: {e}")


app = FastAPI(
    title="LoadBench",
    description="Benchmark runner for PostgreSQL, MySQL and MongoDB with normalized results",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

if settings.APP_DEBUG:
    app.add_middleware(
        cast(Any, CORSMiddleware),
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info(f"🔓 CORS enabled for origins: {settings.CORS_ORIGINS}")


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Request validation failures are reported as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_errors(exc)},
    )


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        dict: Service health status, results store state, and run activity
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "service": "loadbench",
        "version": __version__,
        "environment": "development" if settings.APP_DEBUG else "production",
        "active_runs": coordinator.active_runs,
        "observers": await hub.subscriber_count(),
        "checks": {},
    }

    try:
        pg_pool = postgres_pool.get_default_pool()
        stats = await pg_pool.get_pool_stats()
        if not stats["initialized"]:
            health_status["checks"]["results_store"] = {
                "status": "not_initialized",
                "pool": stats,
            }
        else:
            is_healthy = await pg_pool.is_healthy()
            health_status["checks"]["results_store"] = {
                "status": "healthy" if is_healthy else "unhealthy",
                "pool": stats,
            }
            if not is_healthy:
                health_status["status"] = "degraded"
    except Exception as e:
        health_status["checks"]["results_store"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    return health_status


# ============================================================================
# API Routes
# ============================================================================

from loadbench.api.routes import runs  # noqa: E402
from loadbench.api.routes import stats  # noqa: E402

app.include_router(runs.router, prefix="/api/runs", tags=["runs"])
app.include_router(stats.router, prefix="/api/stats", tags=["stats"])


# ============================================================================
# WebSocket endpoint
# ============================================================================

from loadbench.websocket import stream_results  # noqa: E402


@app.websocket("/ws/results")
async def websocket_results(websocket: WebSocket):
    """
    WebSocket endpoint pushing one `benchmark_result` envelope per finished run.

    Observers only receive runs that finish while they are connected.
    """
    await websocket.accept()
    logger.info("📡 Observer connected")

    try:
        await stream_results(websocket)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        try:
            await websocket.close()
        except RuntimeError:
            pass
    logger.info("📡 Observer disconnected")


if __name__ == "__main__":
    import uvicorn

    # log_config=None keeps the handler configured above.
    uvicorn.run(
        "loadbench.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
        log_config=None,
    )
