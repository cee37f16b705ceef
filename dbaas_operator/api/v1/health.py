"""
Health check endpoints for monitoring and orchestration.
Provides liveness and readiness probes for the operator pod.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from dbaas_operator.config.settings import settings

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    Returns current status and version.
    """
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": _now(),
    }


@router.get("/live")
async def liveness():
    """
    Kubernetes liveness probe.
    Indicates whether the process should be restarted.
    """
    return {"status": "alive", "timestamp": _now()}


@router.get("/ready")
async def readiness(request: Request):
    """
    Kubernetes readiness probe.
    Checks store connectivity and that the controller manager is running.
    A standby replica without leadership is still ready.
    """
    store = getattr(request.app.state, "store", None)
    manager = getattr(request.app.state, "manager", None)

    store_healthy = store is not None and await store.ping()
    manager_running = manager is not None and manager.running
    leader = manager is not None and manager.controllers_running

    content = {
        "store": "healthy" if store_healthy else "unhealthy",
        "controllers": "running" if manager_running else "stopped",
        "leader": leader,
        "timestamp": _now(),
    }

    if not store_healthy or not manager_running:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", **content},
        )

    return {"status": "ready", **content}
