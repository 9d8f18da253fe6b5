import os
import time

import psutil  # type: ignore[import-untyped]
from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint that monitors system resources and service status.
    Includes build metadata for cache invalidation troubleshooting.

    Returns "initializing" status until the code store and trigger handler
    are wired up by the application lifespan.
    """
    # System metrics
    cpu_percent = psutil.cpu_percent()
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage("/")

    state = request.app.state
    store_status = "healthy" if getattr(state, "code_store", None) else "initializing"
    trigger_status = (
        "healthy" if getattr(state, "trigger_handler", None) else "initializing"
    )
    host_platform_status = (
        "configured" if getattr(state, "host_platform", None) else "disabled"
    )

    overall_status = (
        "healthy"
        if store_status == "healthy" and trigger_status == "healthy"
        else "initializing"
    )

    # BUILD_ID is injected via Docker build arg from git commit hash
    build_id = os.getenv("BUILD_ID", "unknown")

    return {
        "status": overall_status,
        "timestamp": int(time.time()),
        "build_id": build_id,
        "system": {
            "cpu_percent": cpu_percent,
            "memory_percent": memory.percent,
            "disk_percent": disk.percent,
        },
        "services": {
            "code_store": store_status,
            "trigger_handler": trigger_status,
            "host_platform": host_platform_status,
        },
    }


@router.get("/health/ready")
async def readiness_check():
    """
    Readiness probe that checks if the service is ready to handle requests.
    """
    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """
    Liveness probe that checks if the service is running.
    """
    return {"status": "alive"}
