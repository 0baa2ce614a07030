"""Health check endpoint."""

from fastapi import APIRouter, Request
import platform
import sys

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Service health, scheduler state, and system info."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        return {"status": "starting", "scheduler_running": False, "jobs": None}

    return {
        "status": "healthy",
        "scheduler_running": dispatcher.running,
        "jobs": await dispatcher.stats(),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
