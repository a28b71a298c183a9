from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from ragjobs.core.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
def get_health(request: Request) -> dict[str, object]:
    settings = get_settings()
    supervisor = getattr(request.app.state, "supervisor", None)
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "supervisor": "running" if supervisor is not None else "stopped",
        "active_processes": len(supervisor.list_active()) if supervisor is not None else 0,
        "timestamp": datetime.now(tz=timezone.utc),
    }
