from __future__ import annotations

from fastapi import HTTPException, Request, status

from ragjobs.jobs.service import ProcessSupervisor


def get_supervisor(request: Request) -> ProcessSupervisor:
    supervisor = getattr(request.app.state, "supervisor", None)
    if supervisor is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Supervisor is not running")
    return supervisor
