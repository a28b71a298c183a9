from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ragjobs.api.routes.health import router as health_router
from ragjobs.api.routes.notifications import router as notifications_router
from ragjobs.api.routes.processes import router as processes_router
from ragjobs.api.routes.results import router as results_router
from ragjobs.core.config import get_settings
from ragjobs.core.logging import configure_logging
from ragjobs.db.init_db import initialize_database
from ragjobs.db.session import get_session_factory
from ragjobs.jobs.service import ProcessSupervisor, build_supervisor


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(
        settings.log_level,
        json_logs=settings.log_json,
        log_file=settings.log_file_path if settings.log_to_file else None,
    )
    initialize_database()

    owned: ProcessSupervisor | None = None
    if getattr(app.state, "supervisor", None) is None:
        owned = build_supervisor(settings, get_session_factory())
        app.state.supervisor = owned
    try:
        yield
    finally:
        if owned is not None:
            owned.shutdown()
            app.state.supervisor = None


def create_app(supervisor: ProcessSupervisor | None = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.supervisor = supervisor
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(processes_router, prefix="/api/v1")
    app.include_router(results_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    return app
