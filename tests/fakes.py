from __future__ import annotations

import os
from pathlib import Path

import ragjobs.db.session as db_session_module
from ragjobs.core.config import get_settings
from ragjobs.db.init_db import initialize_database
from ragjobs.jobs.service import ProcessSupervisor, build_supervisor
from ragjobs.notifications import ManualScheduler
from ragjobs.worker import PostFn
from ragjobs.worker.messages import (
    ErrorMessage,
    ResultMessage,
    StartMessage,
    StatusUpdate,
    SupervisorMessage,
    TerminateMessage,
)


class FakeWorker:
    """Worker that records what it is told and only speaks when the test asks."""

    def __init__(self, process_id: str, post: PostFn) -> None:
        self.process_id = process_id
        self._post = post
        self.started: list[StartMessage] = []
        self.terminated = False

    def send(self, message: SupervisorMessage) -> None:
        if isinstance(message, TerminateMessage):
            self.terminated = True
            return
        self.started.append(message)

    def terminate(self) -> None:
        self.terminated = True

    def is_alive(self) -> bool:
        return not self.terminated

    def status(self, message: str | None = None) -> None:
        self._post(StatusUpdate(process_id=self.process_id, message=message))

    def result(self, result: object) -> None:
        self._post(ResultMessage(process_id=self.process_id, result=result))

    def error(self, error: str) -> None:
        self._post(ErrorMessage(process_id=self.process_id, error=error))


class FakeWorkerFactory:
    def __init__(self) -> None:
        self.spawned: list[FakeWorker] = []

    def __call__(self, process_id: str, post: PostFn) -> FakeWorker:
        worker = FakeWorker(process_id, post)
        self.spawned.append(worker)
        return worker

    def worker(self, process_id: str) -> FakeWorker:
        matches = [worker for worker in self.spawned if worker.process_id == process_id]
        assert matches, f"no worker spawned for {process_id}"
        return matches[-1]


def prepare_env(tmp_path: Path, *, recover_on_startup: bool = False, ttl_seconds: float = 10.0) -> None:
    state_root = tmp_path / "state"
    state_root.mkdir(parents=True, exist_ok=True)
    os.environ["RAGJOBS_STATE_ROOT"] = state_root.as_posix()
    os.environ["RAGJOBS_RECOVER_ON_STARTUP"] = "true" if recover_on_startup else "false"
    os.environ["RAGJOBS_NOTIFICATION_TTL_SECONDS"] = str(ttl_seconds)
    os.environ["RAGJOBS_API_BASE_URL"] = "http://remote.test:5000"

    get_settings.cache_clear()
    db_session_module._engine = None
    db_session_module._session_factory = None
    initialize_database()


def make_supervisor(
    tmp_path: Path,
    *,
    recover_on_startup: bool = False,
    factory: FakeWorkerFactory | None = None,
    scheduler: ManualScheduler | None = None,
) -> tuple[ProcessSupervisor, FakeWorkerFactory, ManualScheduler]:
    prepare_env(tmp_path, recover_on_startup=recover_on_startup)
    factory = factory or FakeWorkerFactory()
    scheduler = scheduler or ManualScheduler()
    supervisor = build_supervisor(
        get_settings(),
        db_session_module.get_session_factory(),
        worker_factory=factory,
        scheduler=scheduler,
    )
    return supervisor, factory, scheduler


def restart_supervisor(
    previous: ProcessSupervisor,
    *,
    factory: FakeWorkerFactory | None = None,
) -> tuple[ProcessSupervisor, FakeWorkerFactory]:
    """Simulate an application restart against the same database."""
    previous.shutdown()
    factory = factory or FakeWorkerFactory()
    supervisor = build_supervisor(
        get_settings(),
        db_session_module.get_session_factory(),
        worker_factory=factory,
        scheduler=ManualScheduler(),
    )
    return supervisor, factory
