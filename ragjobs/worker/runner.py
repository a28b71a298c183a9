from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from ragjobs.db.models import ProcessStatus
from ragjobs.worker.actions import resolve_request
from ragjobs.worker.client import ApiClient, NetworkError
from ragjobs.worker.messages import (
    ErrorMessage,
    ResultMessage,
    StartMessage,
    StatusUpdate,
    SupervisorMessage,
    TerminateMessage,
    WorkerMessage,
)

logger = logging.getLogger(__name__)

PostFn = Callable[[WorkerMessage], None]


class WorkerProtocolError(RuntimeError):
    pass


class Worker(Protocol):
    @property
    def process_id(self) -> str: ...

    def send(self, message: SupervisorMessage) -> None: ...

    def terminate(self) -> None: ...

    def is_alive(self) -> bool: ...


WorkerFactory = Callable[[str, PostFn], Worker]


def _discard(_message: WorkerMessage) -> None:
    return


class ExecutionWorker:
    """Runs exactly one remote call on its own thread.

    Results travel back only through ``post``. Once terminated, the worker
    never posts again; an HTTP request already in flight is left to finish
    and its outcome is dropped.
    """

    def __init__(self, process_id: str, post: PostFn, client: ApiClient) -> None:
        self._process_id = process_id
        self._post = post
        self._client = client
        self._terminated = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def process_id(self) -> str:
        return self._process_id

    def is_alive(self) -> bool:
        if self._terminated.is_set():
            return False
        thread = self._thread
        return thread is None or thread.is_alive()

    def is_terminated(self) -> bool:
        return self._terminated.is_set()

    def send(self, message: SupervisorMessage) -> None:
        if isinstance(message, TerminateMessage):
            self._terminated.set()
            return
        if not isinstance(message, StartMessage):
            raise WorkerProtocolError(f"Unsupported message: {message!r}")
        if message.process_id != self._process_id:
            raise WorkerProtocolError(f"Start message for {message.process_id} sent to worker {self._process_id}")
        with self._lock:
            if self._thread is not None:
                raise WorkerProtocolError(f"Worker {self._process_id} already received its start message")
            if self._terminated.is_set():
                raise WorkerProtocolError(f"Worker {self._process_id} was terminated")
            self._thread = threading.Thread(
                target=self._run,
                args=(message,),
                name=f"ragjobs-worker-{self._process_id[:8]}",
                daemon=True,
            )
            self._thread.start()

    def terminate(self) -> None:
        self.send(TerminateMessage())
        self._post = _discard

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def _emit(self, message: WorkerMessage) -> None:
        if self._terminated.is_set():
            return
        self._post(message)

    def _run(self, start: StartMessage) -> None:
        self._emit(
            StatusUpdate(
                process_id=self._process_id,
                status=ProcessStatus.RUNNING,
                message=f"Starting process: {start.action}",
            )
        )
        try:
            method, path = resolve_request(start.action, start.payload)
            result = self._client.request(method, path, start.payload)
        except NetworkError as exc:
            logger.warning("Remote call failed for process %s: %s", self._process_id, exc)
            self._emit(ErrorMessage(process_id=self._process_id, error=str(exc)))
            return
        except Exception as exc:
            logger.exception("Worker crashed", extra={"process_id": self._process_id, "action": start.action})
            self._emit(ErrorMessage(process_id=self._process_id, error=str(exc) or exc.__class__.__name__))
            return
        self._emit(ResultMessage(process_id=self._process_id, result=result))


def make_worker_factory(client: ApiClient) -> WorkerFactory:
    def _factory(process_id: str, post: PostFn) -> Worker:
        return ExecutionWorker(process_id, post, client)

    return _factory
