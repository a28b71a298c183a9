from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import httpx
from sqlalchemy.orm import Session, sessionmaker

from ragjobs.core.config import Settings
from ragjobs.core.events import EventBus
from ragjobs.db.models import ACTIVE_STATUSES, TERMINAL_STATUSES, ProcessStatus, ProcessType
from ragjobs.jobs.events import (
    ProcessCancelled,
    ProcessCompleted,
    ProcessFailed,
    ProcessRecovered,
    ProcessStarted,
    ProcessStatusUpdated,
    ProcessTerminated,
)
from ragjobs.jobs.types import ProcessCallbacks, ProcessOutcome, ProcessSnapshot
from ragjobs.notifications import Notification, NotificationCenter, Scheduler, Severity
from ragjobs.store import RESULT_COLLECTIONS, Collection, Record, RecordStore, StoreError
from ragjobs.worker import ApiClient, Worker, WorkerFactory, make_worker_factory
from ragjobs.worker.messages import (
    ErrorMessage,
    ResultMessage,
    StartMessage,
    StatusUpdate,
    TerminateMessage,
    WorkerMessage,
    unpack_message,
)

logger = logging.getLogger(__name__)


class ProcessNotFoundError(RuntimeError):
    pass


class InvalidProcessStateError(RuntimeError):
    pass


ALLOWED_TRANSITIONS: dict[ProcessStatus, set[ProcessStatus]] = {
    ProcessStatus.PENDING: {
        ProcessStatus.RUNNING,
        ProcessStatus.ERROR,
        ProcessStatus.CANCELLED,
        ProcessStatus.TERMINATED,
    },
    ProcessStatus.RUNNING: {
        ProcessStatus.RUNNING,
        ProcessStatus.COMPLETED,
        ProcessStatus.ERROR,
        ProcessStatus.CANCELLED,
        ProcessStatus.TERMINATED,
    },
    ProcessStatus.COMPLETED: set(),
    ProcessStatus.ERROR: set(),
    ProcessStatus.CANCELLED: set(),
    ProcessStatus.TERMINATED: set(),
}

PROCESS_TYPE_LABELS: dict[ProcessType, str] = {
    ProcessType.ARTICLE_INTELLIGENCE: "Article intelligence",
    ProcessType.STRUCTURED_SUMMARY: "Structured summary",
    ProcessType.REVIEW_ARTICLE: "Review article",
    ProcessType.BATCH_SUMMARY: "Batch summaries",
}

_STOP = object()


class ProcessSupervisor:
    """Owns process lifecycle, persistence and recovery.

    Workers post their messages onto ``_inbox``; a single dispatcher thread
    applies them. Lifecycle state changes and their store writes happen under
    ``_lock`` so a late worker message can never overwrite a terminal status.
    """

    def __init__(
        self,
        store: RecordStore,
        worker_factory: WorkerFactory,
        notifications: NotificationCenter,
        *,
        event_bus: EventBus | None = None,
        on_shutdown: Sequence[Callable[[], None]] = (),
    ):
        self._store = store
        self._worker_factory = worker_factory
        self._notifications = notifications
        self._events = event_bus or EventBus()
        self._on_shutdown = list(on_shutdown)

        self._lock = threading.RLock()
        self._statuses: dict[str, ProcessStatus] = {}
        self._types: dict[str, ProcessType] = {}
        self._active: dict[str, Record] = {}
        self._workers: dict[str, Worker] = {}
        self._callbacks: dict[str, ProcessCallbacks] = {}
        self._futures: dict[str, Future[ProcessOutcome]] = {}

        self._inbox: queue.Queue[object] = queue.Queue()
        self._closed = False
        self._dispatcher = threading.Thread(target=self._dispatch_loop, name="ragjobs-dispatcher", daemon=True)
        self._dispatcher.start()

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    def _now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    def _enforce_transition(self, from_status: ProcessStatus, to_status: ProcessStatus) -> None:
        if to_status not in ALLOWED_TRANSITIONS[from_status]:
            raise InvalidProcessStateError(f"Illegal transition: {from_status.value} -> {to_status.value}")

    def _label(self, process_type: ProcessType | None) -> str:
        if process_type is None:
            return "unknown"
        return PROCESS_TYPE_LABELS.get(process_type, process_type.value)

    def start(
        self,
        process_type: ProcessType | str,
        action: str,
        payload: dict[str, Any] | None = None,
        callbacks: ProcessCallbacks | None = None,
    ) -> str:
        normalized_type = ProcessType(process_type)
        if not isinstance(action, str) or not action.strip():
            raise ValueError("action must be a non-empty string")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValueError("payload must be an object")
        if self._closed:
            raise RuntimeError("Supervisor is shut down")

        process_id = str(uuid4())
        record = self._store.put(
            Collection.PROCESSES,
            {
                "id": process_id,
                "type": normalized_type,
                "status": ProcessStatus.PENDING,
                "action": action,
                "payload": payload,
                "timestamp": self._now(),
            },
        )
        with self._lock:
            self._statuses[process_id] = ProcessStatus.PENDING
            self._types[process_id] = normalized_type
            self._futures[process_id] = Future()
            if callbacks is not None:
                self._callbacks[process_id] = callbacks

        self._events.publish(ProcessStarted(process_id=process_id, process_type=normalized_type, action=action))
        if self._launch(record, f"Process started: {self._label(normalized_type)}"):
            logger.info(
                "Process started",
                extra={"process_id": process_id, "process_type": normalized_type.value, "action": action},
            )
        return process_id

    def cancel(self, process_id: str) -> ProcessSnapshot:
        with self._lock:
            current = self._statuses.get(process_id)
            process_type = self._types.get(process_id)
            if current is None:
                record = self._read_process(process_id)
                current = record["status"]
                process_type = record["type"]
            if current in TERMINAL_STATUSES:
                return self.get_process(process_id)

            self._enforce_transition(current, ProcessStatus.CANCELLED)
            self._release_worker(process_id)
            self._active.pop(process_id, None)
            self._persist(process_id, {"status": ProcessStatus.CANCELLED})
            self._notifications.add(
                Severity.WARNING,
                f"Process cancelled: {self._label(process_type)}",
                process_id=process_id,
            )
            future = self._forget(process_id)

        logger.info("Process cancelled", extra={"process_id": process_id})
        self._resolve(future, ProcessOutcome(process_id=process_id, status=ProcessStatus.CANCELLED))
        if process_type is not None:
            self._events.publish(ProcessCancelled(process_id=process_id, process_type=process_type))
        return self.get_process(process_id)

    def get_process(self, process_id: str) -> ProcessSnapshot:
        with self._lock:
            active = self._active.get(process_id)
            if active is not None:
                return self._to_snapshot(active)
        return self._to_snapshot(self._read_process(process_id))

    def get_active_by_type(self, process_type: ProcessType | str) -> list[ProcessSnapshot]:
        normalized_type = ProcessType(process_type)
        return [snapshot for snapshot in self.list_active() if snapshot.type == normalized_type]

    def list_active(self) -> list[ProcessSnapshot]:
        with self._lock:
            return [self._to_snapshot(record) for record in self._active.values()]

    def get_results_by_type(self, process_type: ProcessType | str) -> list[Record]:
        normalized_type = ProcessType(process_type)
        try:
            records = self._store.get_all(RESULT_COLLECTIONS[normalized_type])
        except StoreError:
            logger.exception("Failed to read results", extra={"process_type": normalized_type.value})
            return []
        if normalized_type == ProcessType.BATCH_SUMMARY:
            return [record for record in records if record.get("batch_id")]
        return records

    def list_notifications(self) -> list[Notification]:
        return self._notifications.entries()

    def summary_count(self) -> int:
        with self._lock:
            active = len(self._active)
        return active + self._notifications.count(Severity.ERROR)

    def outcome(self, process_id: str) -> Future[ProcessOutcome]:
        with self._lock:
            future = self._futures.get(process_id)
            if future is not None:
                return future
            record = self._read_process(process_id)
            future = Future()
            if record["status"] in TERMINAL_STATUSES:
                future.set_result(
                    ProcessOutcome(
                        process_id=process_id,
                        status=record["status"],
                        result=record.get("result"),
                        error=record.get("error"),
                    )
                )
                return future
            # Resolved once the process is recovered and finishes.
            self._futures[process_id] = future
            return future

    def recover(self) -> list[str]:
        """Re-spawn a worker for every persisted pending/running process.

        The persisted action runs again from the beginning under the same id.
        """
        try:
            records = self._store.query_active()
        except StoreError:
            logger.exception("Failed to query active processes for recovery")
            return []

        recovered: list[str] = []
        for record in records:
            process_id = record["id"]
            with self._lock:
                if process_id in self._workers or process_id in self._statuses:
                    continue
                self._statuses[process_id] = record["status"]
                self._types[process_id] = record["type"]
                self._futures.setdefault(process_id, Future())

            self._events.publish(
                ProcessRecovered(process_id=process_id, process_type=record["type"], action=record["action"])
            )
            if not self._launch(record, f"Process recovered: {self._label(record['type'])}", reraise=False):
                continue
            recovered.append(process_id)
            logger.info(
                "Process recovered",
                extra={"process_id": process_id, "process_type": record["type"].value, "action": record["action"]},
            )
        return recovered

    def clear_all(self) -> int:
        with self._lock:
            for process_id in list(self._workers):
                self._release_worker(process_id)
            terminated = [
                (process_id, self._types.get(process_id), self._futures.get(process_id))
                for process_id, status in self._statuses.items()
                if status in ACTIVE_STATUSES
            ]
            for process_id, _process_type, _future in terminated:
                self._persist(process_id, {"status": ProcessStatus.TERMINATED})
            self._statuses.clear()
            self._types.clear()
            self._callbacks.clear()
            self._futures.clear()
            self._active.clear()
            for collection in Collection:
                try:
                    self._store.clear(collection)
                except StoreError:
                    logger.exception("Failed to clear collection %s", collection.value)
            self._notifications.clear()

        for process_id, process_type, future in terminated:
            self._resolve(future, ProcessOutcome(process_id=process_id, status=ProcessStatus.TERMINATED))
            if process_type is not None:
                self._events.publish(ProcessTerminated(process_id=process_id, process_type=process_type))
        logger.info("Cleared all processes; %d terminated", len(terminated))
        return len(terminated)

    def dispatch(self, message: WorkerMessage | dict[str, Any]) -> None:
        """Apply one worker message. Runs on the dispatcher thread in normal operation."""
        if isinstance(message, dict):
            message = unpack_message(message)
        if isinstance(message, StatusUpdate):
            self._handle_status(message)
        elif isinstance(message, ResultMessage):
            self._handle_result(message)
        elif isinstance(message, ErrorMessage):
            self._handle_error(message)
        else:
            raise ValueError(f"Unsupported worker message: {message!r}")

    def post(self, message: WorkerMessage | dict[str, Any]) -> None:
        self._inbox.put(message)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every queued worker message has been applied."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._inbox.all_tasks_done:
            while self._inbox.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._inbox.all_tasks_done.wait(remaining)
        return True

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stop dispatching and release workers; active processes stay persisted as running."""
        if self._closed:
            return
        self._closed = True
        with self._lock:
            for process_id in list(self._workers):
                self._release_worker(process_id)
        self._inbox.put(_STOP)
        self._dispatcher.join(timeout)
        self._notifications.close()
        for hook in self._on_shutdown:
            try:
                hook()
            except Exception:
                logger.exception("Shutdown hook failed")

    def _dispatch_loop(self) -> None:
        while True:
            message = self._inbox.get()
            try:
                if message is _STOP:
                    return
                self.dispatch(message)  # type: ignore[arg-type]
            except Exception:
                logger.exception("Failed to dispatch worker message")
            finally:
                self._inbox.task_done()

    def _launch(self, record: Record, notice: str, *, reraise: bool = True) -> bool:
        process_id = record["id"]
        try:
            worker = self._worker_factory(process_id, self.post)
        except Exception as exc:
            logger.exception("Failed to spawn worker", extra={"process_id": process_id})
            self._handle_error(ErrorMessage(process_id=process_id, error=f"Failed to spawn worker: {exc}"))
            if reraise:
                raise
            return False

        now = self._now()
        with self._lock:
            if self._statuses.get(process_id) not in ACTIVE_STATUSES:
                # Cancelled or cleared while the worker was being created.
                worker.terminate()
                return False
            self._statuses[process_id] = ProcessStatus.RUNNING
            self._workers[process_id] = worker
            self._active[process_id] = {**record, "status": ProcessStatus.RUNNING, "last_updated": now}
            self._persist(process_id, {"status": ProcessStatus.RUNNING})
            self._notifications.add(Severity.INFO, notice, process_id=process_id)

        try:
            worker.send(StartMessage(action=record["action"], payload=record["payload"], process_id=process_id))
        except Exception as exc:
            logger.exception("Failed to start worker", extra={"process_id": process_id})
            self._handle_error(ErrorMessage(process_id=process_id, error=f"Failed to start worker: {exc}"))
            if reraise:
                raise
            return False
        return True

    def _handle_status(self, message: StatusUpdate) -> None:
        process_id = message.process_id
        if message.status in TERMINAL_STATUSES:
            logger.warning(
                "Ignoring terminal status carried by a status update",
                extra={"process_id": process_id, "status": message.status.value},
            )
            return
        with self._lock:
            if not self._accept(process_id, message.status):
                return
            self._statuses[process_id] = message.status
            active = self._active.get(process_id)
            if active is not None:
                active.update({"status": message.status, "message": message.message, "last_updated": self._now()})
            self._persist(process_id, {"status": message.status, "message": message.message})
            callbacks = self._callbacks.get(process_id)

        if callbacks is not None:
            self._invoke(process_id, callbacks.on_status_update, message.status, message.message)
        self._events.publish(
            ProcessStatusUpdated(process_id=process_id, status=message.status, message=message.message)
        )

    def _handle_result(self, message: ResultMessage) -> None:
        process_id = message.process_id
        with self._lock:
            if not self._accept(process_id, ProcessStatus.COMPLETED):
                return
            self._persist(
                process_id,
                {"status": ProcessStatus.COMPLETED, "result": message.result, "completed_at": self._now()},
            )
            self._active.pop(process_id, None)
            process_type = self._types[process_id]
            callbacks = self._callbacks.get(process_id)
            self._save_result(process_id, process_type, message.result)
            self._notifications.add(
                Severity.SUCCESS,
                f"Process completed: {self._label(process_type)}",
                process_id=process_id,
            )
            self._release_worker(process_id)
            future = self._forget(process_id)

        logger.info("Process completed", extra={"process_id": process_id, "process_type": process_type.value})
        if callbacks is not None:
            self._invoke(process_id, callbacks.on_complete, message.result)
        self._resolve(
            future,
            ProcessOutcome(process_id=process_id, status=ProcessStatus.COMPLETED, result=message.result),
        )
        self._events.publish(ProcessCompleted(process_id=process_id, process_type=process_type, result=message.result))

    def _handle_error(self, message: ErrorMessage) -> None:
        process_id = message.process_id
        with self._lock:
            if not self._accept(process_id, ProcessStatus.ERROR):
                return
            self._persist(
                process_id,
                {"status": ProcessStatus.ERROR, "error": message.error, "completed_at": self._now()},
            )
            self._active.pop(process_id, None)
            process_type = self._types.get(process_id)
            callbacks = self._callbacks.get(process_id)
            self._notifications.add(
                Severity.ERROR,
                f"Error in {self._label(process_type)}: {message.error}",
                process_id=process_id,
            )
            self._release_worker(process_id)
            future = self._forget(process_id)

        logger.warning(
            "Process failed: %s",
            message.error,
            extra={"process_id": process_id, "process_type": process_type.value if process_type else None},
        )
        if callbacks is not None:
            self._invoke(process_id, callbacks.on_error, message.error)
        self._resolve(
            future,
            ProcessOutcome(process_id=process_id, status=ProcessStatus.ERROR, error=message.error),
        )
        if process_type is not None:
            self._events.publish(ProcessFailed(process_id=process_id, process_type=process_type, error=message.error))

    def _accept(self, process_id: str, to_status: ProcessStatus) -> bool:
        current = self._statuses.get(process_id)
        if current is None:
            logger.info("Ignoring message for unknown or finished process", extra={"process_id": process_id})
            return False
        try:
            self._enforce_transition(current, to_status)
        except InvalidProcessStateError as exc:
            logger.info("Ignoring worker message: %s", exc, extra={"process_id": process_id})
            return False
        return True

    def _release_worker(self, process_id: str) -> None:
        worker = self._workers.pop(process_id, None)
        if worker is None:
            return
        worker.send(TerminateMessage())
        worker.terminate()

    def _persist(self, process_id: str, changes: Record) -> None:
        try:
            self._store.update(Collection.PROCESSES, process_id, changes)
        except StoreError:
            logger.exception("Failed to persist process update", extra={"process_id": process_id})

    def _save_result(self, process_id: str, process_type: ProcessType, result: Any) -> None:
        collection = RESULT_COLLECTIONS[process_type]
        now = self._now()
        try:
            if process_type == ProcessType.BATCH_SUMMARY:
                summaries = result.get("summaries") if isinstance(result, dict) else None
                if not isinstance(summaries, list):
                    logger.warning("Batch result without summaries", extra={"process_id": process_id})
                    return
                for summary in summaries:
                    entry = dict(summary) if isinstance(summary, dict) else {"summary": summary}
                    entry_id = entry.get("id") or f"batch-{uuid4().hex[:16]}"
                    self._store.put(
                        collection,
                        {
                            **entry,
                            "id": str(entry_id),
                            "process_id": process_id,
                            "from_batch": True,
                            "batch_id": process_id,
                            "timestamp": now,
                        },
                    )
                return
            body = dict(result) if isinstance(result, dict) else {"result": result}
            self._store.put(collection, {**body, "id": process_id, "process_id": process_id, "timestamp": now})
        except StoreError:
            logger.exception("Failed to save process result", extra={"process_id": process_id})

    def _forget(self, process_id: str) -> Future[ProcessOutcome] | None:
        """Drop in-memory tracking of a finished process; the store keeps its record."""
        self._statuses.pop(process_id, None)
        self._types.pop(process_id, None)
        self._callbacks.pop(process_id, None)
        return self._futures.pop(process_id, None)

    def _resolve(self, future: Future[ProcessOutcome] | None, outcome: ProcessOutcome) -> None:
        if future is not None and not future.done():
            future.set_result(outcome)

    def _invoke(self, process_id: str, hook: Callable[..., None] | None, *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            logger.exception("Process callback failed", extra={"process_id": process_id})

    def _read_process(self, process_id: str) -> Record:
        record = self._store.get_by_id(Collection.PROCESSES, process_id)
        if record is None:
            raise ProcessNotFoundError(f"Process not found: {process_id}")
        return record

    def _to_snapshot(self, record: Record) -> ProcessSnapshot:
        return ProcessSnapshot(
            id=record["id"],
            type=ProcessType(record["type"]),
            status=ProcessStatus(record["status"]),
            action=record["action"],
            payload=dict(record.get("payload") or {}),
            message=record.get("message"),
            result=record.get("result"),
            error=record.get("error"),
            timestamp=record.get("timestamp"),
            last_updated=record.get("last_updated"),
            completed_at=record.get("completed_at"),
        )


def snapshot_to_dict(snapshot: ProcessSnapshot) -> dict[str, Any]:
    return {
        "id": snapshot.id,
        "type": snapshot.type.value,
        "status": snapshot.status.value,
        "action": snapshot.action,
        "payload": snapshot.payload,
        "message": snapshot.message,
        "result": snapshot.result,
        "error": snapshot.error,
        "timestamp": snapshot.timestamp,
        "last_updated": snapshot.last_updated,
        "completed_at": snapshot.completed_at,
    }


def build_supervisor(
    settings: Settings,
    session_factory: sessionmaker[Session],
    *,
    worker_factory: WorkerFactory | None = None,
    scheduler: Scheduler | None = None,
    event_bus: EventBus | None = None,
    http_client: httpx.Client | None = None,
) -> ProcessSupervisor:
    store = RecordStore(session_factory)
    store.init()

    on_shutdown: list[Callable[[], None]] = []
    if worker_factory is None:
        client = ApiClient(
            settings.api_base_url,
            timeout=settings.request_timeout_seconds,
            http_client=http_client,
        )
        on_shutdown.append(client.close)
        worker_factory = make_worker_factory(client)

    supervisor = ProcessSupervisor(
        store,
        worker_factory,
        NotificationCenter(ttl_seconds=settings.notification_ttl_seconds, scheduler=scheduler),
        event_bus=event_bus,
        on_shutdown=on_shutdown,
    )
    if settings.recover_on_startup:
        recovered = supervisor.recover()
        if recovered:
            logger.info("Recovered %d active process(es)", len(recovered))
    return supervisor
