from __future__ import annotations

import json
import threading
from pathlib import Path

import httpx

import ragjobs.db.session as db_session_module
from fakes import FakeWorkerFactory, make_supervisor, restart_supervisor
from ragjobs.core.config import get_settings
from ragjobs.db.models import ProcessStatus, ProcessType
from ragjobs.jobs import ProcessRecovered, build_supervisor
from ragjobs.notifications import ManualScheduler, Severity
from ragjobs.store import Collection, RecordStore
from ragjobs.worker.messages import StartMessage


def test_recovery_spawns_one_worker_per_active_descriptor(tmp_path: Path) -> None:
    supervisor, factory, _scheduler = make_supervisor(tmp_path, recover_on_startup=True)
    payloads = {
        ProcessType.ARTICLE_INTELLIGENCE: {"query": "q1", "fileIds": ["a"], "model": "gpt-4o"},
        ProcessType.STRUCTURED_SUMMARY: {"query": "q2", "fileIds": ["b"], "language": "en", "model": "claude"},
        ProcessType.REVIEW_ARTICLE: {"summaryIds": ["s"], "language": "es", "model": "deepseek-chat"},
    }
    actions = {
        ProcessType.ARTICLE_INTELLIGENCE: "PROCESS_QUERY",
        ProcessType.STRUCTURED_SUMMARY: "GENERATE_SUMMARY",
        ProcessType.REVIEW_ARTICLE: "GENERATE_REVIEW_ARTICLE",
    }
    running = {supervisor.start(kind, actions[kind], payload): (kind, payload) for kind, payload in payloads.items()}

    finished = supervisor.start(ProcessType.BATCH_SUMMARY, "PROCESS_BATCH_SUMMARIES", {"fileIds": ["x"]})
    factory.worker(finished).result({"summaries": []})
    assert supervisor.outcome(finished).result(timeout=5).succeeded
    cancelled = supervisor.start(ProcessType.STRUCTURED_SUMMARY, "GENERATE_SUMMARY", {})
    supervisor.cancel(cancelled)

    restarted, new_factory = restart_supervisor(supervisor)

    assert len(new_factory.spawned) == len(running)
    for worker in new_factory.spawned:
        kind, payload = running[worker.process_id]
        assert worker.started == [StartMessage(action=actions[kind], payload=payload, process_id=worker.process_id)]
    assert {item.id for item in restarted.list_active()} == set(running)
    recovered_notes = [item for item in restarted.list_notifications() if item.severity == Severity.INFO]
    assert {item.process_id for item in recovered_notes} == set(running)
    assert all(item.message.startswith("Process recovered") for item in recovered_notes)

    # Recovered processes complete through the same handling path.
    target = next(iter(running))
    new_factory.worker(target).result({"answer": "after restart"})
    outcome = restarted.outcome(target).result(timeout=5)
    assert outcome.succeeded
    assert restarted.get_process(target).status == ProcessStatus.COMPLETED
    restarted.shutdown()


def test_pending_descriptor_is_recovered_as_running(tmp_path: Path) -> None:
    _supervisor, _factory, _scheduler = make_supervisor(tmp_path, recover_on_startup=False)
    _supervisor.shutdown()
    store = RecordStore(db_session_module.get_session_factory())
    store.put(
        Collection.PROCESSES,
        {
            "id": "orphan-pending",
            "type": ProcessType.REVIEW_ARTICLE,
            "status": ProcessStatus.PENDING,
            "action": "GENERATE_REVIEW_ARTICLE",
            "payload": {"summaryIds": ["s-1"]},
        },
    )

    factory = FakeWorkerFactory()
    supervisor = build_supervisor(
        get_settings(),
        db_session_module.get_session_factory(),
        worker_factory=factory,
        scheduler=ManualScheduler(),
    )
    seen: list[ProcessRecovered] = []
    supervisor.events.subscribe(ProcessRecovered, seen.append)

    assert supervisor.recover() == ["orphan-pending"]

    assert [worker.process_id for worker in factory.spawned] == ["orphan-pending"]
    assert store.get_by_id(Collection.PROCESSES, "orphan-pending")["status"] == ProcessStatus.RUNNING  # type: ignore[index]
    assert [event.process_id for event in seen] == ["orphan-pending"]

    # A second recovery pass never spawns a second live worker for the same id.
    assert supervisor.recover() == []
    assert len(factory.spawned) == 1
    supervisor.shutdown()


def test_recovery_re_executes_the_remote_call(tmp_path: Path) -> None:
    supervisor, _factory, _scheduler = make_supervisor(tmp_path, recover_on_startup=True)
    payload = {"query": "billing", "fileIds": ["f-1"], "model": "gpt-4o-mini"}
    process_id = supervisor.start(ProcessType.ARTICLE_INTELLIGENCE, "PROCESS_QUERY", payload)
    supervisor.shutdown()

    calls: list[httpx.Request] = []
    calls_lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        with calls_lock:
            calls.append(request)
        return httpx.Response(200, json={"answer": "recomputed"})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    restarted = build_supervisor(
        get_settings(),
        db_session_module.get_session_factory(),
        scheduler=ManualScheduler(),
        http_client=http_client,
    )

    outcome = restarted.outcome(process_id).result(timeout=10)

    assert outcome.succeeded
    assert outcome.result == {"answer": "recomputed"}
    assert len(calls) == 1
    assert calls[0].url.path == "/api/openai/query"
    assert json.loads(calls[0].content) == payload
    results = restarted.get_results_by_type(ProcessType.ARTICLE_INTELLIGENCE)
    assert [record["id"] for record in results] == [process_id]
    restarted.shutdown()
    http_client.close()


def test_recovery_disabled_leaves_descriptors_untouched(tmp_path: Path) -> None:
    supervisor, _factory, _scheduler = make_supervisor(tmp_path, recover_on_startup=False)
    process_id = supervisor.start(ProcessType.STRUCTURED_SUMMARY, "GENERATE_SUMMARY", {})

    restarted, factory = restart_supervisor(supervisor)

    assert factory.spawned == []
    assert restarted.list_active() == []
    assert restarted.get_process(process_id).status == ProcessStatus.RUNNING
    restarted.shutdown()
