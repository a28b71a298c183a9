from __future__ import annotations

import json
import threading
import time
from concurrent.futures import wait
from pathlib import Path

import httpx

import ragjobs.db.session as db_session_module
from fakes import make_supervisor, prepare_env
from ragjobs.core.config import get_settings
from ragjobs.db.models import ProcessStatus, ProcessType
from ragjobs.jobs import build_supervisor
from ragjobs.notifications import ManualScheduler


def test_many_live_workers_run_without_an_upper_bound(tmp_path: Path) -> None:
    prepare_env(tmp_path)
    total = 40
    gate = threading.Barrier(total, timeout=10)
    seen_queries: list[str] = []
    seen_lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        with seen_lock:
            seen_queries.append(body["query"])
        # Every request waits until all of them are in flight at once.
        gate.wait()
        if body["query"].endswith("7"):
            return httpx.Response(503, text="overloaded")
        return httpx.Response(200, json={"answer": body["query"].upper()})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    supervisor = build_supervisor(
        get_settings(),
        db_session_module.get_session_factory(),
        scheduler=ManualScheduler(),
        http_client=http_client,
    )

    process_ids = [
        supervisor.start(
            ProcessType.ARTICLE_INTELLIGENCE,
            "PROCESS_QUERY",
            {"query": f"q-{index}", "model": "gpt-4o-mini"},
        )
        for index in range(total)
    ]
    futures = [supervisor.outcome(process_id) for process_id in process_ids]
    _done, pending = wait(futures, timeout=30)

    assert not pending
    outcomes = [future.result() for future in futures]
    failed = [outcome for outcome in outcomes if outcome.status == ProcessStatus.ERROR]
    assert len(failed) == 4
    assert all(outcome.error == "Error 503: overloaded" for outcome in failed)
    assert sorted(seen_queries) == sorted(f"q-{index}" for index in range(total))
    assert len(supervisor.get_results_by_type(ProcessType.ARTICLE_INTELLIGENCE)) == total - 4
    assert supervisor.list_active() == []
    assert supervisor.summary_count() == 4
    supervisor.shutdown()
    http_client.close()


def test_concurrent_starts_receive_unique_ids(tmp_path: Path) -> None:
    supervisor, factory, _scheduler = make_supervisor(tmp_path)
    barrier = threading.Barrier(8)
    created: list[str] = []
    lock = threading.Lock()

    def start(index: int) -> None:
        barrier.wait(timeout=5)
        process_id = supervisor.start(ProcessType.STRUCTURED_SUMMARY, "GENERATE_SUMMARY", {"n": index})
        with lock:
            created.append(process_id)

    threads = [threading.Thread(target=start, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(created)) == 8
    assert len(factory.spawned) == 8
    assert len(supervisor.get_active_by_type(ProcessType.STRUCTURED_SUMMARY)) == 8
    supervisor.shutdown()


def test_cancel_racing_with_result_settles_on_one_terminal_state(tmp_path: Path) -> None:
    supervisor, factory, _scheduler = make_supervisor(tmp_path)
    process_ids = [supervisor.start(ProcessType.REVIEW_ARTICLE, "GENERATE_REVIEW_ARTICLE", {}) for _ in range(20)]

    for process_id in process_ids:
        factory.worker(process_id).result({"article": process_id})
    for process_id in process_ids:
        supervisor.cancel(process_id)
    assert supervisor.wait_idle(timeout=10)

    results = {record["id"] for record in supervisor.get_results_by_type(ProcessType.REVIEW_ARTICLE)}
    for process_id in process_ids:
        status = supervisor.get_process(process_id).status
        outcome = supervisor.outcome(process_id).result(timeout=1)
        assert status in {ProcessStatus.COMPLETED, ProcessStatus.CANCELLED}
        assert outcome.status == status
        assert (process_id in results) == (status == ProcessStatus.COMPLETED)
    supervisor.shutdown()


def test_shutdown_keeps_running_descriptors_for_next_start(tmp_path: Path) -> None:
    supervisor, factory, _scheduler = make_supervisor(tmp_path)
    process_id = supervisor.start(ProcessType.ARTICLE_INTELLIGENCE, "PROCESS_QUERY", {})

    started = time.monotonic()
    supervisor.shutdown()
    supervisor.shutdown()

    assert time.monotonic() - started < 5
    assert factory.worker(process_id).terminated is True
    assert supervisor.get_process(process_id).status == ProcessStatus.RUNNING
