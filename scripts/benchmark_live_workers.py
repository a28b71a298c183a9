from __future__ import annotations

import argparse
import collections
import json
import os
import random
import threading
import time
from concurrent.futures import wait
from dataclasses import dataclass
from pathlib import Path

import httpx

import ragjobs.db.session as db_session_module
from ragjobs.core.config import get_settings
from ragjobs.db.init_db import initialize_database
from ragjobs.db.models import ProcessStatus, ProcessType
from ragjobs.jobs.service import ProcessSupervisor, build_supervisor
from ragjobs.notifications import ManualScheduler


@dataclass(slots=True)
class RunStats:
    elapsed_seconds: float
    processes: int
    completed: int
    failed: int
    unresolved: int
    peak_threads: int
    results_written: int
    start_latency_p50_ms: float
    start_latency_p95_ms: float
    error_top: list[tuple[str, int]]

    @property
    def throughput_pps(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.processes / self.elapsed_seconds

    @property
    def failed_ratio(self) -> float:
        if self.processes <= 0:
            return 0.0
        return self.failed / self.processes


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Benchmark unbounded concurrent execution workers")
    parser.add_argument("--state-root", required=True, help="State root directory")
    parser.add_argument("--processes", type=int, default=200, help="Number of processes started at once")
    parser.add_argument("--latency-ms", type=float, default=250.0, help="Mean simulated remote latency")
    parser.add_argument("--failure-rate", type=float, default=0.05, help="Share of remote calls answering 500")
    parser.add_argument("--seed", type=int, default=20260224, help="Random seed")
    parser.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait for all outcomes")
    parser.add_argument("--min-throughput-pps", type=float, default=None, help="Fail if throughput is below threshold")
    parser.add_argument("--max-failed-ratio", type=float, default=None, help="Fail if failed ratio is above threshold")
    return parser.parse_args()


def configure_env(state_root: Path) -> None:
    state_root.mkdir(parents=True, exist_ok=True)
    os.environ["RAGJOBS_STATE_ROOT"] = state_root.as_posix()
    os.environ["RAGJOBS_RECOVER_ON_STARTUP"] = "false"

    get_settings.cache_clear()
    db_session_module._engine = None
    db_session_module._session_factory = None


def make_transport(*, latency_ms: float, failure_rate: float, seed: int) -> httpx.MockTransport:
    rng = random.Random(seed)
    rng_lock = threading.Lock()

    def handler(request: httpx.Request) -> httpx.Response:
        with rng_lock:
            delay = rng.expovariate(1000.0 / max(1.0, latency_ms))
            fail = rng.random() < failure_rate
        time.sleep(delay)
        if fail:
            return httpx.Response(500, text="simulated upstream failure")
        body = json.loads(request.content or b"{}")
        return httpx.Response(200, json={"answer": f"echo:{body.get('query', '')}", "path": request.url.path})

    return httpx.MockTransport(handler)


def percentile(values: list[float], ratio: float) -> float:
    if not values:
        return 0.0
    if len(values) == 1:
        return values[0]
    sorted_values = sorted(values)
    index = int(round((len(sorted_values) - 1) * ratio))
    index = max(0, min(index, len(sorted_values) - 1))
    return sorted_values[index]


def run_benchmark(*, supervisor: ProcessSupervisor, processes: int, timeout: float) -> RunStats:
    start_latencies_ms: list[float] = []
    peak_threads = threading.active_count()
    process_ids: list[str] = []

    started = time.perf_counter()
    for index in range(processes):
        t0 = time.perf_counter()
        process_ids.append(
            supervisor.start(
                ProcessType.ARTICLE_INTELLIGENCE,
                "PROCESS_QUERY",
                {"query": f"q-{index}", "fileIds": [f"file-{index}"], "model": "gpt-4o-mini"},
            )
        )
        start_latencies_ms.append((time.perf_counter() - t0) * 1000.0)
        peak_threads = max(peak_threads, threading.active_count())

    futures = [supervisor.outcome(process_id) for process_id in process_ids]
    pending = set(futures)
    deadline = time.monotonic() + timeout
    while pending and time.monotonic() < deadline:
        _done, pending = wait(pending, timeout=0.05)
        peak_threads = max(peak_threads, threading.active_count())
    elapsed = time.perf_counter() - started

    completed = 0
    failed = 0
    error_counter: collections.Counter[str] = collections.Counter()
    for future in futures:
        if not future.done():
            continue
        outcome = future.result()
        if outcome.status == ProcessStatus.COMPLETED:
            completed += 1
        else:
            failed += 1
            error_counter[(outcome.error or outcome.status.value)[:180]] += 1

    return RunStats(
        elapsed_seconds=elapsed,
        processes=processes,
        completed=completed,
        failed=failed,
        unresolved=len(pending),
        peak_threads=peak_threads,
        results_written=len(supervisor.get_results_by_type(ProcessType.ARTICLE_INTELLIGENCE)),
        start_latency_p50_ms=percentile(start_latencies_ms, 0.50),
        start_latency_p95_ms=percentile(start_latencies_ms, 0.95),
        error_top=error_counter.most_common(5),
    )


def assert_thresholds(args: argparse.Namespace, stats: RunStats) -> None:
    failures: list[str] = []
    if stats.unresolved:
        failures.append(f"unresolved={stats.unresolved} processes did not finish within {args.timeout:.0f}s")
    if args.min_throughput_pps is not None and stats.throughput_pps < args.min_throughput_pps:
        failures.append(
            f"throughput_pps={stats.throughput_pps:.2f} < min_throughput_pps={args.min_throughput_pps:.2f}"
        )
    if args.max_failed_ratio is not None and stats.failed_ratio > args.max_failed_ratio:
        failures.append(f"failed_ratio={stats.failed_ratio:.4f} > max_failed_ratio={args.max_failed_ratio:.4f}")
    if failures:
        raise RuntimeError("; ".join(failures))


def main() -> None:
    args = parse_args()
    configure_env(Path(args.state_root))
    initialize_database()
    http_client = httpx.Client(
        transport=make_transport(latency_ms=args.latency_ms, failure_rate=args.failure_rate, seed=args.seed)
    )
    supervisor = build_supervisor(
        get_settings(),
        db_session_module.get_session_factory(),
        scheduler=ManualScheduler(),
        http_client=http_client,
    )
    try:
        stats = run_benchmark(supervisor=supervisor, processes=max(1, args.processes), timeout=args.timeout)
    finally:
        supervisor.shutdown()
        http_client.close()

    print("== Live Worker Benchmark ==")
    print(f"processes={stats.processes}")
    print(f"completed={stats.completed}")
    print(f"failed={stats.failed}")
    print(f"unresolved={stats.unresolved}")
    print(f"results_written={stats.results_written}")
    print(f"peak_threads={stats.peak_threads}")
    print(f"elapsed_seconds={stats.elapsed_seconds:.3f}")
    print(f"throughput_pps={stats.throughput_pps:.2f}")
    print(f"failed_ratio={stats.failed_ratio:.4f}")
    print(f"start_latency_p50_ms={stats.start_latency_p50_ms:.2f}")
    print(f"start_latency_p95_ms={stats.start_latency_p95_ms:.2f}")
    if stats.error_top:
        print("top_errors:")
        for signature, count in stats.error_top:
            print(f"- {count}x {signature}")

    assert_thresholds(args, stats)


if __name__ == "__main__":
    main()
