from ragjobs.worker.actions import ProcessAction, UnknownActionError, resolve_provider, resolve_request
from ragjobs.worker.client import ApiClient, NetworkError
from ragjobs.worker.runner import (
    ExecutionWorker,
    PostFn,
    Worker,
    WorkerFactory,
    WorkerProtocolError,
    make_worker_factory,
)

__all__ = [
    "ApiClient",
    "NetworkError",
    "ProcessAction",
    "UnknownActionError",
    "resolve_provider",
    "resolve_request",
    "ExecutionWorker",
    "PostFn",
    "Worker",
    "WorkerFactory",
    "WorkerProtocolError",
    "make_worker_factory",
]
