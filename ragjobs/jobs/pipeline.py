"""Start helpers for each process category.

Payload keys follow the remote endpoints' request bodies, so they keep the
names those endpoints read (``fileIds``, ``summaryIds``, ...).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ragjobs.db.models import ProcessType
from ragjobs.jobs.service import ProcessSupervisor
from ragjobs.jobs.types import ProcessCallbacks
from ragjobs.worker.actions import ProcessAction


def _ids(values: Iterable[str], *, field: str) -> list[str]:
    if isinstance(values, str):
        raise ValueError(f"{field} must be a list of ids")
    normalized = [str(value) for value in values]
    if not normalized:
        raise ValueError(f"{field} cannot be empty")
    return normalized


def _merge(payload: dict[str, Any], model_params: Mapping[str, Any] | None) -> dict[str, Any]:
    if model_params:
        payload.update(model_params)
    return payload


def start_article_intelligence(
    supervisor: ProcessSupervisor,
    query: str,
    model: str,
    file_ids: Iterable[str],
    *,
    max_tokens: int | None = None,
    temperature: float | None = None,
    callbacks: ProcessCallbacks | None = None,
) -> str:
    if not query or not query.strip():
        raise ValueError("query cannot be blank")
    payload = {
        "query": query,
        "fileIds": _ids(file_ids, field="file_ids"),
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    return supervisor.start(ProcessType.ARTICLE_INTELLIGENCE, ProcessAction.PROCESS_QUERY.value, payload, callbacks)


def start_structured_summary(
    supervisor: ProcessSupervisor,
    query: str,
    language: str,
    model: str,
    file_ids: Iterable[str],
    *,
    model_params: Mapping[str, Any] | None = None,
    callbacks: ProcessCallbacks | None = None,
) -> str:
    payload = _merge(
        {
            "query": query,
            "fileIds": _ids(file_ids, field="file_ids"),
            "language": language,
            "model": model,
        },
        model_params,
    )
    return supervisor.start(ProcessType.STRUCTURED_SUMMARY, ProcessAction.GENERATE_SUMMARY.value, payload, callbacks)


def start_review_article(
    supervisor: ProcessSupervisor,
    summary_ids: Iterable[str],
    specific_instructions: str,
    language: str,
    model: str,
    *,
    model_params: Mapping[str, Any] | None = None,
    callbacks: ProcessCallbacks | None = None,
) -> str:
    payload = _merge(
        {
            "summaryIds": _ids(summary_ids, field="summary_ids"),
            "specificInstructions": specific_instructions,
            "language": language,
            "model": model,
        },
        model_params,
    )
    return supervisor.start(
        ProcessType.REVIEW_ARTICLE,
        ProcessAction.GENERATE_REVIEW_ARTICLE.value,
        payload,
        callbacks,
    )


def start_batch_summary(
    supervisor: ProcessSupervisor,
    file_ids: Iterable[str],
    language: str,
    model: str,
    *,
    model_params: Mapping[str, Any] | None = None,
    callbacks: ProcessCallbacks | None = None,
) -> str:
    payload = _merge(
        {
            "fileIds": _ids(file_ids, field="file_ids"),
            "language": language,
            "model": model,
        },
        model_params,
    )
    return supervisor.start(
        ProcessType.BATCH_SUMMARY,
        ProcessAction.PROCESS_BATCH_SUMMARIES.value,
        payload,
        callbacks,
    )
