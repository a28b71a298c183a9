from __future__ import annotations

from enum import Enum
from typing import Any


class ProcessAction(str, Enum):
    PROCESS_QUERY = "PROCESS_QUERY"
    GENERATE_SUMMARY = "GENERATE_SUMMARY"
    GENERATE_REVIEW_ARTICLE = "GENERATE_REVIEW_ARTICLE"
    PROCESS_BATCH_SUMMARIES = "PROCESS_BATCH_SUMMARIES"


class UnknownActionError(ValueError):
    pass


_ENDPOINTS: dict[ProcessAction, str] = {
    ProcessAction.PROCESS_QUERY: "query",
    ProcessAction.GENERATE_SUMMARY: "summary",
    ProcessAction.GENERATE_REVIEW_ARTICLE: "review-article",
    ProcessAction.PROCESS_BATCH_SUMMARIES: "batch-summary",
}

# Queries always go through the openai route regardless of the model.
_FIXED_PROVIDERS: dict[ProcessAction, str] = {
    ProcessAction.PROCESS_QUERY: "openai",
}
DEFAULT_PROVIDER = "openai"


def resolve_provider(model: Any) -> str:
    token = str(model or "").strip().lower()
    if "claude" in token:
        return "anthropic"
    return DEFAULT_PROVIDER


def resolve_request(action: str, payload: dict[str, Any]) -> tuple[str, str]:
    """Map a worker action to the ``(method, path)`` of its single remote call."""
    try:
        normalized = ProcessAction(action)
    except ValueError as exc:
        raise UnknownActionError(f"Unknown action: {action}") from exc
    provider = _FIXED_PROVIDERS.get(normalized) or resolve_provider(payload.get("model"))
    return "POST", f"/api/{provider}/{_ENDPOINTS[normalized]}"
