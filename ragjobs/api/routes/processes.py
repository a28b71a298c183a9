from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, status

from ragjobs.api.deps import get_supervisor
from ragjobs.api.schemas.processes import (
    ArticleIntelligenceRequest,
    BatchSummaryRequest,
    ClearProcessesResponse,
    ProcessListResponse,
    ProcessResponse,
    ReviewArticleRequest,
    StartProcessRequest,
    StructuredSummaryRequest,
)
from ragjobs.db.models import ProcessType
from ragjobs.jobs import pipeline
from ragjobs.jobs.service import ProcessNotFoundError, ProcessSupervisor, snapshot_to_dict
from ragjobs.store import StoreError

router = APIRouter(prefix="/processes", tags=["processes"])


def _started(supervisor: ProcessSupervisor, start: Callable[[], str]) -> ProcessResponse:
    try:
        process_id = start()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProcessResponse.model_validate(snapshot_to_dict(supervisor.get_process(process_id)))


@router.post("", response_model=ProcessResponse, status_code=status.HTTP_201_CREATED)
def start_process(
    request: StartProcessRequest,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ProcessResponse:
    return _started(supervisor, lambda: supervisor.start(request.type, request.action, request.payload))


@router.post("/article-intelligence", response_model=ProcessResponse, status_code=status.HTTP_201_CREATED)
def start_article_intelligence(
    request: ArticleIntelligenceRequest,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ProcessResponse:
    return _started(
        supervisor,
        lambda: pipeline.start_article_intelligence(
            supervisor,
            request.query,
            request.model,
            request.file_ids,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        ),
    )


@router.post("/structured-summary", response_model=ProcessResponse, status_code=status.HTTP_201_CREATED)
def start_structured_summary(
    request: StructuredSummaryRequest,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ProcessResponse:
    return _started(
        supervisor,
        lambda: pipeline.start_structured_summary(
            supervisor,
            request.query,
            request.language,
            request.model,
            request.file_ids,
            model_params=request.model_params,
        ),
    )


@router.post("/review-article", response_model=ProcessResponse, status_code=status.HTTP_201_CREATED)
def start_review_article(
    request: ReviewArticleRequest,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ProcessResponse:
    return _started(
        supervisor,
        lambda: pipeline.start_review_article(
            supervisor,
            request.summary_ids,
            request.specific_instructions,
            request.language,
            request.model,
            model_params=request.model_params,
        ),
    )


@router.post("/batch-summary", response_model=ProcessResponse, status_code=status.HTTP_201_CREATED)
def start_batch_summary(
    request: BatchSummaryRequest,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ProcessResponse:
    return _started(
        supervisor,
        lambda: pipeline.start_batch_summary(
            supervisor,
            request.file_ids,
            request.language,
            request.model,
            model_params=request.model_params,
        ),
    )


@router.get("/active", response_model=ProcessListResponse)
def list_active_processes(
    type: ProcessType | None = None,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ProcessListResponse:
    items = supervisor.list_active() if type is None else supervisor.get_active_by_type(type)
    return ProcessListResponse(items=[ProcessResponse.model_validate(snapshot_to_dict(item)) for item in items])


@router.get("/{process_id}", response_model=ProcessResponse)
def get_process(process_id: str, supervisor: ProcessSupervisor = Depends(get_supervisor)) -> ProcessResponse:
    try:
        snapshot = supervisor.get_process(process_id)
    except ProcessNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ProcessResponse.model_validate(snapshot_to_dict(snapshot))


@router.post("/{process_id}/cancel", response_model=ProcessResponse)
def cancel_process(process_id: str, supervisor: ProcessSupervisor = Depends(get_supervisor)) -> ProcessResponse:
    try:
        snapshot = supervisor.cancel(process_id)
    except ProcessNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ProcessResponse.model_validate(snapshot_to_dict(snapshot))


@router.delete("", response_model=ClearProcessesResponse)
def clear_processes(supervisor: ProcessSupervisor = Depends(get_supervisor)) -> ClearProcessesResponse:
    return ClearProcessesResponse(terminated=supervisor.clear_all())
