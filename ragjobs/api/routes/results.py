from __future__ import annotations

from fastapi import APIRouter, Depends

from ragjobs.api.deps import get_supervisor
from ragjobs.api.schemas.processes import ResultListResponse
from ragjobs.db.models import ProcessType
from ragjobs.jobs.service import ProcessSupervisor

router = APIRouter(prefix="/results", tags=["results"])


@router.get("/{process_type}", response_model=ResultListResponse)
def list_results(
    process_type: ProcessType,
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> ResultListResponse:
    return ResultListResponse(type=process_type.value, items=supervisor.get_results_by_type(process_type))
