from __future__ import annotations

from fastapi import APIRouter, Depends

from ragjobs.api.deps import get_supervisor
from ragjobs.api.schemas.notifications import NotificationListResponse, NotificationResponse
from ragjobs.jobs.service import ProcessSupervisor
from ragjobs.notifications import notification_to_dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(supervisor: ProcessSupervisor = Depends(get_supervisor)) -> NotificationListResponse:
    return NotificationListResponse(
        items=[
            NotificationResponse.model_validate(notification_to_dict(item))
            for item in supervisor.list_notifications()
        ],
        summary_count=supervisor.summary_count(),
    )
