# services/api/routers/requests.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, status

from models import Request
from models.converters import request_to_record
from routers.deps import Service
from schemas import (
    ColumnsUpdate,
    CombinedViewSave,
    RequestCreate,
    RequestUpdate,
    StatusUpdate,
    SubmissionCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/requests", tags=["requests"])


def _out(request: Request) -> Dict[str, Any]:
    return request_to_record(request)


# ========== Requests ==========

@router.get("")
def list_requests(service: Service) -> List[Dict[str, Any]]:
    return [_out(r) for r in service.list_requests()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_request(
    body: RequestCreate,
    background_tasks: BackgroundTasks,
    service: Service,
) -> Dict[str, Any]:
    """
    Create a request and queue the 'please submit' email.

    The email goes out after the response; `notification` tells the caller
    whether it was queued or why it will be skipped.
    """
    request = service.create_request(body.to_payload())

    notification = service.notification_status(request)
    if notification == "queued":
        background_tasks.add_task(service.notify_request_created, request)
    else:
        logger.info(f"Request email for {request.id} skipped: {notification}")

    return {**_out(request), "notification": notification}


@router.get("/{request_id}")
def get_request(request_id: str, service: Service) -> Dict[str, Any]:
    return _out(service.get_request(request_id))


@router.put("/{request_id}")
def update_request(request_id: str, body: RequestUpdate, service: Service) -> Dict[str, Any]:
    """Partial update; the id in the path always wins."""
    return _out(service.update_request(request_id, body.to_payload()))


# ========== Submissions & status ==========

@router.post("/{request_id}/submissions", status_code=status.HTTP_201_CREATED)
def add_submission(request_id: str, body: SubmissionCreate, service: Service) -> Dict[str, Any]:
    return _out(service.add_submission(request_id, body.model_dump()))


@router.put("/{request_id}/status")
def update_status(request_id: str, body: StatusUpdate, service: Service) -> Dict[str, Any]:
    return _out(service.update_status(request_id, body.status))


@router.put("/{request_id}/columns")
def update_columns(request_id: str, body: ColumnsUpdate, service: Service) -> Dict[str, Any]:
    return _out(service.update_columns(request_id, body.columns))


# ========== Combined view ==========

@router.get("/{request_id}/combined")
def get_combined_view(request_id: str, service: Service) -> Dict[str, Any]:
    request = service.get_request(request_id)
    rows = service.get_combined_view(request_id)
    return {
        "requestId": request.id,
        "columns": list(request.columns),
        "rows": [r.to_api() for r in rows],
    }


@router.put("/{request_id}/combined")
def save_combined_view(request_id: str, body: CombinedViewSave, service: Service) -> Dict[str, Any]:
    return _out(service.save_combined_view(request_id, body.rows))


# ========== Progress ==========

@router.get("/{request_id}/progress")
def get_progress(request_id: str, service: Service) -> Dict[str, Any]:
    return service.get_progress(request_id)
