"""
Pydantic schemas for API request/response validation.
"""
from typing import Optional

from pydantic import BaseModel

from .request import (
    ColumnsUpdate,
    CombinedViewSave,
    ReminderSettings,
    RequestCreate,
    RequestUpdate,
    StatusUpdate,
    SubmissionCreate,
)


# ============ Health Check ============


class HealthCheck(BaseModel):
    """Health check response."""
    status: str = "healthy"
    backend: Optional[str] = None
    version: str = "1.0"


# Re-export all
__all__ = [
    "ColumnsUpdate",
    "CombinedViewSave",
    "ReminderSettings",
    "RequestCreate",
    "RequestUpdate",
    "StatusUpdate",
    "SubmissionCreate",
    "HealthCheck",
]
