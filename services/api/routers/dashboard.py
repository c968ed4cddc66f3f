# services/api/routers/dashboard.py
from typing import Dict

from fastapi import APIRouter

from routers.deps import Service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
def dashboard_summary(service: Service) -> Dict[str, int]:
    """Counts for the admin dashboard cards."""
    return service.dashboard_summary()
