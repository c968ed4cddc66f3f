# services/api/routers/deps.py
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from models.services import RequestService


def get_service(request: Request) -> RequestService:
    """RequestService built by create_app() and kept on app.state."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Request service not initialized",
        )
    return service


# ---- DI alias (no default value allowed) ----
Service = Annotated[RequestService, Depends(get_service)]
