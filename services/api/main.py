"""
Data Request Workspace - Backend API
FastAPI with pluggable storage backends: JSON file, SQLite/SQL, Google Sheets, memory

Install dependencies:
pip install -e .

Run server:
uvicorn main:app --host 0.0.0.0 --port 8000
"""

import contextvars
import logging
import os
import time
import uuid
from typing import Optional

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.base import StorageAdapter
from adapters.factory import build_storage_adapter
from core.errors import ServiceError
from core.notifications import EmailNotifier
from core.reminders import ReminderScheduler
from models.services import RequestService
from routers import dashboard as dashboard_router
from routers import reports_excel as reports_excel_router
from routers import requests as requests_router
from schemas import HealthCheck
from settings import Settings, get_settings

API_VERSION = "1.0"

# ========== Request Context for Tracing ==========
request_id_var = contextvars.ContextVar('request_id', default=None)
request_start_time_var = contextvars.ContextVar('request_start_time', default=None)

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageAdapter] = None,
    notifier: Optional[EmailNotifier] = None,
) -> FastAPI:
    """
    Build the API.

    `storage` / `notifier` default to what the settings describe; tests pass
    their own (memory store, fake SMTP sender).
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    storage = storage if storage is not None else build_storage_adapter(settings)
    notifier = notifier if notifier is not None else EmailNotifier(settings)
    service = RequestService(
        storage=storage,
        notifier=notifier,
        public_base_url=settings.public_base_url,
    )
    backend = type(storage).__name__

    app = FastAPI(
        title="Data Request Workspace API",
        version=API_VERSION,
    )
    app.state.settings = settings
    app.state.storage_adapter = storage
    app.state.storage_backend = settings.storage_backend.lower()
    app.state.notifier = notifier
    app.state.service = service
    app.state.reminder_scheduler = None
    app.state.startup_time = time.time()

    # ========== Middleware ==========

    @app.middleware("http")
    async def request_tracing_middleware(request, call_next):
        """Add request_id and timing to all requests."""
        request_id = str(uuid.uuid4())[:8]
        request_id_var.set(request_id)
        request_start_time_var.set(time.time())

        response = await call_next(request)

        latency = time.time() - request_start_time_var.get()
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({round(latency * 1000, 2)} ms) [{request_id}]"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========== Error handlers ==========

    @app.exception_handler(ServiceError)
    async def service_error_handler(request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"✗ {type(exc).__name__} on {request.url.path}: {exc.detail}")
        else:
            logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    # ========== Health Endpoints ==========

    @app.get("/health", response_model=HealthCheck)
    async def health_check():
        """Health check endpoint"""
        try:
            storage.ping()
            return {
                "status": "healthy",
                "backend": app.state.storage_backend,
                "version": API_VERSION,
            }
        except Exception as e:
            logger.error(f"Health check failed: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy", "backend": app.state.storage_backend, "error": str(e)}
            )

    @app.get("/healthz")
    async def healthz():
        """
        Liveness probe: is the process alive and responding?
        """
        return {
            "status": "ok",
            "timestamp": time.time(),
            "version": API_VERSION,
        }

    @app.get("/readyz")
    async def readyz():
        """
        Readiness probe: can the store be reached?
        Returns 200 if ready, 503 if not ready.
        """
        try:
            storage.ping()
            scheduler = app.state.reminder_scheduler
            return {
                "status": "ready",
                "backend": app.state.storage_backend,
                "reminders_running": bool(scheduler and scheduler.running),
                "uptime_seconds": round(time.time() - app.state.startup_time, 2),
                "timestamp": time.time(),
            }
        except Exception as e:
            logger.error(f"Readiness check failed: {str(e)}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "not_ready",
                    "backend": app.state.storage_backend,
                    "error": str(e),
                    "timestamp": time.time(),
                }
            )

    @app.get("/")
    async def root():
        """API root endpoint"""
        return {
            "message": "Data Request Workspace API",
            "version": API_VERSION,
            "backend": app.state.storage_backend,
            "status": "running",
            "docs": "/docs",
        }

    # ========== Routers ==========

    app.include_router(requests_router.router)
    app.include_router(reports_excel_router.router)
    app.include_router(dashboard_router.router)

    # ========== Lifecycle ==========

    @app.on_event("startup")
    async def startup_event():
        app.state.startup_time = time.time()
        logger.info("Data Request Workspace API starting up...")
        logger.info(f"Storage Backend: {backend}")
        logger.info(f"Allowed origins: {settings.get_origins_list()}")
        if not settings.smtp_configured():
            logger.warning("⚠️ SMTP not configured: request emails and reminders will be skipped")

        if settings.reminders_enabled:
            scheduler = ReminderScheduler(service, settings.reminder_check_interval_seconds)
            scheduler.start()
            app.state.reminder_scheduler = scheduler

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Data Request Workspace API shutting down...")
        scheduler = app.state.reminder_scheduler
        if scheduler is not None:
            await scheduler.stop()
            app.state.reminder_scheduler = None
        engine = getattr(storage, "engine", None)
        if engine is not None:
            engine.dispose()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=False)
