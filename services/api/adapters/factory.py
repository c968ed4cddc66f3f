# services/api/adapters/factory.py
from __future__ import annotations

import logging

from adapters.base import StorageAdapter
from settings import Settings

logger = logging.getLogger(__name__)

BACKENDS = ("json", "sqlite", "sheets", "memory")


def build_storage_adapter(settings: Settings) -> StorageAdapter:
    """
    Build the store named by STORAGE_BACKEND.

    Raises:
        ValueError: unknown backend, or sheets without credentials
    """
    backend = (settings.storage_backend or "").strip().lower()
    logger.info(f"🔧 Storage Backend: {backend.upper()}")

    if backend == "json":
        from adapters.json import JsonAdapter

        return JsonAdapter(settings.json_db_path)

    if backend == "sqlite":
        from adapters.sqlite import SqliteAdapter

        logger.info(f"Database: {settings.db_url.split('://')[0]}")
        return SqliteAdapter.from_url(settings.db_url)

    if backend == "sheets":
        from adapters.sheets import SheetsAdapter

        google_sa_json = settings.resolved_google_sa_json()
        if not google_sa_json or not settings.sheets_spreadsheet_id:
            raise ValueError("Google Sheets requires GOOGLE_SA_JSON and SHEETS_SPREADSHEET_ID")

        logger.info("Initializing Google Sheets adapter...")
        try:
            adapter = SheetsAdapter(
                google_sa_json=google_sa_json,
                spreadsheet_id=settings.sheets_spreadsheet_id,
                tab_name=settings.sheets_tab_name,
            )
        except Exception as e:
            logger.error(f"✗ Failed to initialize Google Sheets: {e}")
            raise
        logger.info(f"✓ Google Sheets adapter initialized (tab '{settings.sheets_tab_name}')")
        return adapter

    if backend == "memory":
        from adapters.memory import MemoryAdapter

        logger.warning("⚠️ Using in-memory storage: data is lost on restart")
        return MemoryAdapter()

    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.storage_backend} (expected one of {BACKENDS})")
