# services/api/adapters/sheets/__init__.py
from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Dict, List, Optional

import gspread
from cachetools import TTLCache
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.errors import Conflict
from ..base import check_version

logger = logging.getLogger(__name__)

# ========== Sheet schema (HEADERS) ==========

# One row per request. The full record is kept as JSON in `payload`;
# the other columns are copies for humans browsing the sheet.
HEADERS = [
    "id",
    "title",
    "status",
    "deadline",
    "created_at",
    "updated_at",
    "version",
    "payload",
]

# Google Sheets rejects cells longer than this
MAX_CELL_CHARS = 50000


def _safe_int(v, default=None):
    try:
        if v is None:
            return default
        s = str(v).strip()
        if s == "":
            return default
        # allow "3.0" etc
        return int(float(s))
    except (TypeError, ValueError):
        return default


def _utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _sa_client_from_json_or_path(google_sa_json: str) -> gspread.Client:
    """
    Accepts either:
      - absolute/relative path to a service-account JSON file, OR
      - a literal JSON string.
    Returns an authorized gspread Client.
    """
    if not google_sa_json:
        raise ValueError("GOOGLE_SA_JSON is required (path to file or inline JSON).")

    # Try to treat as inline JSON first
    try:
        parsed = json.loads(google_sa_json)
        creds = Credentials.from_service_account_info(
            parsed,
            scopes=["https://www.googleapis.com/auth/spreadsheets"],
        )
        return gspread.authorize(creds)
    except json.JSONDecodeError:
        # Not JSON; treat as file path
        creds = Credentials.from_service_account_file(
            google_sa_json,
            scopes=["https://www.googleapis.com/auth/spreadsheets"],
        )
        return gspread.authorize(creds)


# ========== Retry decorator for Google Sheets API calls ==========
def retry_sheets_api(func):
    """Decorator to retry Sheets API calls with exponential backoff on quota errors."""
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((gspread.exceptions.APIError,)),
        reraise=True,
    )
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


class SheetsAdapter:
    """
    Google Sheets request store:
    - one tab, one row per request, whole record as JSON
    - retry logic for quota errors
    - short TTL cache on the full listing, cleared on every write
    """

    def __init__(
        self,
        google_sa_json: Optional[str] = None,
        spreadsheet_id: Optional[str] = None,
        tab_name: str = "requests",
        worksheet: Optional[gspread.Worksheet] = None,
    ) -> None:
        if worksheet is None:
            if not google_sa_json or not spreadsheet_id:
                raise ValueError("SheetsAdapter requires GOOGLE_SA_JSON and SHEETS_SPREADSHEET_ID")
            self.gc = _sa_client_from_json_or_path(google_sa_json)
            self.ss = self.gc.open_by_key(spreadsheet_id)
            worksheet = self._ensure_worksheet(tab_name)

        self.ws = worksheet
        self.colmap = self._ensure_headers()

        self._lock = threading.RLock()
        self._list_cache: TTLCache = TTLCache(maxsize=1, ttl=5)

    # ========== Worksheet helpers ==========

    def _ensure_worksheet(self, name: str) -> gspread.Worksheet:
        try:
            return self.ss.worksheet(name)
        except gspread.WorksheetNotFound:
            logger.info(f"📝 Creating tab '{name}'...")
            return self.ss.add_worksheet(title=name, rows=200, cols=len(HEADERS) + 2)

    def _ensure_headers(self) -> dict[str, int]:
        values = self.ws.get_values("1:1")
        existing = values[0] if values else []

        if not existing:
            self.ws.update(range_name="A1", values=[HEADERS])
            header = HEADERS[:]
        else:
            # If required base columns are missing, append them at the end.
            # If the sheet already has extra columns, KEEP them.
            missing = [c for c in HEADERS if c not in existing]
            header = existing + missing if missing else existing
            if header != existing:
                self.ws.update(range_name="1:1", values=[header])

        return {col: idx + 1 for idx, col in enumerate(header)}

    @retry_sheets_api
    def _get_all_dicts(self) -> list[dict[str, Any]]:
        """Get all rows as dictionaries. WITH RETRY."""
        rows = self.ws.get_all_values()
        if not rows:
            return []
        header = rows[0]
        out = []
        for r in rows[1:]:
            out.append({header[i]: (r[i] if i < len(r) else "") for i in range(len(header))})
        return out

    @retry_sheets_api
    def _append_row(self, data: dict[str, Any]) -> None:
        """Append one row using the sheet's column order. WITH RETRY."""
        row = [""] * len(self.colmap)
        for k, idx in self.colmap.items():
            row[idx - 1] = data.get(k, "")
        self.ws.append_rows([row], value_input_option="RAW")

    @retry_sheets_api
    def _update_cells(self, row_idx: int, updates: dict[str, Any]) -> None:
        """Update specific cells in a row. WITH RETRY."""
        data = []
        for k, v in updates.items():
            if k not in self.colmap:
                continue
            a1 = gspread.utils.rowcol_to_a1(row_idx, self.colmap[k])
            data.append({"range": a1, "values": [[v]]})
        if data:
            self.ws.batch_update(data)

    @retry_sheets_api
    def _find_row_by_id(self, request_id: str) -> Optional[int]:
        """Find 1-based sheet row index for a request id."""
        col_vals = self.ws.col_values(self.colmap["id"])
        for i, v in enumerate(col_vals[1:], start=2):  # skip header
            if v == request_id:
                return i
        return None

    def _row_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = json.dumps(record, ensure_ascii=False, default=str)
        if len(payload) > MAX_CELL_CHARS:
            logger.warning(
                f"⚠️ Request {record.get('id')} payload is {len(payload)} chars; "
                f"Google Sheets cells hold at most {MAX_CELL_CHARS}"
            )
        return {
            "id": record.get("id", ""),
            "title": record.get("title", ""),
            "status": record.get("status", ""),
            "deadline": record.get("deadline") or "",
            "created_at": record.get("createdAt", ""),
            "updated_at": record.get("updatedAt") or _utc_iso(),
            "version": record.get("version", 1),
            "payload": payload,
        }

    @staticmethod
    def _record_from_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raw = row.get("payload") or ""
        if not raw:
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError:
            logger.error(f"✗ Skipping request row {row.get('id')!r}: payload is not JSON")
            return None
        record["id"] = row.get("id") or record.get("id")
        record["version"] = _safe_int(row.get("version"), default=1)
        return record

    # ========== StorageAdapter API ==========

    def list_requests(self) -> List[Dict[str, Any]]:
        with self._lock:
            cached = self._list_cache.get("all")
            if cached is None:
                cached = [
                    rec for rec in (self._record_from_row(r) for r in self._get_all_dicts())
                    if rec is not None
                ]
                self._list_cache["all"] = cached
            return json.loads(json.dumps(cached))

    def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        return next((r for r in self.list_requests() if r.get("id") == request_id), None)

    def insert_request(self, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if self._find_row_by_id(record.get("id", "")):
                raise Conflict(f"Request {record.get('id')} already exists")
            stored = dict(record)
            stored["version"] = 1
            self._append_row(self._row_from_record(stored))
            self._list_cache.clear()
            return stored

    def replace_request(
        self,
        request_id: str,
        record: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            row_idx = self._find_row_by_id(request_id)
            if not row_idx:
                return None

            # Read the live version, not the cached listing
            live = dict(zip(self.ws.row_values(1), self.ws.row_values(row_idx)))
            stored = dict(record)
            stored["id"] = request_id
            stored["version"] = check_version(
                request_id,
                {"version": _safe_int(live.get("version"), default=1)},
                expected_version,
            )
            self._update_cells(row_idx, self._row_from_record(stored))
            self._list_cache.clear()
            return stored

    def ping(self) -> None:
        self.ws.acell("A1")
