"""
JSON file storage adapter for the data request workspace.
Simple file-based storage: one document `{"requests": [...]}` on disk.
Suitable for a single process; writes are serialized with an in-process lock.
"""
import copy
import json
import logging
import threading
from typing import List, Dict, Any, Optional
from pathlib import Path

from core.errors import Conflict
from ..base import check_version

logger = logging.getLogger(__name__)


class JsonAdapter:
    """
    JSON file-based storage adapter.
    Stores every request record in a single JSON file.
    Uses atomic file operations for basic consistency.
    """

    def __init__(self, db_path: str = "data/database.json"):
        """
        Initialize the JSON adapter.

        Args:
            db_path: Path of the JSON database file (created if missing)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

        # Initialize file if it doesn't exist
        if not self.db_path.exists():
            self._write_file({"requests": []})
            logger.info(f"✓ JSON database initialized at {self.db_path}")

    def _read_file(self) -> Dict[str, Any]:
        """Read and parse the database file."""
        try:
            with open(self.db_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {"requests": []}
        except json.JSONDecodeError as e:
            # A corrupt file must not be silently replaced by an empty one
            logger.error(f"✗ JSON database {self.db_path} is not valid JSON: {e}")
            raise
        if not isinstance(data, dict) or not isinstance(data.get("requests"), list):
            data = {"requests": []}
        return data

    def _write_file(self, data: Dict[str, Any]) -> None:
        """Write data to the JSON file atomically."""
        # Write to temporary file first
        tmp_file = self.db_path.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        # Atomic rename
        tmp_file.replace(self.db_path)

    def list_requests(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._read_file()["requests"]

    def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            requests = self._read_file()["requests"]
        return next((r for r in requests if r.get("id") == request_id), None)

    def insert_request(self, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            data = self._read_file()
            if any(r.get("id") == record.get("id") for r in data["requests"]):
                raise Conflict(f"Request {record.get('id')} already exists")

            stored = copy.deepcopy(record)
            stored["version"] = 1
            data["requests"].append(stored)
            self._write_file(data)
            return stored

    def replace_request(
        self,
        request_id: str,
        record: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._read_file()
            idx = next(
                (i for i, r in enumerate(data["requests"]) if r.get("id") == request_id),
                None,
            )
            if idx is None:
                return None

            stored = copy.deepcopy(record)
            stored["version"] = check_version(request_id, data["requests"][idx], expected_version)
            # ensure ID doesn't change
            stored["id"] = request_id
            data["requests"][idx] = stored
            self._write_file(data)
            return stored

    def ping(self) -> None:
        with self._lock:
            self._read_file()
