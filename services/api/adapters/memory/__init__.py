"""
In-memory storage adapter.
Same contract as the JSON adapter without touching disk; used for tests
and throwaway demo instances (STORAGE_BACKEND=memory).
"""
import copy
import threading
from typing import Any, Dict, List, Optional

from core.errors import Conflict
from ..base import check_version


class MemoryAdapter:
    def __init__(self, records: Optional[List[Dict[str, Any]]] = None):
        self._lock = threading.RLock()
        # dict keeps insertion order
        self._records: Dict[str, Dict[str, Any]] = {}
        for r in records or []:
            self.insert_request(r)

    def list_requests(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()]

    def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            r = self._records.get(request_id)
            return copy.deepcopy(r) if r is not None else None

    def insert_request(self, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            request_id = record.get("id")
            if request_id in self._records:
                raise Conflict(f"Request {request_id} already exists")
            stored = copy.deepcopy(record)
            stored["version"] = 1
            self._records[request_id] = stored
            return copy.deepcopy(stored)

    def replace_request(
        self,
        request_id: str,
        record: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            current = self._records.get(request_id)
            if current is None:
                return None
            stored = copy.deepcopy(record)
            stored["version"] = check_version(request_id, current, expected_version)
            stored["id"] = request_id
            self._records[request_id] = stored
            return copy.deepcopy(stored)

    def ping(self) -> None:
        return None
