"""
Storage adapter interface for the data request workspace.
Defines the contract that all storage backends must implement.
"""

from typing import Protocol, List, Dict, Any, Optional

from core.errors import Conflict


class StorageAdapter(Protocol):
    """
    Protocol defining the interface for all request stores.

    This allows swapping between JSON file, SQLite/SQL, Google Sheets and
    in-memory storage without changing the service or router code.

    NOTE:
    - Records are JSON-shaped dicts with camelCase keys (see models.converters).
    - Every write replaces the whole record; there are no partial-field updates.
    - Each record carries an integer `version` owned by the adapter.
    """

    def list_requests(self) -> List[Dict[str, Any]]:
        """
        Return all request records in insertion order.
        """
        ...

    def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a request record by id.

        Returns:
            Record dict, or None if not found.
        """
        ...

    def insert_request(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new record. Sets `version` to 1.

        Raises:
            Conflict: if a record with the same `id` already exists.

        Returns:
            The stored record.
        """
        ...

    def replace_request(
        self,
        request_id: str,
        record: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Replace the whole record stored under `request_id`.

        The stored `id` is always `request_id`, whatever the payload says.
        When `expected_version` is given it must match the stored version.

        Raises:
            Conflict: on version mismatch.

        Returns:
            The stored record (with `version` bumped), or None if not found.
        """
        ...

    def ping(self) -> None:
        """
        Cheap connectivity probe used by /readyz. Raises on failure.
        """
        ...


def check_version(request_id: str, stored: Dict[str, Any], expected_version: Optional[int]) -> int:
    """
    Shared optimistic-concurrency rule for adapters without native support.

    Returns:
        The version the replaced record must be written with.

    Raises:
        Conflict: if `expected_version` is set and differs from the stored one.
    """
    current = int(stored.get("version") or 0)
    if expected_version is not None and int(expected_version) != current:
        raise Conflict(
            f"Request {request_id} was modified concurrently "
            f"(expected version {expected_version}, found {current})"
        )
    return current + 1
