from __future__ import annotations

from typing import Any, Dict

from . import Request


def request_from_record(record: Dict[str, Any]) -> Request:
    """
    Convert a raw store record (camelCase dict) into a Request model.
    Rows are coerced to text on the way in.
    """
    return Request.model_validate(record)


def request_to_record(request: Request) -> Dict[str, Any]:
    """
    Convert a Request model into the JSON-shaped dict every adapter stores.
    """
    return request.model_dump(mode="json", by_alias=True)
