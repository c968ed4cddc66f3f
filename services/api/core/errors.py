"""
Typed failures raised by the store and the request service.

Routers never build HTTP errors for these by hand: main.py registers one
exception handler per class and maps it to a status code.
"""
from __future__ import annotations


class ServiceError(Exception):
    """Base class for all expected failures."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(ServiceError):
    """Unknown request id."""

    status_code = 404


class Conflict(ServiceError):
    """Duplicate id on create, or a stale version on replace."""

    status_code = 409


class ValidationError(ServiceError):
    """Malformed submission / column / row payload."""

    status_code = 422


class NotificationFailure(ServiceError):
    """
    Transport-level email failure.

    Only used inside the notification dispatcher to drive retries;
    it is converted into a DeliveryResult before reaching any caller.
    """

    status_code = 502
