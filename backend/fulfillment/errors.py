# Overview: Typed operational errors shared by services and routes.

"""
Error taxonomy

Every business-rule violation is raised as a FulfillmentError subclass that
carries the HTTP status the route layer answers with. Anything else escaping
a service is unexpected: it is logged server-side and surfaced as Internal
with a generic message.
"""

from __future__ import annotations


class FulfillmentError(Exception):
    """Base class for operational (expected) failures."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": str(self)}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequest(FulfillmentError):
    """400: malformed input or a request the current state cannot accept."""

    status_code = 400


class Unauthorized(FulfillmentError):
    """401: missing, invalid or expired credentials."""

    status_code = 401


class LimitExceeded(FulfillmentError):
    """403: tenant plan cap reached (products, warehouses)."""

    status_code = 403


class NotFound(FulfillmentError):
    """404: tenant-scoped entity does not exist."""

    status_code = 404


class Conflict(FulfillmentError):
    """409: insufficient stock, duplicate unique value."""

    status_code = 409


class Internal(FulfillmentError):
    """500: storage retries exhausted or an unexpected exception."""

    status_code = 500
