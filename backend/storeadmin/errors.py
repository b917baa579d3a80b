# Overview: Error taxonomy shared by services and routes.

"""
Store error kinds.

Every failure a mutating operation can report maps to exactly one of these.
Routes render them as {"success": false, "error": kind, "message": ...}
with the matching HTTP status, so callers can tell a retryable conflict apart
from bad input without parsing messages.
"""

from __future__ import annotations

from flask import jsonify


class StoreError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "error"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self):
        body = {
            "success": False,
            "error": self.kind,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return jsonify(body), self.http_status


class ValidationError(StoreError):
    """400-level input problem. Never retried."""

    kind = "validation_error"
    http_status = 400


class NotFoundError(StoreError):
    """Referenced product/order/stock-in order/party does not exist."""

    kind = "not_found"
    http_status = 404


class InvalidTransitionError(StoreError):
    """Status change not permitted from the current state."""

    kind = "invalid_transition"
    http_status = 409


class ConflictError(StoreError):
    """
    409-level business conflict: insufficient stock, a deleted product,
    or a concurrent write that won the race. Callers may retry with fresh data.
    """

    kind = "conflict"
    http_status = 409


class StorageError(StoreError):
    """Underlying database failure. Transient; nothing was committed."""

    kind = "storage_error"
    http_status = 503
