# Overview: Domain error taxonomy shared by services and routes.

"""
Every business failure raised by the service layer is a PosError subclass.

Routes map them to the JSON envelope using `status_code`; anything that is not
a PosError is treated as an unexpected failure (logged, HTTP 500).
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for errors that carry an HTTP status and structured details."""
    status_code = 400
    error_code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PosError, ValueError):
    """400-level input problem (malformed or missing fields)."""
    error_code = "validation_error"


class InvalidReferenceError(PosError):
    """A referenced row (user, branch, customer, product) does not exist or is inactive."""
    error_code = "reference_error"


class InsufficientStockError(PosError):
    """Requested quantity exceeds the available stock at a branch."""
    error_code = "insufficient_stock"


class InvalidStateTransitionError(PosError):
    """Illegal sale status change."""
    status_code = 409
    error_code = "invalid_state_transition"


class NotFoundError(PosError):
    status_code = 404
    error_code = "not_found"


class ConflictError(PosError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409
    error_code = "conflict"


class InternalError(PosError):
    """Unexpected storage failure surfaced by a workflow."""
    status_code = 500
    error_code = "internal_error"


class PermissionDeniedError(PosError):
    """Raised when a user lacks a required capability."""
    status_code = 403
    error_code = "permission_denied"
