# Overview: Domain error taxonomy shared by services and routes.

"""
Marketplace errors.

Services raise these; routes translate them with `error_response()`.
Each error carries the HTTP status it maps to, so a route never has to
know which service failed.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for errors that are safe to show to the client."""

    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(MarketplaceError):
    """400-level input problem with field-level issues."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, issues: list[dict] | None = None):
        super().__init__(message)
        self.issues = issues or []

    def to_dict(self) -> dict:
        return {"error": self.message, "issues": self.issues}


class DuplicateEmail(MarketplaceError):
    status_code = 409
    default_message = "Email already registered"


class InvalidCredentials(MarketplaceError):
    status_code = 401
    default_message = "Invalid email or password"


class Unauthenticated(MarketplaceError):
    status_code = 401
    default_message = "Authentication required"


class InvalidSession(MarketplaceError):
    status_code = 401
    default_message = "Invalid or expired token"


class Forbidden(MarketplaceError):
    status_code = 403
    default_message = "Permission denied"


class NotFound(MarketplaceError):
    status_code = 404
    default_message = "Not found"


class InsufficientStock(MarketplaceError):
    status_code = 409
    default_message = "Insufficient stock"

    def __init__(self, message: str | None = None, *, requested: int | None = None, available: int | None = None):
        super().__init__(message)
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.requested is not None:
            body["requested_quantity"] = self.requested
        if self.available is not None:
            body["available_quantity"] = self.available
        return body


class InvalidTransition(MarketplaceError):
    status_code = 409
    default_message = "Invalid status transition"


class ConflictError(MarketplaceError):
    """409-level business rule conflict (e.g., deleting a product with orders)."""

    status_code = 409
    default_message = "Conflict"


def error_response(exc: MarketplaceError):
    """(body, status) tuple for a Flask view."""
    return exc.to_dict(), exc.status_code
