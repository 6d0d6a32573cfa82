# Overview: Domain error taxonomy shared by services, decorators, and routes.

"""
Every failure a service can report maps to one class here. Each class carries
a stable machine-readable ``code`` and the HTTP status the API layer answers
with, so routes never translate errors by hand.

WHY: Clients branch on ``code`` (e.g. NOT_VERIFIED sends the dealer back to the
OTP screen), while ``error`` stays a human-readable message.
"""

from __future__ import annotations


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    http_status = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.default_message)
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": str(self), "code": self.code}
        body.update(self.details)
        return body


class ValidationError(DomainError, ValueError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    http_status = 400
    default_message = "Invalid input"


class DuplicateEntity(DomainError):
    """A uniqueness constraint rejected the write. ``fields`` names the clashing keys."""
    code = "DUPLICATE_ENTITY"
    http_status = 409
    default_message = "Entity already exists"

    def __init__(self, message: str | None = None, *, fields: list[str] | None = None, **details):
        super().__init__(message, fields=list(fields or []), **details)
        self.fields = list(fields or [])


class NotFound(DomainError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Not found"


class InvalidCredentials(DomainError):
    """Unknown identifier, wrong password, or inactive account. Never says which."""
    code = "INVALID_CREDENTIALS"
    http_status = 401
    default_message = "Invalid credentials"


class InvalidToken(DomainError):
    code = "INVALID_TOKEN"
    http_status = 401
    default_message = "Invalid or expired token"


class PermissionDenied(DomainError):
    code = "PERMISSION_DENIED"
    http_status = 403
    default_message = "Permission denied"


class NotApproved(DomainError):
    code = "NOT_APPROVED"
    http_status = 403
    default_message = "Dealer account is not approved"


class NotVerified(DomainError):
    code = "NOT_VERIFIED"
    http_status = 403
    default_message = "Mobile number and email must be verified"


class AlreadyInState(DomainError):
    code = "ALREADY_IN_STATE"
    http_status = 409
    default_message = "Already in requested state"


class StaleState(DomainError):
    """The row's current state no longer permits the requested change."""
    code = "STALE_STATE"
    http_status = 409
    default_message = "Record was changed by another request"


class Expired(DomainError):
    code = "EXPIRED"
    http_status = 400
    default_message = "Code has expired"


class InvalidCode(DomainError):
    code = "INVALID_CODE"
    http_status = 400
    default_message = "Invalid code"


class DeliveryFailed(DomainError):
    code = "DELIVERY_FAILED"
    http_status = 502
    default_message = "Failed to deliver message"


class InternalError(DomainError):
    code = "INTERNAL_ERROR"
    http_status = 500
    default_message = "Internal server error"
