"""Domain errors raised by the portal services.

Every error carries a stable machine-readable ``code``, the HTTP status the
API layer answers with, and a human message safe to show to the client.
"""
from typing import Optional


class PortalError(Exception):
    """Base exception for all portal service errors."""

    code = "internal_error"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(PortalError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class InviteExpired(ValidationError):
    code = "invite_expired"
    default_message = "Invitation has expired"


class EmailMismatch(ValidationError):
    code = "email_mismatch"
    default_message = "Invitation is bound to a different email address"


class Unauthorized(PortalError):
    code = "unauthorized"
    status_code = 401
    default_message = "Not authenticated"


class InvalidCredentials(Unauthorized):
    code = "invalid_credentials"
    default_message = "Invalid email or password"


class InvalidToken(Unauthorized):
    code = "invalid_token"
    default_message = "Invalid or expired token"


class AccountNotActive(Unauthorized):
    code = "account_not_active"
    default_message = "Account is not active"


class Forbidden(PortalError):
    code = "forbidden"
    status_code = 403
    default_message = "Admin access required"


class NotFound(PortalError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class Conflict(PortalError):
    code = "conflict"
    status_code = 409
    default_message = "Conflict"


class InviteAlreadyUsed(Conflict):
    code = "invite_already_used"
    default_message = "Invitation has already been used"


class InvalidState(PortalError):
    code = "invalid_state"
    status_code = 409
    default_message = "Operation not allowed in the current state"


class InternalError(PortalError):
    """Store or collaborator failure. The message never includes internals."""


class UpstreamError(InternalError):
    code = "upstream_error"
    status_code = 502
    default_message = "Upstream service error"


class ServiceUnavailable(InternalError):
    code = "service_unavailable"
    status_code = 503
    default_message = "Service not configured"
