"""
Custom exception hierarchy for structured error handling.

WHY: Every failure the authorization core surfaces to a caller is one of
a small set of typed errors, each with a fixed HTTP status so the admin
API renders them consistently:

1. AuthenticationRequired - no principal could be resolved (401)
2. PermissionDenied - explicit denial for admin tooling (403)
3. InvariantViolation - a tenancy invariant would break (422)
4. ConflictError - duplicate membership / pending invitation (409)

The Resource Guard itself never raises: a denied read is an empty result
and a denied write is a rejected (None / False) outcome. PermissionDenied
is only raised by platform-admin and admin-only tooling operations.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    All custom exceptions inherit from this class so a single FastAPI
    handler can render them.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization
# ============================================================================


class AuthenticationRequired(AppException):
    """
    Raised when no principal could be resolved for the request.

    Fatal to the request: without a principal no authorization question
    can be asked.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication required"


class TokenExpiredError(AuthenticationRequired):
    """Identity token has expired. HTTP Status: 401 Unauthorized"""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationRequired):
    """Identity token is malformed, unsigned or missing the principal claim."""

    default_message = "Token is invalid"


class PermissionDenied(AppException):
    """
    Raised by admin tooling when the acting principal lacks the required grant.

    WHY: Soft-delete, restore, platform provisioning and the security
    read surfaces are explicit administrative calls; their callers need a
    typed refusal. Ordinary resource access goes through the Resource
    Guard instead, which reports denial as an absent result.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


# ============================================================================
# Validation & Resources
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist or is not visible.

    WHY: The API renders "denied" and "absent" identically so callers
    cannot test for the existence of other tenants' data.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppException):
    """
    Raised on duplicate membership or duplicate pending invitation.

    A validation outcome the caller can recover from, not a system fault.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Resource already exists"


# ============================================================================
# Tenancy Invariants
# ============================================================================


class InvariantViolation(AppException):
    """
    Raised when an operation would break a tenancy invariant.

    Covers removal or demotion of an organization's last admin, a
    principal changing their own role, an empty organization name,
    provisioning a second platform admin and accepting an unusable
    invitation. Always aborts the operation.

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Invariant violation"


class AuditLogImmutableError(AppException):
    """
    Raised when attempting to modify or delete an audit event.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "Audit events are immutable"


class DatabaseError(AppException):
    """
    Raised when the store is unavailable.

    HTTP Status: 503 Service Unavailable
    """

    status_code = 503
    default_message = "Database unavailable"
