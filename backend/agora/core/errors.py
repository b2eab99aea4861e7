"""Error Hierarchy — typed, categorized exceptions for all Agora failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are terminal for the request; ConflictError is
      the only retryable one
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with AgoraError base: the dispatcher propagates these
      unchanged and the FastAPI global handler catches all of them
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - Expired / consumed / wrong OTP codes are three distinct classes so callers
      never have to parse messages
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone

from agora.core.domain_types import DenialReason


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    AUTHENTICATION = "authentication"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    DEPENDENCY = "dependency"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_kind: str | None = None
    user_id: str | None = None
    entity_kind: str | None = None
    entity_id: str | None = None
    debug_info: dict[str, Any] | None = None


class AgoraError(Exception):
    """Base exception for all Agora errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "request_kind": self.context.request_kind,
                    "entity_kind": self.context.entity_kind,
                    "entity_id": self.context.entity_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InputValidationError(AgoraError):
    """Malformed input, caught before any state machine runs."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.field = field

    def to_response(self) -> dict:
        response = super().to_response()
        if self.field:
            response["error"]["field"] = self.field
        return response


class ResourceNotFoundError(AgoraError):
    """Requested entity does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.entity_kind = ctx.entity_kind or resource_type
        ctx.entity_id = ctx.entity_id or resource_id
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.WARNING, ctx, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class AuthorizationDeniedError(AgoraError):
    """Principal may not perform the action. Always carries a reason tag."""
    def __init__(
        self, reason: DenialReason, message: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message or f"Action denied: {reason.value}",
            "AUTHORIZATION_DENIED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )
        self.reason = reason

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["reason"] = self.reason.value
        return response


class InvalidTransitionError(AgoraError):
    """A state machine rejected the requested move."""
    def __init__(
        self, entity: str, current: str | None, event: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Cannot apply '{event}' to {entity} in state '{current or 'none'}'",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 409,
        )
        self.entity = entity
        self.current = current
        self.event = event


class OtpInvalidError(AgoraError):
    """Wrong code, or no code pending for the purpose."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "The verification code is not valid.",
            "OTP_INVALID", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 400,
        )


class OtpExpiredError(AgoraError):
    """Code existed but its lifetime (or attempt budget) is exhausted."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "The verification code has expired. Request a new one.",
            "OTP_EXPIRED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 400,
        )


class OtpAlreadyUsedError(AgoraError):
    """Code was already consumed by an earlier successful verification."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "The verification code has already been used.",
            "OTP_ALREADY_USED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 400,
        )


class UnknownRequestError(AgoraError):
    """No handler registered for the request type."""
    def __init__(self, request_kind: str, context: ErrorContext | None = None):
        super().__init__(
            f"No handler registered for request '{request_kind}'",
            "UNKNOWN_REQUEST", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.request_kind = request_kind


# ─── Concurrency & Infrastructure Errors ────────────────────────

class ConflictError(AgoraError):
    """Concurrent modification detected (stale version on save)."""

    retryable = True

    def __init__(
        self, entity_kind: str, entity_id: str,
        expected_version: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.entity_kind = entity_kind
        ctx.entity_id = entity_id
        super().__init__(
            f"{entity_kind} '{entity_id}' was modified concurrently",
            "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.expected_version = expected_version


class DependencyFailureError(AgoraError):
    """External collaborator (repository, notification sink) unavailable."""
    def __init__(
        self, dependency: str, operation: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{dependency} {operation} failed",
            "DEPENDENCY_FAILURE", ErrorCategory.DEPENDENCY,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.dependency = dependency
        self.operation = operation


class DispatchConfigurationError(AgoraError):
    """Handler registry is inconsistent — raised at startup, never per request."""
    def __init__(self, message: str):
        super().__init__(
            message, "DISPATCH_CONFIGURATION", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, None, 500,
        )
