"""
Domain exceptions - Semantic error types for signup and authentication.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Each exception carries a stable, user-facing message; the API layer
decides the HTTP status code.
"""

from enum import Enum


class AuthFlowError(Exception):
    """Base class for signup and authentication domain errors."""

    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthFlowError):
    """Missing or malformed input."""

    default_message = "Please fill all fields"

    def __init__(
        self,
        message: str | None = None,
        errors: list[str] | None = None,
        missing_fields: list[str] | None = None,
    ) -> None:
        self.errors = errors or []
        self.missing_fields = missing_fields or []
        if message is None and self.errors:
            message = self.errors[0]
        super().__init__(message)


class ConflictError(AuthFlowError):
    """Email already held by an account or a live pending registration."""

    default_message = "Email already exists"


class AuthError(AuthFlowError):
    """Bad credentials, unverified account, or rejected session."""

    default_message = "Invalid email or password"

    def __init__(self, message: str | None = None, is_verified: bool | None = None) -> None:
        self.is_verified = is_verified
        super().__init__(message)


class NotFoundError(AuthFlowError):
    """Referenced account does not exist."""

    default_message = "User not found"


class RejectReason(str, Enum):
    """Why a verification or reset token was rejected."""

    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_VERIFIED = "already_verified"
    LOCKED = "locked"


_TOKEN_MESSAGES = {
    RejectReason.INVALID: "Invalid verification token",
    RejectReason.EXPIRED: "Verification token has expired",
    RejectReason.ALREADY_VERIFIED: "Email already verified",
    RejectReason.LOCKED: "Too many invalid attempts. Please sign up again.",
}


class TokenError(AuthFlowError):
    """Verification/reset token is unknown, expired, or already consumed."""

    def __init__(self, reason: RejectReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or _TOKEN_MESSAGES[reason])


class DeliveryFailure(str, Enum):
    """Classification of mail dispatch failures."""

    AUTH = "auth"
    CONNECTION = "connection"
    UNCONFIGURED = "unconfigured"
    GENERIC = "generic"


_DELIVERY_MESSAGES = {
    DeliveryFailure.AUTH: "Email authentication failed. Please check email configuration.",
    DeliveryFailure.CONNECTION: "Could not connect to email server. Please try again later.",
    DeliveryFailure.UNCONFIGURED: "Email service is not configured. Please contact support.",
    DeliveryFailure.GENERIC: "Failed to send verification email. Please try again.",
}


class DeliveryError(AuthFlowError):
    """Mail dispatch failed."""

    def __init__(self, reason: DeliveryFailure, detail: str | None = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(_DELIVERY_MESSAGES[reason])


class ProvisioningError(AuthFlowError):
    """Chat profile could not be created for a new account."""

    default_message = "Failed to create user profile. Please try again."


class InternalError(AuthFlowError):
    """Unexpected failure."""
