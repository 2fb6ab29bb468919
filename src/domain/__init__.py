"""
Domain layer - Pure business logic with no web framework or database imports.

This package contains the signup verification state machine, login and
password reset flows. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .authentication import AuthenticationService, SessionGrant
from .exceptions import (
    AuthError,
    AuthFlowError,
    ConflictError,
    DeliveryError,
    DeliveryFailure,
    InternalError,
    NotFoundError,
    ProvisioningError,
    RejectReason,
    TokenError,
    ValidationError,
)
from .ports import (
    Account,
    AccountRepository,
    ChatProfile,
    ChatProvisioner,
    EmailSender,
    MailMessage,
    PendingRegistration,
    PendingRegistrationRepository,
    ProfileUpdate,
    VerificationState,
)
from .registration import RegistrationService, Verification
from .sessions import SessionIssuer

__all__ = [
    "Account",
    "AccountRepository",
    "AuthError",
    "AuthFlowError",
    "AuthenticationService",
    "ChatProfile",
    "ChatProvisioner",
    "ConflictError",
    "DeliveryError",
    "DeliveryFailure",
    "EmailSender",
    "InternalError",
    "MailMessage",
    "NotFoundError",
    "PendingRegistration",
    "PendingRegistrationRepository",
    "ProfileUpdate",
    "ProvisioningError",
    "RegistrationService",
    "RejectReason",
    "SessionGrant",
    "SessionIssuer",
    "TokenError",
    "ValidationError",
    "Verification",
    "VerificationState",
]
