"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Fields are camelCase on the wire. Request fields are optional at this layer;
the domain reports missing or malformed values with a 400 and a message.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.domain.ports import Account


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(ApiModel):
    """Request model for signup."""

    full_name: str | None = None
    email: str | None = None
    password: str | None = None


class VerifyOtpRequest(ApiModel):
    email: str | None = None
    otp: str | None = None


class LoginRequest(ApiModel):
    email: str | None = None
    password: str | None = None


class EmailRequest(ApiModel):
    """Request model for forgot-password and resend-verification."""

    email: str | None = None


class ResetPasswordRequest(ApiModel):
    password: str | None = None


class OnboardingRequest(ApiModel):
    """Allow-listed profile fields. Anything else in the body is ignored."""

    full_name: str | None = None
    bio: str | None = None
    interests: str | None = None
    location: str | None = None
    avatar_url: str | None = None


class AccountResponse(ApiModel):
    """Public projection of an account. Never carries hashes or tokens."""

    id: str
    email: str
    full_name: str
    bio: str
    avatar_url: str
    interests: str
    location: str
    is_verified: bool
    is_onboarded: bool
    friends: list[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            full_name=account.full_name,
            bio=account.bio,
            avatar_url=account.avatar_url,
            interests=account.interests,
            location=account.location,
            is_verified=account.is_verified,
            is_onboarded=account.is_onboarded,
            friends=list(account.friends),
        )


class MessageResponse(ApiModel):
    success: bool = True
    message: str


class SignupResponse(MessageResponse):
    """Response model for a started signup."""

    email: str
    expires_in_seconds: int


class AccountEnvelope(MessageResponse):
    """Response model carrying the current account."""

    user: AccountResponse


class ErrorResponse(BaseModel):
    """Standard error response model."""

    message: str
