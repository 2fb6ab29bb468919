"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the records the domain works with and the interfaces
(ports) it requires from infrastructure. Adapters implement these protocols.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol


class VerificationState(str, Enum):
    """
    Verification State Machine states for a signup.

    State Transitions (forward-only):
    - PENDING -> VERIFIED (token/code accepted, account materialized and provisioned)
    - PENDING -> REJECTED (unknown, expired, already verified, or locked)

    Terminal States:
    - VERIFIED: Account exists, pending registration consumed
    - REJECTED: No account created by this attempt

    A provisioning failure is not a transition: the account is rolled back and
    the pending registration stays PENDING so the same token can be retried.
    """

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


@dataclass
class PendingRegistration:
    """A signup awaiting confirmation, keyed by email."""

    email: str
    full_name: str
    password_hash: str
    token: str
    otp_code: str
    expires_at: datetime
    attempt_count: int = 0
    created_at: datetime | None = None


@dataclass
class Account:
    """A confirmed user."""

    id: str
    email: str
    full_name: str
    password_hash: str
    is_verified: bool = False
    is_onboarded: bool = False
    bio: str = ""
    avatar_url: str = ""
    interests: str = ""
    location: str = ""
    friends: list[str] = field(default_factory=list)
    verification_token: str | None = None
    verification_expires_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_expires_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class ProfileUpdate:
    """Allow-listed profile fields accepted by onboarding."""

    full_name: str
    bio: str
    interests: str
    location: str
    avatar_url: str | None = None


@dataclass(frozen=True)
class MailMessage:
    """An outbound email."""

    to: str
    subject: str
    html: str


@dataclass(frozen=True)
class ChatProfile:
    """Remote chat profile for an account."""

    id: str
    name: str
    image: str = ""


class PendingRegistrationRepository(Protocol):
    """Port interface for pending registration persistence."""

    def claim(self, pending: PendingRegistration, now: datetime) -> bool:
        """
        Atomically store a pending registration for its email.

        A record whose expires_at is not after `now` is dead and is replaced.
        A live record for the same email is left untouched.

        Returns:
            True if stored, False if a live pending registration holds the email
        """
        ...

    def find_by_token(self, token: str) -> PendingRegistration | None: ...

    def find_by_email(self, email: str) -> PendingRegistration | None: ...

    def reissue(self, email: str, token: str, otp_code: str, expires_at: datetime, now: datetime) -> bool:
        """
        Replace token, code and expiry in place and reset the attempt counter.

        Returns False when no live (unexpired at `now`) pending registration exists.
        """
        ...

    def record_failed_attempt(self, email: str) -> int:
        """Increment the wrong-code counter and return the new value."""
        ...

    def delete(self, email: str) -> None: ...

    def purge_expired(self, now: datetime) -> int:
        """Delete every record whose expires_at is not after `now`. Returns the count."""
        ...


class AccountRepository(Protocol):
    """Port interface for account persistence."""

    def create(self, account: Account) -> bool:
        """
        Insert a new account.

        Returns:
            True if inserted, False if the email is already taken
        """
        ...

    def delete(self, account_id: str) -> None: ...

    def find_by_id(self, account_id: str) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_verification_token(self, token: str) -> Account | None: ...

    def find_by_reset_token(self, token: str) -> Account | None: ...

    def set_verification_token(self, account_id: str, token: str, expires_at: datetime) -> None: ...

    def mark_verified(self, account_id: str) -> None:
        """Set is_verified and clear the account-scoped verification token."""
        ...

    def set_reset_token(self, account_id: str, token: str, expires_at: datetime) -> None: ...

    def clear_reset_token(self, account_id: str) -> None: ...

    def update_password(self, account_id: str, password_hash: str) -> None:
        """Replace the password hash and clear the reset token fields."""
        ...

    def update_profile(self, account_id: str, update: ProfileUpdate) -> Account | None:
        """Apply onboarding fields, set is_onboarded, return the updated account."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send(self, message: MailMessage) -> None:
        """
        Deliver a message.

        Raises:
            DeliveryError: classified as auth, connection, unconfigured or generic
        """
        ...


class ChatProvisioner(Protocol):
    """Port interface for the external chat service."""

    def upsert_user(self, profile: ChatProfile) -> None:
        """
        Create or update the remote chat profile.

        Raises:
            ProvisioningError: if the remote service rejects or cannot be reached
        """
        ...
