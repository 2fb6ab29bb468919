"""
Authentication domain service - login, password reset and onboarding.

Login never distinguishes an unknown email from a wrong password. An
unverified account gets a fresh verification email on every login attempt
and is refused a session until it confirms.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .credentials import check_password, hash_password, normalize_email, password_error
from .exceptions import (
    AuthError,
    DeliveryError,
    InternalError,
    NotFoundError,
    ProvisioningError,
    RejectReason,
    TokenError,
    ValidationError,
)
from .notifications import reset_link, reset_message
from .ports import (
    Account,
    AccountRepository,
    ChatProfile,
    ChatProvisioner,
    EmailSender,
    ProfileUpdate,
)
from .registration import RegistrationService
from .sessions import SessionIssuer
from .tokens import is_expired, issue_token, utcnow

logger = logging.getLogger(__name__)

VERIFY_FIRST = "Please verify your email before logging in"
INVALID_RESET = "Invalid or expired reset token"

ONBOARDING_FIELDS = ("fullName", "bio", "interests", "location")


@dataclass
class SessionGrant:
    """An authenticated account and its session token."""

    account: Account
    session_token: str


@dataclass
class AuthenticationService:
    """Domain service for credentials and profile completion."""

    accounts: AccountRepository
    email_sender: EmailSender
    chat: ChatProvisioner
    sessions: SessionIssuer
    registration: RegistrationService
    frontend_url: str = "http://localhost:5173"
    reset_ttl: timedelta = timedelta(hours=1)
    bcrypt_cost: int = 10
    clock: Callable[[], datetime] = field(default=utcnow)

    def login(self, email: str, password: str) -> SessionGrant:
        """
        Authenticate with email and password.

        Raises:
            ValidationError: email or password missing
            AuthError: unknown email, wrong password, or unverified account
        """
        if not email or not password:
            raise ValidationError()

        account = self.accounts.find_by_email(normalize_email(email))
        password_valid = check_password(password, account.password_hash if account else None)
        if account is None or not password_valid:
            raise AuthError()

        if not account.is_verified:
            try:
                self.registration.reissue_account_verification(account)
            except DeliveryError as e:
                logger.warning("Verification email for unverified login %s failed: %s", account.email, e.reason.value)
            raise AuthError(VERIFY_FIRST, is_verified=False)

        logger.info("Account %s logged in", account.id)
        return SessionGrant(account=account, session_token=self.sessions.issue(account.id))

    def forgot_password(self, email: str) -> None:
        """
        Issue a reset token (overwriting any earlier one) and email the link.

        Raises:
            NotFoundError: no account for the email
            InternalError: the email could not be sent
        """
        account = self.accounts.find_by_email(normalize_email(email or ""))
        if account is None:
            raise NotFoundError()

        issued = issue_token(self.reset_ttl, self.clock())
        self.accounts.set_reset_token(account.id, issued.token, issued.expires_at)
        message = reset_message(
            to=account.email,
            link=reset_link(self.frontend_url, issued.token),
            minutes=int(self.reset_ttl.total_seconds() // 60),
        )
        try:
            self.email_sender.send(message)
        except DeliveryError as e:
            logger.error("Password reset email to %s failed: %s", account.email, e.reason.value)
            raise InternalError() from e
        logger.info("Password reset token issued for account %s", account.id)

    def reset_password(self, token: str, password: str) -> None:
        """
        Replace the password using a reset token. The token works once.

        Raises:
            ValidationError: new password too short
            TokenError: token unknown or expired
        """
        error = password_error(password)
        if error:
            raise ValidationError(errors=[error])

        account = self.accounts.find_by_reset_token(token)
        if account is None:
            raise TokenError(RejectReason.INVALID, INVALID_RESET)
        if is_expired(account.password_reset_expires_at, self.clock()):
            self.accounts.clear_reset_token(account.id)
            raise TokenError(RejectReason.EXPIRED, INVALID_RESET)

        self.accounts.update_password(account.id, hash_password(password, self.bcrypt_cost))
        logger.info("Password reset for account %s", account.id)

    def onboard(
        self,
        account_id: str,
        full_name: str | None,
        bio: str | None,
        interests: str | None,
        location: str | None,
        avatar_url: str | None = None,
    ) -> Account:
        """
        Complete the profile. Only allow-listed fields are written.

        Raises:
            ValidationError: any required field missing (missing_fields lists them)
            NotFoundError: the account no longer exists
        """
        values = dict(zip(ONBOARDING_FIELDS, (full_name, bio, interests, location)))
        missing = [name for name, value in values.items() if not value or not str(value).strip()]
        if missing:
            raise ValidationError(missing_fields=missing)

        update = ProfileUpdate(
            full_name=full_name.strip(),
            bio=bio.strip(),
            interests=interests.strip(),
            location=location.strip(),
            avatar_url=avatar_url.strip() if avatar_url else None,
        )
        account = self.accounts.update_profile(account_id, update)
        if account is None:
            raise NotFoundError()

        try:
            self.chat.upsert_user(ChatProfile(id=account.id, name=account.full_name, image=account.avatar_url))
        except ProvisioningError as e:
            logger.warning("Chat profile update for %s failed: %s", account.id, e.message)
        return account

    def get_account(self, account_id: str) -> Account | None:
        return self.accounts.find_by_id(account_id)
