"""
Registration domain service - Verification State Machine implementation.

This module contains the core business logic for signing up, implementing
a pending-registration workflow where no account exists until the owner of
the email address proves it.

Verification State Machine (Forward-Only Transitions)
=====================================================

States:
- PENDING: Pending registration stored, notification sent, awaiting confirmation
- VERIFIED: Terminal. Account created, chat profile provisioned, pending record consumed
- REJECTED: Terminal. Token unknown, expired, already verified, or code locked

Valid Transitions:
    PENDING -> VERIFIED   (token or code accepted)
    PENDING -> REJECTED   (expired: pending record purged)
    PENDING -> REJECTED   (account already exists: pending record purged)
    PENDING -> REJECTED   (too many wrong codes: pending record purged)

Compensating actions:
- Notification dispatch fails during signup -> pending record deleted
- Chat provisioning fails during verification -> new account deleted,
  pending record kept so the same token can be retried until it expires
- Any chat provisioning error counts as a provisioning failure
- A confirmation that loses a race to create the account leaves the
  pending record alone
- Resend never revives an expired pending record

Confirmation channels:
Every pending registration carries one secret in two forms, a long link token
and a 6-digit code, sharing one expiry. Both lead to the same promotion step.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from uuid import uuid4

from .credentials import hash_password, normalize_email, validate_signup
from .exceptions import (
    ConflictError,
    DeliveryError,
    NotFoundError,
    ProvisioningError,
    RejectReason,
    TokenError,
    ValidationError,
)
from .notifications import verification_link, verification_message
from .ports import (
    Account,
    AccountRepository,
    ChatProfile,
    ChatProvisioner,
    EmailSender,
    PendingRegistration,
    PendingRegistrationRepository,
    VerificationState,
)
from .sessions import SessionIssuer
from .tokens import is_expired, issue_token, issue_verification, tokens_match, utcnow

logger = logging.getLogger(__name__)

INVALID_CODE = "Invalid verification code"
ALREADY_VERIFIED_RESEND = "Email is already verified"


@dataclass
class Verification:
    """Outcome of a successful confirmation."""

    state: VerificationState
    account: Account
    session_token: str


@dataclass
class RegistrationService:
    """
    Domain service for signup and email verification.

    Orchestrates the registration flow: validation, email normalization,
    password hashing, token issuance, claim persistence and notification,
    then confirmation and account materialization.
    """

    pending: PendingRegistrationRepository
    accounts: AccountRepository
    email_sender: EmailSender
    chat: ChatProvisioner
    sessions: SessionIssuer
    frontend_url: str = "http://localhost:5173"
    verification_ttl: timedelta = timedelta(minutes=15)
    otp_max_attempts: int = 5
    bcrypt_cost: int = 10
    avatar_url_template: str = "https://avatar.iran.liara.run/public/{n}.png"
    clock: Callable[[], datetime] = field(default=utcnow)

    def register(self, full_name: str, email: str, password: str) -> str:
        """
        Start a signup by storing a pending registration and emailing it.

        Args:
            full_name: Display name
            email: User's email address (will be normalized)
            password: User's password (hashed before storage)

        Returns:
            Normalized email address

        Raises:
            ValidationError: If any field is missing or malformed
            ConflictError: If an account or a live pending registration holds the email
            (a token collision with another email is retried once with fresh secrets)
            DeliveryError: If the notification could not be sent (nothing is kept)
        """
        errors = validate_signup(full_name, email, password)
        if errors:
            raise ValidationError(errors=errors)

        normalized_email = normalize_email(email)
        if self.accounts.find_by_email(normalized_email) is not None:
            raise ConflictError()

        now = self.clock()
        issued = issue_verification(self.verification_ttl, now)
        pending = PendingRegistration(
            email=normalized_email,
            full_name=full_name.strip(),
            password_hash=hash_password(password, self.bcrypt_cost),
            token=issued.token,
            otp_code=issued.otp_code,
            expires_at=issued.expires_at,
            created_at=now,
        )
        if not self.pending.claim(pending, now):
            if self._live_pending(normalized_email, now):
                raise ConflictError()
            # Token collided with another email's pending row; draw new secrets once
            logger.warning("Pending registration token collision for %s, reissuing", normalized_email)
            issued = issue_verification(self.verification_ttl, now)
            pending = replace(pending, token=issued.token, otp_code=issued.otp_code, expires_at=issued.expires_at)
            if not self.pending.claim(pending, now):
                raise ConflictError()
        logger.info("Pending registration created for %s", normalized_email)

        try:
            self._send_verification(pending.email, pending.token, pending.otp_code, pending.full_name)
        except DeliveryError as e:
            logger.warning(
                "Verification email to %s failed (%s), removing pending registration",
                normalized_email,
                e.reason.value,
            )
            self.pending.delete(normalized_email)
            raise
        return normalized_email

    def verify_email(self, token: str) -> Verification:
        """
        Confirm a signup with the link token.

        Tokens issued to existing unverified accounts (login, resend) are
        accepted here too.

        Raises:
            TokenError: invalid, expired, or already verified
            ProvisioningError: chat profile creation failed; retry is possible
        """
        pending = self.pending.find_by_token(token)
        if pending is None:
            account = self.accounts.find_by_verification_token(token)
            if account is None:
                raise TokenError(RejectReason.INVALID)
            return self._verify_account(account)
        return self._promote(pending)

    def verify_otp(self, email: str, code: str) -> Verification:
        """
        Confirm a signup with the 6-digit code.

        Every wrong code counts; reaching otp_max_attempts drops the pending
        registration and the user has to sign up again.
        """
        normalized_email = normalize_email(email or "")
        pending = self.pending.find_by_email(normalized_email)
        if pending is None:
            raise TokenError(RejectReason.INVALID, INVALID_CODE)

        if is_expired(pending.expires_at, self.clock()):
            self.pending.delete(normalized_email)
            raise TokenError(RejectReason.EXPIRED)

        if pending.attempt_count >= self.otp_max_attempts:
            self.pending.delete(normalized_email)
            raise TokenError(RejectReason.LOCKED)

        if not tokens_match(pending.otp_code, (code or "").strip()):
            attempts = self.pending.record_failed_attempt(normalized_email)
            if attempts >= self.otp_max_attempts:
                logger.warning("Too many wrong codes for %s, dropping pending registration", normalized_email)
                self.pending.delete(normalized_email)
                raise TokenError(RejectReason.LOCKED)
            raise TokenError(RejectReason.INVALID, INVALID_CODE)

        return self._promote(pending)

    def resend_verification(self, email: str) -> None:
        """
        Issue a fresh verification token and send it again.

        Raises:
            TokenError: The account is already verified
            NotFoundError: No account or pending registration for the email
            DeliveryError: The notification could not be sent
        """
        normalized_email = normalize_email(email or "")
        account = self.accounts.find_by_email(normalized_email)
        if account is not None:
            if account.is_verified:
                raise TokenError(RejectReason.ALREADY_VERIFIED, ALREADY_VERIFIED_RESEND)
            self.reissue_account_verification(account)
            return

        now = self.clock()
        pending = self.pending.find_by_email(normalized_email)
        if pending is None:
            raise NotFoundError()
        if is_expired(pending.expires_at, now):
            # Dead signups are never revived
            self.pending.delete(normalized_email)
            raise NotFoundError()

        issued = issue_verification(self.verification_ttl, now)
        if not self.pending.reissue(normalized_email, issued.token, issued.otp_code, issued.expires_at, now):
            raise NotFoundError()
        logger.info("Verification token reissued for pending registration %s", normalized_email)
        self._send_verification(normalized_email, issued.token, issued.otp_code, pending.full_name)

    def reissue_account_verification(self, account: Account) -> None:
        """Issue an account-scoped verification token and send it."""
        issued = issue_token(self.verification_ttl, self.clock())
        self.accounts.set_verification_token(account.id, issued.token, issued.expires_at)
        logger.info("Verification token reissued for account %s", account.id)
        self._send_verification(account.email, issued.token, None, account.full_name)

    def purge_expired(self) -> int:
        """Delete dead pending registrations. Returns the number removed."""
        removed = self.pending.purge_expired(self.clock())
        if removed:
            logger.info("Purged %d expired pending registration(s)", removed)
        return removed

    def _promote(self, pending: PendingRegistration) -> Verification:
        """Turn a pending registration into a verified, provisioned account."""
        if is_expired(pending.expires_at, self.clock()):
            self.pending.delete(pending.email)
            raise TokenError(RejectReason.EXPIRED)

        if self.accounts.find_by_email(pending.email) is not None:
            self.pending.delete(pending.email)
            raise TokenError(RejectReason.ALREADY_VERIFIED)

        account = Account(
            id=str(uuid4()),
            email=pending.email,
            full_name=pending.full_name,
            password_hash=pending.password_hash,
            is_verified=True,
            is_onboarded=False,
            avatar_url=self._default_avatar(),
            created_at=self.clock(),
        )
        if not self.accounts.create(account):
            # Lost a race with a concurrent confirmation; the pending record stays with the winner
            raise TokenError(RejectReason.ALREADY_VERIFIED)

        try:
            self._provision(account)
        except ProvisioningError:
            logger.warning("Chat provisioning failed for %s, rolling back account", account.email)
            self.accounts.delete(account.id)
            raise

        self.pending.delete(pending.email)
        logger.info("Account %s verified for %s", account.id, account.email)
        return Verification(
            state=VerificationState.VERIFIED,
            account=account,
            session_token=self.sessions.issue(account.id),
        )

    def _verify_account(self, account: Account) -> Verification:
        if account.is_verified:
            self.accounts.mark_verified(account.id)
            raise TokenError(RejectReason.ALREADY_VERIFIED)
        if is_expired(account.verification_expires_at, self.clock()):
            raise TokenError(RejectReason.EXPIRED)

        self._provision(account)
        self.accounts.mark_verified(account.id)
        account.is_verified = True
        account.verification_token = None
        account.verification_expires_at = None
        logger.info("Account %s verified for %s", account.id, account.email)
        return Verification(
            state=VerificationState.VERIFIED,
            account=account,
            session_token=self.sessions.issue(account.id),
        )

    def _provision(self, account: Account) -> None:
        """Create the chat profile. Any failure surfaces as ProvisioningError."""
        try:
            self.chat.upsert_user(ChatProfile(id=account.id, name=account.full_name, image=account.avatar_url))
        except ProvisioningError:
            raise
        except Exception as e:
            logger.exception("Unexpected chat provisioning error for %s", account.id)
            raise ProvisioningError() from e

    def _live_pending(self, email: str, now: datetime) -> bool:
        existing = self.pending.find_by_email(email)
        return existing is not None and not is_expired(existing.expires_at, now)

    def _send_verification(self, email: str, token: str, code: str | None, name: str | None) -> None:
        message = verification_message(
            to=email,
            link=verification_link(self.frontend_url, token),
            minutes=int(self.verification_ttl.total_seconds() // 60),
            code=code,
            name=name,
        )
        self.email_sender.send(message)

    def _default_avatar(self) -> str:
        return self.avatar_url_template.format(n=secrets.randbelow(100) + 1)
