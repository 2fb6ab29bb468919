"""
Unit tests for RegistrationService domain logic.

Tests domain logic with in-memory and mocked ports to verify:
- Input validation and email normalization
- Pending registration uniqueness and expiry reclamation
- Rollback when the verification email cannot be sent
- Verification state machine (link and code channels)
- Rollback when chat provisioning fails
- Resend and expiry sweep
"""

import re
from datetime import timedelta
from unittest.mock import Mock

import bcrypt
import pytest

from src.domain.exceptions import (
    ConflictError,
    DeliveryError,
    DeliveryFailure,
    NotFoundError,
    ProvisioningError,
    RejectReason,
    TokenError,
    ValidationError,
)
from src.domain.ports import Account, PendingRegistration, VerificationState
from src.domain.registration import RegistrationService
from src.domain.sessions import SessionIssuer
from src.domain.tokens import IssuedVerification


def make_account(**overrides) -> Account:
    values = dict(
        id="0b6f3a52-8c1e-4f4e-9d77-2f3c1a0e9b11",
        email="jane@example.com",
        full_name="Jane",
        password_hash=bcrypt.hashpw(b"secret1", bcrypt.gensalt(4)).decode(),
        is_verified=True,
    )
    values.update(overrides)
    return Account(**values)


class TestSignupValidation:
    """Tests for signup input validation."""

    def test_missing_fields_raise_validation_error(self, registration) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registration.register("", "", "")
        assert exc_info.value.errors == [
            "Full name is required",
            "Email is required",
            "Password is required",
        ]

    def test_invalid_email_format(self, registration) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registration.register("Jane", "not-an-email", "secret1")
        assert exc_info.value.message == "Invalid email format"

    def test_short_password(self, registration) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registration.register("Jane", "jane@example.com", "12345")
        assert exc_info.value.message == "Password must be at least 6 characters"

    def test_password_exactly_6_chars_accepted(self, registration) -> None:
        assert registration.register("Jane", "jane@example.com", "123456") == "jane@example.com"

    def test_nothing_stored_on_validation_error(self, registration, pending_repo, sender) -> None:
        with pytest.raises(ValidationError):
            registration.register("Jane", "bad", "x")
        assert pending_repo.records == {}
        assert sender.messages == []


class TestSignup:
    """Tests for the signup flow."""

    def test_register_normalizes_email(self, registration, pending_repo) -> None:
        email = registration.register("Jane", "  Jane@Example.COM  ", "secret1")
        assert email == "jane@example.com"
        assert list(pending_repo.records) == ["jane@example.com"]

    def test_password_is_hashed_with_bcrypt(self, registration, pending_repo) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        stored = pending_repo.records["jane@example.com"].password_hash

        assert stored != "secret1"
        assert re.match(r"^\$2[aby]\$", stored)
        assert bcrypt.checkpw(b"secret1", stored.encode())

    def test_pending_expires_after_15_minutes(self, registration, pending_repo, clock) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        pending = pending_repo.records["jane@example.com"]
        assert pending.expires_at == clock.now + timedelta(minutes=15)

    def test_token_is_256_bit_hex(self, registration, pending_repo) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        token = pending_repo.records["jane@example.com"].token
        assert re.fullmatch(r"[0-9a-f]{64}", token)

    def test_email_contains_link_and_code(self, registration, pending_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        pending = pending_repo.records["jane@example.com"]

        assert sender.last.to == "jane@example.com"
        assert f"http://app.test/verify-email/{pending.token}" in sender.last.html
        assert sender.last_code() == pending.otp_code

    def test_second_signup_before_confirmation_conflicts(self, registration, pending_repo) -> None:
        registration.register("Jane", "a@x.com", "secret1")
        with pytest.raises(ConflictError) as exc_info:
            registration.register("Jane", "a@x.com", "secret1")
        assert exc_info.value.message == "Email already exists"
        assert len(pending_repo.records) == 1

    def test_signup_for_existing_account_conflicts(self, registration, account_repo, pending_repo) -> None:
        account_repo.add(make_account())
        with pytest.raises(ConflictError):
            registration.register("Jane", "jane@example.com", "secret1")
        assert pending_repo.records == {}

    def test_expired_pending_is_reclaimed(self, registration, pending_repo, clock) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        old_token = pending_repo.records["jane@example.com"].token
        clock.advance(minutes=16)

        registration.register("Janet", "jane@example.com", "secret2")

        pending = pending_repo.records["jane@example.com"]
        assert pending.token != old_token
        assert pending.full_name == "Janet"

    def test_claim_failure_does_not_send_email(self) -> None:
        pending = Mock()
        pending.claim.return_value = False
        pending.find_by_email.return_value = None
        accounts = Mock()
        accounts.find_by_email.return_value = None
        sender = Mock()

        service = RegistrationService(
            pending=pending,
            accounts=accounts,
            email_sender=sender,
            chat=Mock(),
            sessions=SessionIssuer(secret="s"),
            bcrypt_cost=4,
        )

        with pytest.raises(ConflictError):
            service.register("Jane", "jane@example.com", "secret1")
        sender.send.assert_not_called()
        assert pending.claim.call_count == 2

    def test_token_collision_retried_with_fresh_secrets(
        self, registration, pending_repo, clock, monkeypatch
    ) -> None:
        expires = clock.now + timedelta(minutes=15)
        pending_repo.records["other@example.com"] = PendingRegistration(
            email="other@example.com",
            full_name="Other",
            password_hash="x",
            token="a" * 64,
            otp_code="000000",
            expires_at=expires,
        )
        issued = iter(
            [
                IssuedVerification(token="a" * 64, otp_code="111111", expires_at=expires),
                IssuedVerification(token="b" * 64, otp_code="222222", expires_at=expires),
            ]
        )
        monkeypatch.setattr("src.domain.registration.issue_verification", lambda ttl, now: next(issued))

        registration.register("Jane", "jane@example.com", "secret1")

        assert pending_repo.records["jane@example.com"].token == "b" * 64
        assert pending_repo.records["other@example.com"].token == "a" * 64


class TestSignupDeliveryRollback:
    """Tests for rollback when the verification email fails."""

    @pytest.mark.parametrize(
        "failure, message",
        [
            (DeliveryFailure.AUTH, "Email authentication failed. Please check email configuration."),
            (DeliveryFailure.CONNECTION, "Could not connect to email server. Please try again later."),
            (DeliveryFailure.GENERIC, "Failed to send verification email. Please try again."),
        ],
    )
    def test_delivery_failure_removes_pending(self, registration, pending_repo, sender, failure, message) -> None:
        sender.failure = failure

        with pytest.raises(DeliveryError) as exc_info:
            registration.register("Jane", "jane@example.com", "secret1")

        assert exc_info.value.reason == failure
        assert exc_info.value.message == message
        assert pending_repo.records == {}

    def test_signup_possible_after_delivery_failure(self, registration, pending_repo, sender) -> None:
        sender.failure = DeliveryFailure.CONNECTION
        with pytest.raises(DeliveryError):
            registration.register("Jane", "jane@example.com", "secret1")

        sender.failure = None
        registration.register("Jane", "jane@example.com", "secret1")
        assert "jane@example.com" in pending_repo.records


class TestVerifyEmail:
    """Tests for link verification."""

    def test_success_creates_verified_account(self, registration, pending_repo, account_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        verification = registration.verify_email(sender.last_token())

        assert verification.state == VerificationState.VERIFIED
        accounts = list(account_repo.records.values())
        assert len(accounts) == 1
        assert accounts[0].email == "jane@example.com"
        assert accounts[0].is_verified is True
        assert accounts[0].is_onboarded is False
        assert accounts[0].avatar_url.startswith("https://avatar.iran.liara.run/public/")
        assert pending_repo.records == {}

    def test_account_keeps_signup_password(self, registration, account_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        registration.verify_email(sender.last_token())
        account = next(iter(account_repo.records.values()))
        assert bcrypt.checkpw(b"secret1", account.password_hash.encode())

    def test_success_provisions_chat_profile(self, registration, chat, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        verification = registration.verify_email(sender.last_token())

        assert len(chat.profiles) == 1
        assert chat.profiles[0].id == verification.account.id
        assert chat.profiles[0].name == "Jane"
        assert chat.profiles[0].image == verification.account.avatar_url

    def test_success_issues_session(self, registration, sessions, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        verification = registration.verify_email(sender.last_token())
        assert sessions.decode(verification.session_token) == verification.account.id

    def test_unknown_token_is_invalid(self, registration) -> None:
        with pytest.raises(TokenError) as exc_info:
            registration.verify_email("deadbeef")
        assert exc_info.value.reason == RejectReason.INVALID
        assert exc_info.value.message == "Invalid verification token"

    def test_token_is_single_use(self, registration, sender) -> None:
        registration.register("Jane", "a@x.com", "secret1")
        token = sender.last_token()
        registration.verify_email(token)

        with pytest.raises(TokenError) as exc_info:
            registration.verify_email(token)
        assert exc_info.value.reason == RejectReason.INVALID

    def test_expired_token_is_never_promoted(self, registration, pending_repo, account_repo, sender, clock) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        clock.advance(minutes=15)

        with pytest.raises(TokenError) as exc_info:
            registration.verify_email(sender.last_token())

        assert exc_info.value.reason == RejectReason.EXPIRED
        assert account_repo.records == {}
        assert pending_repo.records == {}

    def test_existing_account_rejects_and_purges(self, registration, pending_repo, account_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        account_repo.add(make_account())

        with pytest.raises(TokenError) as exc_info:
            registration.verify_email(sender.last_token())

        assert exc_info.value.reason == RejectReason.ALREADY_VERIFIED
        assert pending_repo.records == {}
        assert len(account_repo.records) == 1

    def test_lost_create_race_keeps_pending(
        self, registration, pending_repo, account_repo, sender, monkeypatch
    ) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        monkeypatch.setattr(account_repo, "create", lambda account: False)

        with pytest.raises(TokenError) as exc_info:
            registration.verify_email(sender.last_token())

        assert exc_info.value.reason == RejectReason.ALREADY_VERIFIED
        assert "jane@example.com" in pending_repo.records


class TestProvisioningRollback:
    """Tests for rollback when the chat profile cannot be created."""

    def test_failure_deletes_account_and_keeps_pending(
        self, registration, pending_repo, account_repo, chat, sender
    ) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        chat.fail = True

        with pytest.raises(ProvisioningError) as exc_info:
            registration.verify_email(sender.last_token())

        assert exc_info.value.message == "Failed to create user profile. Please try again."
        assert account_repo.records == {}
        assert "jane@example.com" in pending_repo.records

    def test_same_token_can_be_retried(self, registration, pending_repo, account_repo, chat, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        token = sender.last_token()
        chat.fail = True
        with pytest.raises(ProvisioningError):
            registration.verify_email(token)

        chat.fail = False
        verification = registration.verify_email(token)

        assert verification.state == VerificationState.VERIFIED
        assert len(account_repo.records) == 1
        assert pending_repo.records == {}

    def test_unexpected_error_also_rolls_back(self, registration, pending_repo, account_repo, chat, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        token = sender.last_token()
        registration.chat = Mock(upsert_user=Mock(side_effect=RuntimeError("connection reset")))

        with pytest.raises(ProvisioningError):
            registration.verify_email(token)

        assert account_repo.records == {}
        assert "jane@example.com" in pending_repo.records

        registration.chat = chat
        assert registration.verify_email(token).state == VerificationState.VERIFIED


class TestVerifyOtp:
    """Tests for code verification."""

    def test_correct_code_verifies(self, registration, account_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        verification = registration.verify_otp("JANE@example.com", sender.last_code())

        assert verification.state == VerificationState.VERIFIED
        assert len(account_repo.records) == 1

    def test_wrong_code_counts_attempt(self, registration, pending_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        wrong = "000000" if sender.last_code() != "000000" else "111111"

        with pytest.raises(TokenError) as exc_info:
            registration.verify_otp("jane@example.com", wrong)

        assert exc_info.value.reason == RejectReason.INVALID
        assert exc_info.value.message == "Invalid verification code"
        assert pending_repo.records["jane@example.com"].attempt_count == 1

    def test_lockout_drops_pending(self, registration, pending_repo, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        code = sender.last_code()
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(2):
            with pytest.raises(TokenError):
                registration.verify_otp("jane@example.com", wrong)
        with pytest.raises(TokenError) as exc_info:
            registration.verify_otp("jane@example.com", wrong)

        assert exc_info.value.reason == RejectReason.LOCKED
        assert pending_repo.records == {}
        with pytest.raises(TokenError):
            registration.verify_otp("jane@example.com", code)

    def test_unknown_email_is_invalid(self, registration) -> None:
        with pytest.raises(TokenError) as exc_info:
            registration.verify_otp("nobody@example.com", "123456")
        assert exc_info.value.reason == RejectReason.INVALID

    def test_expired_code_rejected(self, registration, account_repo, sender, clock) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        clock.advance(minutes=20)

        with pytest.raises(TokenError) as exc_info:
            registration.verify_otp("jane@example.com", sender.last_code())
        assert exc_info.value.reason == RejectReason.EXPIRED
        assert account_repo.records == {}

    def test_code_and_link_share_one_record(self, registration, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        token = sender.last_token()
        registration.verify_otp("jane@example.com", sender.last_code())

        with pytest.raises(TokenError):
            registration.verify_email(token)


class TestAccountScopedVerification:
    """Tests for tokens issued to existing unverified accounts."""

    def test_account_token_verifies_account(self, registration, account_repo, chat, sender) -> None:
        account = account_repo.add(make_account(is_verified=False))
        registration.reissue_account_verification(account)

        verification = registration.verify_email(sender.last_token())

        assert verification.account.id == account.id
        stored = account_repo.records[account.id]
        assert stored.is_verified is True
        assert stored.verification_token is None
        assert chat.profiles[0].id == account.id

    def test_expired_account_token_rejected(self, registration, account_repo, sender, clock) -> None:
        account = account_repo.add(make_account(is_verified=False))
        registration.reissue_account_verification(account)
        clock.advance(minutes=30)

        with pytest.raises(TokenError) as exc_info:
            registration.verify_email(sender.last_token())
        assert exc_info.value.reason == RejectReason.EXPIRED
        assert account_repo.records[account.id].is_verified is False


class TestResendVerification:
    """Tests for resending verification email."""

    def test_verified_account_rejected(self, registration, account_repo) -> None:
        account_repo.add(make_account())
        with pytest.raises(TokenError) as exc_info:
            registration.resend_verification("jane@example.com")
        assert exc_info.value.reason == RejectReason.ALREADY_VERIFIED
        assert exc_info.value.message == "Email is already verified"

    def test_unverified_account_gets_new_token(self, registration, account_repo, sender) -> None:
        account = account_repo.add(make_account(is_verified=False))
        registration.resend_verification("jane@example.com")

        assert account_repo.records[account.id].verification_token == sender.last_token()

    def test_pending_token_replaced(self, registration, pending_repo, sender, clock) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        old_token = sender.last_token()
        clock.advance(minutes=10)

        registration.resend_verification("jane@example.com")

        new_token = sender.last_token()
        assert new_token != old_token
        assert pending_repo.records["jane@example.com"].expires_at == clock.now + timedelta(minutes=15)
        with pytest.raises(TokenError):
            registration.verify_email(old_token)
        assert registration.verify_email(new_token).state == VerificationState.VERIFIED

    def test_unknown_email_not_found(self, registration) -> None:
        with pytest.raises(NotFoundError):
            registration.resend_verification("nobody@example.com")

    def test_expired_pending_is_not_revived(self, registration, pending_repo, sender, clock) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        old_token = sender.last_token()
        clock.advance(minutes=30)

        with pytest.raises(NotFoundError):
            registration.resend_verification("jane@example.com")

        assert pending_repo.records == {}
        assert len(sender.messages) == 1
        with pytest.raises(TokenError):
            registration.verify_email(old_token)

    def test_delivery_failure_propagates(self, registration, sender) -> None:
        registration.register("Jane", "jane@example.com", "secret1")
        sender.failure = DeliveryFailure.GENERIC
        with pytest.raises(DeliveryError):
            registration.resend_verification("jane@example.com")


class TestPurgeExpired:
    """Tests for the expiry sweep."""

    def test_purge_removes_only_expired(self, registration, pending_repo, clock) -> None:
        registration.register("Old", "old@example.com", "secret1")
        clock.advance(minutes=10)
        registration.register("New", "new@example.com", "secret1")
        clock.advance(minutes=6)

        assert registration.purge_expired() == 1
        assert list(pending_repo.records) == ["new@example.com"]
