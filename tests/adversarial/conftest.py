"""
Shared fixtures for adversarial tests.

Services here run against PostgreSQL with recording email and chat fakes,
so concurrency and lockout behavior comes from the real SQL.
"""

from collections.abc import Generator
from datetime import timedelta

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository, PostgresPendingRegistrationRepository
from src.domain.authentication import AuthenticationService
from src.domain.registration import RegistrationService
from src.domain.sessions import SessionIssuer
from tests.fakes import RecordingChatProvisioner, RecordingEmailSender

OTP_MAX_ATTEMPTS = 3


@pytest.fixture(autouse=True)
def _clean(clean_database: None) -> Generator[None, None, None]:
    yield


@pytest.fixture
def db_registration(pool: ConnectionPool, sender: RecordingEmailSender, chat: RecordingChatProvisioner) -> RegistrationService:
    return RegistrationService(
        pending=PostgresPendingRegistrationRepository(pool),
        accounts=PostgresAccountRepository(pool),
        email_sender=sender,
        chat=chat,
        sessions=SessionIssuer(secret="adversarial-secret"),
        frontend_url="http://app.test",
        verification_ttl=timedelta(minutes=15),
        otp_max_attempts=OTP_MAX_ATTEMPTS,
        bcrypt_cost=10,
    )


@pytest.fixture
def db_authentication(pool: ConnectionPool, db_registration: RegistrationService) -> AuthenticationService:
    return AuthenticationService(
        accounts=db_registration.accounts,
        email_sender=db_registration.email_sender,
        chat=db_registration.chat,
        sessions=db_registration.sessions,
        registration=db_registration,
        frontend_url="http://app.test",
        bcrypt_cost=10,
    )
