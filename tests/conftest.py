"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repositories, email sender and chat provisioner
- Domain services wired to those fakes with a controllable clock
- A PostgreSQL pool for integration/adversarial tests (skipped when
  the database is unreachable)
"""

from collections.abc import Generator
from datetime import timedelta

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings

from src.domain.authentication import AuthenticationService
from src.domain.registration import RegistrationService
from src.domain.sessions import SessionIssuer
from tests.fakes import (
    FakeClock,
    InMemoryAccountRepository,
    InMemoryPendingRegistrationRepository,
    RecordingChatProvisioner,
    RecordingEmailSender,
)

TEST_SECRET = "test-secret"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pending_repo() -> InMemoryPendingRegistrationRepository:
    return InMemoryPendingRegistrationRepository()


@pytest.fixture
def account_repo() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def chat() -> RecordingChatProvisioner:
    return RecordingChatProvisioner()


@pytest.fixture
def sessions() -> SessionIssuer:
    return SessionIssuer(secret=TEST_SECRET)


@pytest.fixture
def registration(
    pending_repo, account_repo, sender, chat, sessions, clock
) -> RegistrationService:
    return RegistrationService(
        pending=pending_repo,
        accounts=account_repo,
        email_sender=sender,
        chat=chat,
        sessions=sessions,
        frontend_url="http://app.test",
        verification_ttl=timedelta(minutes=15),
        otp_max_attempts=3,
        bcrypt_cost=4,
        clock=clock,
    )


@pytest.fixture
def authentication(
    account_repo, sender, chat, sessions, registration, clock
) -> AuthenticationService:
    return AuthenticationService(
        accounts=account_repo,
        email_sender=sender,
        chat=chat,
        sessions=sessions,
        registration=registration,
        frontend_url="http://app.test",
        reset_ttl=timedelta(hours=1),
        bcrypt_cost=4,
        clock=clock,
    )


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """Connection pool against DATABASE_URL with migrations applied."""
    settings = get_settings()
    try:
        with psycopg.connect(settings.database_url, connect_timeout=2):
            pass
    except psycopg.OperationalError:
        pytest.skip("PostgreSQL is not reachable")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty both tables before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM pending_registrations")
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield
