"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Request
from psycopg_pool import ConnectionPool

from src.adapters.chat.console import ConsoleChatProvisioner
from src.adapters.chat.stream import StreamChatProvisioner
from src.adapters.repository.postgres import PostgresAccountRepository, PostgresPendingRegistrationRepository
from src.adapters.smtp.console import ConsoleEmailSender
from src.adapters.smtp.sender import SmtpEmailSender
from src.config.settings import Settings, get_settings
from src.domain.authentication import AuthenticationService
from src.domain.exceptions import AuthError
from src.domain.ports import Account, ChatProvisioner, EmailSender
from src.domain.registration import RegistrationService
from src.domain.sessions import SessionIssuer

NO_TOKEN = "Not authorized, no token"
USER_NOT_FOUND = "Not authorized, user not found"


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


@lru_cache
def get_email_sender() -> EmailSender:
    """Build the configured email sender once per process."""
    settings = get_settings()
    if settings.email_backend == "smtp":
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
            use_ssl=settings.smtp_use_ssl,
            timeout=settings.smtp_timeout_seconds,
        )
    return ConsoleEmailSender()


@lru_cache
def get_chat_provisioner() -> ChatProvisioner:
    """Build the configured chat provisioner once per process."""
    settings = get_settings()
    if settings.chat_backend == "stream":
        return StreamChatProvisioner(
            api_key=settings.stream_api_key,
            api_secret=settings.stream_api_secret,
            base_url=settings.stream_base_url,
            timeout=settings.chat_timeout_seconds,
        )
    return ConsoleChatProvisioner()


def get_session_issuer() -> SessionIssuer:
    settings = get_settings()
    return SessionIssuer(
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(seconds=settings.session_ttl_seconds),
    )


def build_registration_service(pool: ConnectionPool, settings: Settings) -> RegistrationService:
    """
    Create registration service with injected dependencies.

    Wires together the repositories, email sender and chat provisioner.
    Also used outside requests by the expiry sweep.
    """
    return RegistrationService(
        pending=PostgresPendingRegistrationRepository(pool),
        accounts=PostgresAccountRepository(pool),
        email_sender=get_email_sender(),
        chat=get_chat_provisioner(),
        sessions=get_session_issuer(),
        frontend_url=settings.frontend_url,
        verification_ttl=timedelta(seconds=settings.verification_ttl_seconds),
        otp_max_attempts=settings.otp_max_attempts,
        bcrypt_cost=settings.bcrypt_cost,
        avatar_url_template=settings.default_avatar_url_template,
    )


def get_registration_service(request: Request) -> RegistrationService:
    return build_registration_service(get_pool(request), get_settings())


def get_authentication_service(
    request: Request,
    registration: RegistrationService = Depends(get_registration_service),
) -> AuthenticationService:
    settings = get_settings()
    return AuthenticationService(
        accounts=PostgresAccountRepository(get_pool(request)),
        email_sender=get_email_sender(),
        chat=get_chat_provisioner(),
        sessions=get_session_issuer(),
        registration=registration,
        frontend_url=settings.frontend_url,
        reset_ttl=timedelta(seconds=settings.reset_ttl_seconds),
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_current_account(
    request: Request,
    sessions: SessionIssuer = Depends(get_session_issuer),
    service: AuthenticationService = Depends(get_authentication_service),
) -> Account:
    """
    Route guard for protected endpoints.

    Reads the session cookie and resolves it to an account:
    - no cookie -> 401 "no token"
    - bad signature or expired -> 401 "token failed"
    - account deleted -> 401 "user not found"
    """
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        raise AuthError(NO_TOKEN)
    account_id = sessions.decode(token)
    account = service.get_account(account_id)
    if account is None:
        raise AuthError(USER_NOT_FOUND)
    return account
