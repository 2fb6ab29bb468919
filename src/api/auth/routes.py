"""
Auth routes.

Defines REST endpoints for signup, email verification, login, logout,
password reset and onboarding. Sessions travel in an httpOnly cookie.
Handlers are plain functions so the blocking services run in the threadpool.
"""

from fastapi import APIRouter, Depends, Request, Response, status

from src.api.dependencies import (
    get_authentication_service,
    get_current_account,
    get_registration_service,
    get_session_issuer,
)
from src.api.models import (
    AccountEnvelope,
    AccountResponse,
    EmailRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    OnboardingRequest,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    VerifyOtpRequest,
)
from src.config.settings import get_settings
from src.domain.authentication import AuthenticationService
from src.domain.ports import Account
from src.domain.registration import RegistrationService
from src.domain.sessions import SessionIssuer

router = APIRouter(prefix="/auth", tags=["auth"])

_BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Invalid input or token"}}
_UNAUTHORIZED = {401: {"model": ErrorResponse, "description": "Not authenticated"}}
_NOT_FOUND = {404: {"model": ErrorResponse, "description": "User not found"}}
_SERVER_ERROR = {500: {"model": ErrorResponse, "description": "Email or chat service failure"}}


def _set_session_cookie(response: Response, request: Request, token: str, sessions: SessionIssuer) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=sessions.max_age_seconds,
        httponly=True,
        samesite="strict",
        secure=settings.is_production or request.url.scheme == "https",
    )


@router.post(
    "/signup",
    response_model=SignupResponse,
    responses={**_BAD_REQUEST, **_SERVER_ERROR},
    summary="Start a signup",
    description="Store a pending registration and email a verification link and code. "
    "No account exists until the email is verified.",
)
def signup(
    request_data: SignupRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> SignupResponse:
    email = service.register(request_data.full_name, request_data.email, request_data.password)
    return SignupResponse(
        message="Please check your email to verify your account.",
        email=email,
        expires_in_seconds=int(service.verification_ttl.total_seconds()),
    )


@router.get(
    "/verify-email/{token}",
    response_model=AccountEnvelope,
    responses={**_BAD_REQUEST, **_SERVER_ERROR},
    summary="Verify email with link token",
)
def verify_email(
    token: str,
    request: Request,
    response: Response,
    service: RegistrationService = Depends(get_registration_service),
    sessions: SessionIssuer = Depends(get_session_issuer),
) -> AccountEnvelope:
    verification = service.verify_email(token)
    _set_session_cookie(response, request, verification.session_token, sessions)
    return AccountEnvelope(
        message="Email verified successfully. You are now logged in.",
        user=AccountResponse.from_account(verification.account),
    )


@router.post(
    "/verify-otp",
    response_model=AccountEnvelope,
    responses={**_BAD_REQUEST, **_SERVER_ERROR},
    summary="Verify email with code",
)
def verify_otp(
    request_data: VerifyOtpRequest,
    request: Request,
    response: Response,
    service: RegistrationService = Depends(get_registration_service),
    sessions: SessionIssuer = Depends(get_session_issuer),
) -> AccountEnvelope:
    verification = service.verify_otp(request_data.email or "", request_data.otp or "")
    _set_session_cookie(response, request, verification.session_token, sessions)
    return AccountEnvelope(
        message="Email verified successfully. You are now logged in.",
        user=AccountResponse.from_account(verification.account),
    )


@router.post(
    "/login",
    response_model=AccountEnvelope,
    responses={**_BAD_REQUEST, **_UNAUTHORIZED},
    summary="Log in",
)
def login(
    request_data: LoginRequest,
    request: Request,
    response: Response,
    service: AuthenticationService = Depends(get_authentication_service),
    sessions: SessionIssuer = Depends(get_session_issuer),
) -> AccountEnvelope:
    grant = service.login(request_data.email or "", request_data.password or "")
    _set_session_cookie(response, request, grant.session_token, sessions)
    return AccountEnvelope(message="Login successful", user=AccountResponse.from_account(grant.account))


@router.post("/logout", response_model=MessageResponse, summary="Log out")
def logout(request: Request, response: Response) -> MessageResponse:
    settings = get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        samesite="strict",
        secure=settings.is_production or request.url.scheme == "https",
    )
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={**_NOT_FOUND, **_SERVER_ERROR},
    summary="Request a password reset link",
)
def forgot_password(
    request_data: EmailRequest,
    service: AuthenticationService = Depends(get_authentication_service),
) -> MessageResponse:
    service.forgot_password(request_data.email or "")
    return MessageResponse(message="Password reset email sent")


@router.post(
    "/reset-password/{token}",
    response_model=MessageResponse,
    responses=_BAD_REQUEST,
    summary="Reset password with reset token",
)
def reset_password(
    token: str,
    request_data: ResetPasswordRequest,
    service: AuthenticationService = Depends(get_authentication_service),
) -> MessageResponse:
    service.reset_password(token, request_data.password or "")
    return MessageResponse(message="Password reset successful")


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
    summary="Resend the verification email",
)
def resend_verification(
    request_data: EmailRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> MessageResponse:
    service.resend_verification(request_data.email or "")
    return MessageResponse(message="Verification email sent successfully")


@router.post(
    "/onboarding",
    response_model=AccountEnvelope,
    status_code=status.HTTP_200_OK,
    responses={**_BAD_REQUEST, **_UNAUTHORIZED, **_NOT_FOUND},
    summary="Complete the profile",
)
def onboarding(
    request_data: OnboardingRequest,
    account: Account = Depends(get_current_account),
    service: AuthenticationService = Depends(get_authentication_service),
) -> AccountEnvelope:
    updated = service.onboard(
        account.id,
        full_name=request_data.full_name,
        bio=request_data.bio,
        interests=request_data.interests,
        location=request_data.location,
        avatar_url=request_data.avatar_url,
    )
    return AccountEnvelope(message="User onboarded successfully", user=AccountResponse.from_account(updated))


@router.get("/me", response_model=AccountEnvelope, responses=_UNAUTHORIZED, summary="Current account")
def me(account: Account = Depends(get_current_account)) -> AccountEnvelope:
    return AccountEnvelope(message="Authenticated", user=AccountResponse.from_account(account))
