"""
Token issuer - opaque single-use tokens with absolute expiry.

Tokens are 32 random bytes rendered as hex (256 bits of entropy).
Verification tokens also carry a 6-digit code so the same pending
signup can be confirmed by link or by typing the code.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

TOKEN_BYTES = 32
OTP_DIGITS = 6


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class IssuedVerification:
    token: str
    otp_code: str
    expires_at: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_token(ttl: timedelta, now: datetime | None = None) -> IssuedToken:
    """Generate an unguessable token expiring `ttl` after `now`."""
    now = now or utcnow()
    return IssuedToken(token=secrets.token_hex(TOKEN_BYTES), expires_at=now + ttl)


def issue_verification(ttl: timedelta, now: datetime | None = None) -> IssuedVerification:
    """Generate a link token plus a numeric code sharing one expiry."""
    issued = issue_token(ttl, now)
    return IssuedVerification(
        token=issued.token,
        otp_code=generate_otp_code(),
        expires_at=issued.expires_at,
    )


def generate_otp_code() -> str:
    """
    Generate cryptographically secure 6-digit code.

    Returns string to preserve leading zeros.
    """
    return "".join(secrets.choice("0123456789") for _ in range(OTP_DIGITS))


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """A missing expiry counts as expired."""
    if expires_at is None:
        return True
    return expires_at <= (now or utcnow())


def tokens_match(expected: str | None, supplied: str) -> bool:
    """Constant-time comparison; a missing expected value never matches."""
    if not expected:
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())
