"""
Credential helpers - email normalization, input validation, password hashing.

Passwords are hashed with bcrypt before anything is persisted.
"""

import re

import bcrypt

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Pre-computed hash so unknown emails still pay for one bcrypt comparison.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email.strip()))


def password_error(password: str | None) -> str | None:
    if not password:
        return "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None


def validate_signup(full_name: str | None, email: str | None, password: str | None) -> list[str]:
    """Return every violated constraint, in field order. Empty means valid."""
    errors = []
    if not full_name or not full_name.strip():
        errors.append("Full name is required")
    if not email or not email.strip():
        errors.append("Email is required")
    elif not is_valid_email(email):
        errors.append("Invalid email format")
    error = password_error(password)
    if error:
        errors.append(error)
    return errors


def _pwd_bytes(password: str, max_len: int = 72) -> bytes:
    return password.encode("utf-8")[:max_len]


def hash_password(password: str, cost: int = 10) -> str:
    """Hash password using bcrypt with the given cost factor."""
    return bcrypt.hashpw(_pwd_bytes(password), bcrypt.gensalt(rounds=cost)).decode()


def check_password(password: str, password_hash: str | None) -> bool:
    """
    Compare a password against a stored hash.

    A missing hash is compared against a dummy hash so the call costs the
    same whether or not the account exists, and then reported as a mismatch.
    """
    stored = password_hash or _DUMMY_BCRYPT_HASH
    try:
        valid = bcrypt.checkpw(_pwd_bytes(password), stored.encode())
    except ValueError:
        return False
    return valid and password_hash is not None
