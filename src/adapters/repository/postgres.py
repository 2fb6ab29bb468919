"""
PostgreSQL repository adapters - Implement the domain persistence protocols.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 with raw SQL.

Uniqueness Design:
-----------------
Both tables enforce one row per email with a UNIQUE/PRIMARY KEY constraint,
so concurrent signups for the same address cannot both succeed:

1. **Pending claim**: a single INSERT ... ON CONFLICT (email) DO UPDATE ... WHERE
   statement. The WHERE clause only lets a dead (expired) row be replaced; a
   live row makes the statement affect zero rows, reported as a conflict.

2. **Account creation**: INSERT ... ON CONFLICT (email) DO NOTHING. Two
   confirmations racing for the same signup produce exactly one account.

All statements are single-row and auto-committed; flows never rely on
multi-statement transactions.
"""

import logging
from datetime import datetime
from pathlib import Path
from uuid import UUID

from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.ports import Account, PendingRegistration, ProfileUpdate

logger = logging.getLogger(__name__)

_PENDING_COLUMNS = "email, full_name, password_hash, token, otp_code, expires_at, attempt_count, created_at"

_ACCOUNT_COLUMNS = (
    "id, email, full_name, password_hash, is_verified, is_onboarded, bio, avatar_url, "
    "interests, location, friends, verification_token, verification_expires_at, "
    "password_reset_token, password_reset_expires_at, created_at"
)


def _to_pending(row: dict) -> PendingRegistration:
    return PendingRegistration(**row)


def _to_account(row: dict) -> Account:
    row = dict(row)
    row["id"] = str(row["id"])
    row["friends"] = [str(friend) for friend in row["friends"] or []]
    return Account(**row)


def _is_uuid(value: str) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


class PostgresPendingRegistrationRepository:
    """
    Implements PendingRegistrationRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def claim(self, pending: PendingRegistration, now: datetime) -> bool:
        """
        Atomically claim an email address for a pending registration.

        Returns:
            True if stored (new row or replaced expired row),
            False if a live pending registration holds the email
        """
        sql = f"""
            INSERT INTO pending_registrations ({_PENDING_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, 0, %s)
            ON CONFLICT (email) DO UPDATE
            SET full_name = EXCLUDED.full_name,
                password_hash = EXCLUDED.password_hash,
                token = EXCLUDED.token,
                otp_code = EXCLUDED.otp_code,
                expires_at = EXCLUDED.expires_at,
                attempt_count = 0,
                created_at = EXCLUDED.created_at
            WHERE pending_registrations.expires_at <= %s
        """
        params = (
            pending.email,
            pending.full_name,
            pending.password_hash,
            pending.token,
            pending.otp_code,
            pending.expires_at,
            pending.created_at or now,
            now,
        )

        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, params)
                conn.commit()
                # 1 if INSERT succeeded OR the expired row was replaced
                return cursor.rowcount == 1
        except errors.UniqueViolation:
            # Token collided with another email's pending row; retryable with fresh secrets
            logger.warning("Pending registration token collision for %s (retryable)", pending.email)
            return False

    def find_by_token(self, token: str) -> PendingRegistration | None:
        return self._fetch_one(f"SELECT {_PENDING_COLUMNS} FROM pending_registrations WHERE token = %s", (token,))

    def find_by_email(self, email: str) -> PendingRegistration | None:
        return self._fetch_one(f"SELECT {_PENDING_COLUMNS} FROM pending_registrations WHERE email = %s", (email,))

    def reissue(self, email: str, token: str, otp_code: str, expires_at: datetime, now: datetime) -> bool:
        sql = """
            UPDATE pending_registrations
            SET token = %s, otp_code = %s, expires_at = %s, attempt_count = 0
            WHERE email = %s AND expires_at > %s
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (token, otp_code, expires_at, email, now))
            conn.commit()
            return cursor.rowcount == 1

    def record_failed_attempt(self, email: str) -> int:
        sql = """
            UPDATE pending_registrations
            SET attempt_count = attempt_count + 1
            WHERE email = %s
            RETURNING attempt_count
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()
            conn.commit()
        return row[0] if row is not None else 0

    def delete(self, email: str) -> None:
        with self._pool.connection() as conn:
            conn.execute("DELETE FROM pending_registrations WHERE email = %s", (email,))
            conn.commit()

    def purge_expired(self, now: datetime) -> int:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM pending_registrations WHERE expires_at <= %s", (now,))
            conn.commit()
            return cursor.rowcount

    def _fetch_one(self, sql: str, params: tuple) -> PendingRegistration | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return _to_pending(row) if row is not None else None


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Account ids are UUIDs; ids that do not parse are treated as unknown.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create(self, account: Account) -> bool:
        sql = """
            INSERT INTO accounts (
                id, email, full_name, password_hash, is_verified, is_onboarded,
                bio, avatar_url, interests, location
            )
            VALUES (%s::uuid, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email) DO NOTHING
        """
        params = (
            account.id,
            account.email,
            account.full_name,
            account.password_hash,
            account.is_verified,
            account.is_onboarded,
            account.bio,
            account.avatar_url,
            account.interests,
            account.location,
        )
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1

    def delete(self, account_id: str) -> None:
        if not _is_uuid(account_id):
            return
        with self._pool.connection() as conn:
            conn.execute("DELETE FROM accounts WHERE id = %s::uuid", (account_id,))
            conn.commit()

    def find_by_id(self, account_id: str) -> Account | None:
        if not _is_uuid(account_id):
            return None
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s::uuid", (account_id,))

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s", (email,))

    def find_by_verification_token(self, token: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE verification_token = %s", (token,)
        )

    def find_by_reset_token(self, token: str) -> Account | None:
        return self._fetch_one(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE password_reset_token = %s", (token,)
        )

    def set_verification_token(self, account_id: str, token: str, expires_at: datetime) -> None:
        self._execute(
            """
            UPDATE accounts
            SET verification_token = %s, verification_expires_at = %s, updated_at = NOW()
            WHERE id = %s::uuid
            """,
            (token, expires_at, account_id),
        )

    def mark_verified(self, account_id: str) -> None:
        self._execute(
            """
            UPDATE accounts
            SET is_verified = TRUE, verification_token = NULL,
                verification_expires_at = NULL, updated_at = NOW()
            WHERE id = %s::uuid
            """,
            (account_id,),
        )

    def set_reset_token(self, account_id: str, token: str, expires_at: datetime) -> None:
        self._execute(
            """
            UPDATE accounts
            SET password_reset_token = %s, password_reset_expires_at = %s, updated_at = NOW()
            WHERE id = %s::uuid
            """,
            (token, expires_at, account_id),
        )

    def clear_reset_token(self, account_id: str) -> None:
        self._execute(
            """
            UPDATE accounts
            SET password_reset_token = NULL, password_reset_expires_at = NULL, updated_at = NOW()
            WHERE id = %s::uuid
            """,
            (account_id,),
        )

    def update_password(self, account_id: str, password_hash: str) -> None:
        self._execute(
            """
            UPDATE accounts
            SET password_hash = %s, password_reset_token = NULL,
                password_reset_expires_at = NULL, updated_at = NOW()
            WHERE id = %s::uuid
            """,
            (password_hash, account_id),
        )

    def update_profile(self, account_id: str, update: ProfileUpdate) -> Account | None:
        if not _is_uuid(account_id):
            return None
        sql = f"""
            UPDATE accounts
            SET full_name = %s, bio = %s, interests = %s, location = %s,
                avatar_url = COALESCE(%s, avatar_url),
                is_onboarded = TRUE, updated_at = NOW()
            WHERE id = %s::uuid
            RETURNING {_ACCOUNT_COLUMNS}
        """
        params = (update.full_name, update.bio, update.interests, update.location, update.avatar_url, account_id)
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
            conn.commit()
        return _to_account(row) if row is not None else None

    def _execute(self, sql: str, params: tuple) -> None:
        with self._pool.connection() as conn:
            conn.execute(sql, params)
            conn.commit()

    def _fetch_one(self, sql: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return _to_account(row) if row is not None else None


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
