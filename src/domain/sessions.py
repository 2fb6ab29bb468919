"""
Session issuance - signed, time-bound bearer credentials.

Sessions are JWTs carrying the account id in `sub`. There is no server-side
revocation; logging out clears the client cookie.
"""

from dataclasses import dataclass
from datetime import timedelta

import jwt

from .exceptions import AuthError
from .tokens import utcnow

TOKEN_FAILED = "Not authorized, token failed"


@dataclass
class SessionIssuer:
    """Signs and verifies session tokens."""

    secret: str
    algorithm: str = "HS256"
    ttl: timedelta = timedelta(days=7)

    def issue(self, account_id: str) -> str:
        now = utcnow()
        payload = {"sub": str(account_id), "iat": now, "exp": now + self.ttl}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> str:
        """
        Return the account id bound to a session token.

        Raises:
            AuthError: bad signature, malformed, expired, or missing subject
        """
        try:
            payload = jwt.decode(token.strip(), self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as e:
            raise AuthError(TOKEN_FAILED) from e
        subject = payload.get("sub")
        if not subject:
            raise AuthError(TOKEN_FAILED)
        return subject

    @property
    def max_age_seconds(self) -> int:
        return int(self.ttl.total_seconds())
