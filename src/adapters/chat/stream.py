"""
Stream chat provisioner adapter - Implements ChatProvisioner protocol.

Upserts user profiles through the Stream Chat REST API. Requests are
authenticated with a server-side JWT signed by the API secret.
"""

import logging

import httpx
import jwt

from src.domain.exceptions import ProvisioningError
from src.domain.ports import ChatProfile

logger = logging.getLogger(__name__)


class StreamChatProvisioner:
    """Implements ChatProvisioner protocol via httpx."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str = "https://chat.stream-io-api.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _server_token(self) -> str:
        return jwt.encode({"server": True}, self._api_secret, algorithm="HS256")

    def upsert_user(self, profile: ChatProfile) -> None:
        """
        Create or update a chat user.

        Raises:
            ProvisioningError: missing credentials, transport error, or non-2xx response
        """
        if not self._api_key or not self._api_secret:
            raise ProvisioningError("Chat service is not configured")

        payload = {"users": {profile.id: {"id": profile.id, "name": profile.name, "image": profile.image}}}
        headers = {
            "Authorization": self._server_token(),
            "stream-auth-type": "jwt",
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                r = client.post(
                    f"{self._base_url}/users",
                    params={"api_key": self._api_key},
                    headers=headers,
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.error("Stream upsert for %s failed: %s: %s", profile.id, type(e).__name__, e)
            raise ProvisioningError() from e

        if not 200 <= r.status_code < 300:
            logger.error("Stream upsert for %s failed: status=%s body=%s", profile.id, r.status_code, r.text[:500])
            raise ProvisioningError()
        logger.info("Stream user upserted: %s", profile.id)
