"""
Console chat provisioner adapter - Implements ChatProvisioner protocol.

Logs profile upserts instead of calling a chat service. For development.
"""

import logging

from src.domain.ports import ChatProfile

logger = logging.getLogger(__name__)


class ConsoleChatProvisioner:
    """Implements ChatProvisioner protocol via console logging."""

    def upsert_user(self, profile: ChatProfile) -> None:
        logger.info("[CHAT] Upsert user id=%s name=%s", profile.id, profile.name)
