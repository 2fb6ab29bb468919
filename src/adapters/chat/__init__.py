"""Chat provisioning adapters."""

from .console import ConsoleChatProvisioner
from .stream import StreamChatProvisioner

__all__ = ["ConsoleChatProvisioner", "StreamChatProvisioner"]
