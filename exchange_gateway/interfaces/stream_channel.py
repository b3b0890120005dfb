"""
Exchange-specific half of a streaming connection.

The ConnectionManager owns the socket and the state machine; a StreamChannel
supplies everything that differs per exchange: where to connect, what to
subscribe to, how to keep the connection alive and what to do with frames.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class StreamChannel(ABC):
    """Protocol details of one exchange's WebSocket feed."""

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Identifier used in connection events and logs."""
        pass

    @abstractmethod
    async def resolve_stream_url(self) -> str:
        """
        Return the URL to connect to.

        Called before every connection attempt, so exchanges with
        short-lived connection tokens can fetch a fresh one.
        """
        pass

    @abstractmethod
    def subscription_messages(self) -> List[Any]:
        """
        Messages to send after every successful handshake.

        Returns:
            List[Any]: dicts are sent as JSON, strings as-is.
        """
        pass

    def heartbeat_message(self) -> Optional[Any]:
        """
        Application-level keepalive payload.

        Returns:
            Optional[Any]: Payload to send every ping interval, or None to
            use WebSocket protocol ping frames.
        """
        return None

    @abstractmethod
    def handle_message(self, message: Any) -> Optional[Any]:
        """
        Process one inbound frame.

        Args:
            message: Decoded JSON, or the raw text when not JSON.

        Returns:
            Optional[Any]: A reply to send back (e.g. heartbeat response).
        """
        pass
