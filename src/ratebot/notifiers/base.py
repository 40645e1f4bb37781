"""Abstract outbound message channel."""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """Delivers plain text to a chat."""

    @abstractmethod
    async def send(self, chat_id: int, text: str) -> None:
        """Deliver ``text`` to ``chat_id``.

        Raises:
            NotificationError: The message was not accepted.
        """
        ...

    async def close(self) -> None:
        """Release network resources. No-op by default."""
