"""Transport protocols.

Transports are collaborators of the dispatcher, not part of it. A Sender
delivers a message to a named destination or to the destination it is bound
to. A Receiver hands delivered messages to a listener container and learns
whether each one was consumed (ack) or should be redelivered (release).
"""

from typing import Protocol

from poisonpill.core.message import Message


class Sender(Protocol):
    """Protocol for delivering messages to a destination."""

    @property
    def default_destination(self) -> str | None:
        """Destination used when send() is called without one."""
        ...

    async def send(self, message: Message, destination: str | None = None) -> None:
        """Deliver a message.

        Args:
            message: The Message to deliver.
            destination: Target destination. None means default_destination.

        Raises:
            TransportError: If delivery fails or no destination is known.
        """
        ...


class Receiver(Protocol):
    """Protocol for receiving messages from one destination."""

    async def pull(self, timeout: float = 1.0) -> Message | None:
        """Retrieve the next message.

        Args:
            timeout: Maximum seconds to wait for a message.

        Returns:
            The next Message, or None if timeout expires with no message available.
        """
        ...

    async def ack(self, message: Message) -> None:
        """Mark a message as consumed."""
        ...

    async def release(self, message: Message) -> None:
        """Give a message back to the broker for native redelivery.

        The message is redelivered as it was received: nothing written to it
        during processing is kept.
        """
        ...
