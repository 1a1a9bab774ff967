"""In-memory transport using asyncio.Queue for FIFO message storage.

This transport is suitable for development and testing. It provides no
durability guarantees: messages are lost if the process terminates.
"""

import asyncio

from poisonpill.core.errors import QueueFullError, TransportError
from poisonpill.core.message import Message, ObjectMessage


class InMemoryBroker:
    """Named FIFO queues shared by in-memory senders and receivers.

    Args:
        max_size: Maximum size of each queue. 0 means unbounded (default).
    """

    def __init__(self, max_size: int = 0) -> None:
        self._queues: dict[str, asyncio.Queue[Message]] = {}
        self._max_size = max_size

    def queue(self, name: str) -> asyncio.Queue[Message]:
        """Return the queue for a destination, creating it on first use."""
        if name not in self._queues:
            self._queues[name] = asyncio.Queue(maxsize=self._max_size)
        return self._queues[name]

    async def put(self, name: str, message: Message) -> None:
        """Store a message at the tail of a queue.

        Raises:
            QueueFullError: If the queue is full (when max_size > 0).
        """
        queue = self.queue(name)
        if self._max_size > 0:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                raise QueueFullError(
                    f"Queue {name!r} full (max_size={self._max_size}), cannot enqueue message"
                )
        else:
            await queue.put(message)

    async def get(self, name: str, timeout: float = 1.0) -> Message | None:
        """Retrieve the next message, blocking up to timeout seconds."""
        try:
            return await asyncio.wait_for(self.queue(name).get(), timeout)
        except TimeoutError:
            return None

    def drain(self, name: str) -> list[Message]:
        """Remove and return every message currently in a queue."""
        queue = self.queue(name)
        drained = []
        while not queue.empty():
            drained.append(queue.get_nowait())
        return drained

    def qsize(self, name: str) -> int:
        """Return current queue size."""
        return self.queue(name).qsize()

    def destinations(self) -> list[str]:
        return sorted(self._queues)


class InMemorySender:
    """Envelope-preserving sender.

    Each send stores an independent copy of the message, properties and
    payload included, so later changes by the caller do not leak into
    queued messages.
    """

    def __init__(self, broker: InMemoryBroker, default_destination: str | None = None) -> None:
        self._broker = broker
        self._default_destination = default_destination

    @property
    def default_destination(self) -> str | None:
        return self._default_destination

    def _resolve(self, destination: str | None) -> str:
        target = destination or self._default_destination
        if target is None:
            raise TransportError("No destination given and no default destination set")
        return target

    async def send(self, message: Message, destination: str | None = None) -> None:
        target = self._resolve(destination)
        copy = message.model_copy(deep=True)
        copy.destination = target
        copy.redelivered = False
        await self._broker.put(target, copy)


class PayloadOnlySender(InMemorySender):
    """Sender that re-sends only the application object.

    The payload is wrapped in a fresh ObjectMessage, so envelope properties
    are not carried over. Pair it with the payload counter strategy.
    """

    async def send(self, message: Message, destination: str | None = None) -> None:
        if not isinstance(message, ObjectMessage):
            raise TransportError(
                f"PayloadOnlySender can only send ObjectMessage, got {type(message).__name__}"
            )
        target = self._resolve(destination)
        await self._broker.put(
            target,
            ObjectMessage(payload=message.payload.model_copy(deep=True), destination=target),
        )


class InMemoryReceiver:
    """Receives from one in-memory queue with native redelivery.

    A pulled message stays in flight until it is acked. Releasing it puts
    the message back on the queue exactly as it was pulled, flagged as
    redelivered.
    """

    def __init__(self, broker: InMemoryBroker, destination: str) -> None:
        self._broker = broker
        self.destination = destination
        self._in_flight: dict[str, Message] = {}

    async def pull(self, timeout: float = 1.0) -> Message | None:
        message = await self._broker.get(self.destination, timeout)
        if message is not None:
            self._in_flight[message.id] = message.model_copy(deep=True)
        return message

    async def ack(self, message: Message) -> None:
        self._in_flight.pop(message.id, None)

    async def release(self, message: Message) -> None:
        original = self._in_flight.pop(message.id, None)
        if original is None:
            raise TransportError(f"Message {message.id} is not in flight, cannot release")
        original.redelivered = True
        await self._broker.put(self.destination, original)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)
