"""Listener container: the receive loop around a message listener.

The container:
- Pulls messages from a receiver
- Hands each one to the listener (usually a RetryingDispatcher)
- Acks the message when the listener returns normally
- Releases it for native redelivery when the listener raises

The container keeps no queue of its own. All queue operations go through
the receiver.
"""

import inspect
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from poisonpill.core.dispatcher import DispatchOutcome, RetryingDispatcher
from poisonpill.core.errors import ReceiverUnavailableError
from poisonpill.core.handler import HandlerFunc, MessageHandler, as_handler
from poisonpill.core.logging import get_logger
from poisonpill.core.message import Message

if TYPE_CHECKING:
    from poisonpill.transport.base import Receiver

DEFAULT_MAX_CONSECUTIVE_FAILURES = 10


@dataclass
class ContainerStats:
    """Statistics from a container run."""

    messages_received: int = 0
    messages_acked: int = 0
    messages_released: int = 0
    listener_errors: int = 0
    receive_errors: int = 0
    ack_errors: int = 0
    outcomes: Counter = field(default_factory=Counter)


class ListenerContainer:
    """Drives a listener from a receiver until stopped."""

    def __init__(
        self,
        receiver: "Receiver",
        listener: MessageHandler | HandlerFunc,
        max_messages: int | None = None,
        poll_timeout: float = 1.0,
        max_consecutive_receive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
    ) -> None:
        """Initialize the container.

        Args:
            receiver: Source of messages.
            listener: Called once per delivered message.
            max_messages: Stop after this many messages. None runs until stop().
            poll_timeout: Seconds each pull waits for a message.
            max_consecutive_receive_failures: Pull failures in a row before
                ReceiverUnavailableError is raised.
        """
        self.receiver = receiver
        self.listener = as_handler(listener)
        self.max_messages = max_messages
        self.poll_timeout = poll_timeout
        self.max_consecutive_receive_failures = max_consecutive_receive_failures
        self._log = get_logger("poisonpill.container")
        self._running = False
        self._stats = ContainerStats()
        self._consecutive_pull_failures = 0
        self._last_receive_error: str | None = None

    def stop(self) -> None:
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def get_stats(self) -> ContainerStats:
        """Return a copy of current statistics."""
        return ContainerStats(
            messages_received=self._stats.messages_received,
            messages_acked=self._stats.messages_acked,
            messages_released=self._stats.messages_released,
            listener_errors=self._stats.listener_errors,
            receive_errors=self._stats.receive_errors,
            ack_errors=self._stats.ack_errors,
            outcomes=Counter(self._stats.outcomes),
        )

    async def _deliver(self, message: Message) -> DispatchOutcome:
        if isinstance(self.listener, RetryingDispatcher):
            return await self.listener.dispatch(message)
        result = self.listener.on_message(message)
        if inspect.isawaitable(result):
            await result
        return DispatchOutcome.SUCCESS

    async def process(self, message: Message) -> None:
        """Deliver one message and ack or release it."""
        self._stats.messages_received += 1
        try:
            outcome = await self._deliver(message)
        except Exception as e:
            self._stats.listener_errors += 1
            self._log.error(
                f"Listener {self.listener.name} raised, releasing message for redelivery: {e}",
                extra={
                    "message_id": message.id,
                    "handler": self.listener.name,
                    "error": str(e),
                },
            )
            await self.receiver.release(message)
            self._stats.messages_released += 1
            return

        self._stats.outcomes[outcome.value] += 1
        try:
            await self.receiver.ack(message)
            self._stats.messages_acked += 1
        except Exception as e:
            self._stats.ack_errors += 1
            self._log.error(
                f"Failed to ack message: {e}",
                extra={
                    "message_id": message.id,
                    "handler": self.listener.name,
                    "outcome": outcome.value,
                    "error": str(e),
                },
            )

    async def run(self) -> ContainerStats:
        self._stats = ContainerStats()
        self._running = True
        self._consecutive_pull_failures = 0

        while self._running:
            if self.max_messages is not None and self._stats.messages_received >= self.max_messages:
                break

            if self._consecutive_pull_failures >= self.max_consecutive_receive_failures:
                raise ReceiverUnavailableError(
                    f"Receiver unavailable after {self._consecutive_pull_failures} failures",
                    failure_count=self._consecutive_pull_failures,
                    last_error=self._last_receive_error,
                )

            try:
                message = await self.receiver.pull(timeout=self.poll_timeout)
                self._consecutive_pull_failures = 0
                self._last_receive_error = None
            except Exception as e:
                self._consecutive_pull_failures += 1
                self._stats.receive_errors += 1
                self._last_receive_error = str(e)
                self._log.error(
                    f"Receiver pull failed ({self._consecutive_pull_failures}/"
                    f"{self.max_consecutive_receive_failures}): {e}",
                    extra={
                        "error": str(e),
                        "consecutive_failures": self._consecutive_pull_failures,
                    },
                )
                continue

            if message is None:
                continue

            await self.process(message)

        self._running = False
        return self._stats
